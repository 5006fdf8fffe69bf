"""Domain entity representing a scheduled notification job."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .notification_rule import Frequency


@dataclass
class ScheduledNotificationJob:
    """Time-stamped intent to evaluate and possibly emit a notification.

    A job moves from pending to executed exactly once. Recurring jobs are not
    reused; a successor job is enqueued instead so executed jobs stay
    available for auditing until the retention window prunes them.
    """

    id: str
    user_id: str
    category: str
    type: str
    scheduled_for: datetime
    data: dict[str, Any] = field(default_factory=dict)
    recurring: bool = False
    frequency: Frequency | None = None
    executed: bool = False
    created_at: datetime | None = None
    company_id: str | None = None
    attempts: int = 0
    last_error: str | None = None
    next_attempt_at: datetime | None = None
    executed_at: datetime | None = None
    abandoned: bool = False
    anchor_day: int | None = None

    @property
    def due_at(self) -> datetime:
        """Moment the job becomes eligible, accounting for retry backoff."""

        return self.next_attempt_at or self.scheduled_for

    def is_due(self, now: datetime) -> bool:
        return not self.executed and self.due_at <= now


__all__ = ["ScheduledNotificationJob"]
