"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

NOTIFICATION_TYPE_INFO = "info"
NOTIFICATION_TYPE_WARNING = "warning"
NOTIFICATION_TYPE_ERROR = "error"
NOTIFICATION_TYPE_CRITICAL = "critical"


@dataclass
class Notification:
    """Information message delivered to a specific user."""

    id: int | None
    user_id: str
    type: str
    category: str
    priority: str
    title: str
    message: str
    action_required: bool = False
    action_text: str | None = None
    action_url: str | None = None
    related_entity_id: str | None = None
    related_entity_type: str | None = None
    auto_resolve: bool = True
    company_id: str | None = None
    created_at: datetime | None = None
    read_at: datetime | None = None


__all__ = [
    "Notification",
    "NOTIFICATION_TYPE_INFO",
    "NOTIFICATION_TYPE_WARNING",
    "NOTIFICATION_TYPE_ERROR",
    "NOTIFICATION_TYPE_CRITICAL",
]
