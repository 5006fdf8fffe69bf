"""Persistence of the scheduled notification job list."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from app.domain.entities import Frequency, ScheduledNotificationJob
from app.utils import parse_datetime

from .key_value_repository import KeyValueRepository

SCHEDULED_JOBS_KEY = "scheduled_notifications"

logger = logging.getLogger(__name__)


class ScheduledJobRepository:
    """Load and save the whole job list as one versioned key-value entry."""

    def __init__(self, session: Session, *, key: str = SCHEDULED_JOBS_KEY) -> None:
        self.session = session
        self.key = key
        self._store = KeyValueRepository(session)

    def load(self) -> tuple[list[ScheduledNotificationJob], int]:
        """Return the persisted jobs and the version they were read at.

        Version ``0`` means nothing has been stored yet. Entries that cannot be
        parsed are logged and skipped.
        """

        entry = self._store.get_entry(self.key)
        if entry is None:
            return [], 0

        raw_jobs = entry.value
        if not isinstance(raw_jobs, list):
            logger.error(
                "Stored value for '%s' is not a list (%s); starting from an empty job list",
                self.key,
                type(raw_jobs).__name__,
            )
            return [], entry.version

        jobs: list[ScheduledNotificationJob] = []
        for raw in raw_jobs:
            try:
                jobs.append(deserialize_job(raw))
            except (KeyError, TypeError, ValueError):
                logger.exception("Skipping malformed scheduled job entry: %r", raw)
        return jobs, entry.version

    def save(
        self,
        jobs: Sequence[ScheduledNotificationJob],
        *,
        expected_version: int | None = None,
    ) -> int:
        """Persist ``jobs`` and return the new version."""

        payload = [serialize_job(job) for job in jobs]
        entry = self._store.set(self.key, payload, expected_version=expected_version)
        return entry.version


def serialize_job(job: ScheduledNotificationJob) -> dict[str, Any]:
    """Return the JSON representation of ``job``."""

    return {
        "id": job.id,
        "user_id": job.user_id,
        "category": job.category,
        "type": job.type,
        "scheduled_for": job.scheduled_for.isoformat(),
        "data": _to_json_compatible(job.data),
        "recurring": job.recurring,
        "frequency": job.frequency.value if job.frequency else None,
        "executed": job.executed,
        "created_at": _iso_or_none(job.created_at),
        "company_id": job.company_id,
        "attempts": job.attempts,
        "last_error": job.last_error,
        "next_attempt_at": _iso_or_none(job.next_attempt_at),
        "executed_at": _iso_or_none(job.executed_at),
        "abandoned": job.abandoned,
        "anchor_day": job.anchor_day,
    }


def deserialize_job(raw: Mapping[str, Any]) -> ScheduledNotificationJob:
    """Build a job from its JSON representation."""

    if not isinstance(raw, Mapping):
        raise TypeError("Scheduled job entry must be an object")

    scheduled_for = parse_datetime(raw["scheduled_for"])
    if scheduled_for is None:
        raise ValueError(f"Invalid scheduled_for value: {raw['scheduled_for']!r}")

    frequency_value = raw.get("frequency")
    data = raw.get("data") or {}
    if not isinstance(data, Mapping):
        raise TypeError("Scheduled job data must be an object")

    return ScheduledNotificationJob(
        id=str(raw["id"]),
        user_id=str(raw["user_id"]),
        category=str(raw["category"]),
        type=str(raw["type"]),
        scheduled_for=scheduled_for,
        data=dict(data),
        recurring=bool(raw.get("recurring", False)),
        frequency=Frequency(frequency_value) if frequency_value else None,
        executed=bool(raw.get("executed", False)),
        created_at=parse_datetime(raw.get("created_at")),
        company_id=raw.get("company_id"),
        attempts=int(raw.get("attempts") or 0),
        last_error=raw.get("last_error"),
        next_attempt_at=parse_datetime(raw.get("next_attempt_at")),
        executed_at=parse_datetime(raw.get("executed_at")),
        abandoned=bool(raw.get("abandoned", False)),
        anchor_day=int(raw["anchor_day"]) if raw.get("anchor_day") else None,
    )


def _to_json_compatible(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_compatible(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


__all__ = [
    "SCHEDULED_JOBS_KEY",
    "ScheduledJobRepository",
    "deserialize_job",
    "serialize_job",
]
