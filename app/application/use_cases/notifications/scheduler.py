"""Scheduling and execution of (possibly recurring) notification jobs."""

from __future__ import annotations

import heapq
import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, TypeVar

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from app.domain.entities import Frequency, ScheduledNotificationJob
from app.domain.exceptions import StaleVersionError
from app.infrastructure.repositories import (
    SNAPSHOT_INVOICES,
    ScheduledJobRepository,
    SnapshotRepository,
)
from app.utils import at_time_of_day, ensure_app_timezone, now_in_app_timezone, parse_datetime

from .business_checks import JobHandler

logger = logging.getLogger(__name__)

INVOICE_REMINDER_DAYS = 3
_MAX_WRITE_ATTEMPTS = 5
_MAX_RETRY_DELAY = timedelta(days=1)

T = TypeVar("T")


@dataclass
class JobFailure:
    """A handler error recorded while executing a scheduled job."""

    job_id: str
    user_id: str
    category: str
    type: str
    attempts: int
    error: str
    abandoned: bool
    occurred_at: datetime


@dataclass
class SchedulerTickReport:
    """Outcome of one execution pass over the due jobs."""

    started_at: datetime
    executed: list[str] = field(default_factory=list)
    enqueued: list[str] = field(default_factory=list)
    failures: list[JobFailure] = field(default_factory=list)
    pruned: int = 0


@dataclass
class _Outcome:
    job_id: str
    error: str | None
    successor_id: str


def next_occurrence(
    value: datetime, frequency: Frequency, anchor_day: int | None = None
) -> datetime:
    """Advance ``value`` by one period of ``frequency``.

    Monthly series land on ``anchor_day`` (default: the day of ``value``),
    clamped to the last day of shorter months.
    """

    if frequency is Frequency.DAILY:
        return value + timedelta(days=1)
    if frequency is Frequency.WEEKLY:
        return value + timedelta(days=7)
    return value + relativedelta(months=1, day=anchor_day or value.day)


class NotificationScheduler:
    """Persisted job list executed by due time.

    Every mutation reloads the list, applies the change and writes it back
    with the version it was read at; a concurrent writer makes the write
    fail and the change is re-applied to the fresh list. Pending jobs are
    ordered in a min-heap keyed by due time.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        handlers: Mapping[tuple[str, str | None], JobHandler],
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
        retention: timedelta = timedelta(days=7),
        max_attempts: int = 5,
        retry_base_delay: timedelta = timedelta(seconds=60),
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self._session_factory = session_factory
        self._handlers = dict(handlers)
        self._clock = clock
        self._retention = retention
        self._max_attempts = max_attempts
        self._retry_base_delay = retry_base_delay
        self._new_id = id_factory
        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._jobs: list[ScheduledNotificationJob] = []
        self._version = 0
        self._heap: list[tuple[datetime, str]] = []
        self._listeners: list[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Register ``listener`` to be called after jobs are added."""

        self._listeners.append(listener)

    def register_handler(
        self, category: str, type_: str | None, handler: JobHandler
    ) -> None:
        self._handlers[(category, type_)] = handler

    def schedule_notification(
        self,
        user_id: str,
        category: str,
        type_: str,
        scheduled_for: datetime,
        data: Mapping[str, Any] | None = None,
        recurring: bool = False,
        frequency: Frequency | str | None = None,
        *,
        company_id: str | None = None,
    ) -> str:
        """Append a pending job and return its identifier."""

        job = self._build_job(
            user_id,
            category,
            type_,
            scheduled_for,
            data or {},
            recurring=recurring,
            frequency=frequency,
            company_id=company_id,
        )
        self._mutate(lambda jobs: jobs.append(job))
        logger.info(
            "Notification scheduled: %s/%s for %s (job %s)",
            category,
            type_,
            job.scheduled_for.isoformat(),
            job.id,
        )
        self._notify_listeners()
        return job.id

    def cancel_scheduled_notification(self, job_id: str) -> bool:
        def _cancel(jobs: list[ScheduledNotificationJob]) -> bool:
            for index, job in enumerate(jobs):
                if job.id == job_id:
                    del jobs[index]
                    return True
            return False

        removed = self._mutate(_cancel)
        if removed:
            logger.info("Scheduled notification %s cancelled", job_id)
        return removed

    def get_scheduled_notifications(self, user_id: str) -> list[ScheduledNotificationJob]:
        """Return the pending jobs of ``user_id`` ordered by due time."""

        with self._lock:
            self._refresh()
            pending = [job for job in self._jobs if job.user_id == user_id and not job.executed]
        return sorted(pending, key=lambda job: job.due_at)

    def get_job(self, job_id: str) -> ScheduledNotificationJob | None:
        with self._lock:
            self._refresh()
            for job in self._jobs:
                if job.id == job_id:
                    return replace(job, data=dict(job.data))
        return None

    def list_jobs(self) -> list[ScheduledNotificationJob]:
        with self._lock:
            self._refresh()
            return [replace(job, data=dict(job.data)) for job in self._jobs]

    def next_due_at(self) -> datetime | None:
        """Return the earliest due time among pending jobs."""

        with self._lock:
            self._refresh()
            return self._heap[0][0] if self._heap else None

    def run_due(self, now: datetime | None = None) -> SchedulerTickReport:
        """Execute every pending job due at ``now``.

        Successful jobs are marked executed and recurring ones enqueue their
        successor. Failed jobs stay pending with a backoff and are abandoned
        after the configured number of attempts. Executed jobs older than the
        retention window are pruned.
        """

        with self._tick_lock:
            now = ensure_app_timezone(now) if now is not None else self._clock()
            report = SchedulerTickReport(started_at=now)

            with self._lock:
                self._refresh()
                due_jobs = self._pop_due(now)

            outcomes: list[_Outcome] = []
            for job in due_jobs:
                outcomes.append(
                    _Outcome(job_id=job.id, error=self._execute(job, now), successor_id=self._new_id())
                )

            if not outcomes:
                return report

            def _apply(jobs: list[ScheduledNotificationJob]) -> SchedulerTickReport:
                applied = SchedulerTickReport(started_at=now)
                self._apply_outcomes(jobs, outcomes, now, applied)
                if applied.executed:
                    applied.pruned = self._prune(jobs, now)
                return applied

            report = self._mutate(_apply)

        if report.executed or report.failures:
            logger.info(
                "Scheduler tick executed %d job(s), %d failure(s), pruned %d",
                len(report.executed),
                len(report.failures),
                report.pruned,
            )
        if report.enqueued:
            self._notify_listeners()
        return report

    def setup_user_schedule(self, user_id: str, *, company_id: str | None = None) -> list[str]:
        """Seed the reminders and recurring checks of a newly onboarded user.

        Jobs that already exist in pending state for the same subject are not
        duplicated, so calling this twice is harmless.
        """

        now = self._clock()
        candidates = [
            *self._invoice_reminder_jobs(user_id, now, company_id),
            self._build_job(
                user_id,
                "financial_performance",
                "monthly_report",
                at_time_of_day(now.replace(day=1) + relativedelta(months=1), 9),
                {"user_id": user_id},
                recurring=True,
                frequency=Frequency.MONTHLY,
                company_id=company_id,
            ),
            self._build_job(
                user_id,
                "inventory",
                "daily_check",
                at_time_of_day(now + timedelta(days=1), 8),
                {"user_id": user_id},
                recurring=True,
                frequency=Frequency.DAILY,
                company_id=company_id,
            ),
            self._build_job(
                user_id,
                "customers",
                "weekly_overdue_check",
                _next_monday_at(now, 10),
                {"user_id": user_id},
                recurring=True,
                frequency=Frequency.WEEKLY,
                company_id=company_id,
            ),
        ]

        def _add_missing(jobs: list[ScheduledNotificationJob]) -> list[str]:
            existing = {_subject_key(job) for job in jobs if not job.executed}
            added: list[str] = []
            for candidate in candidates:
                key = _subject_key(candidate)
                if key in existing:
                    continue
                existing.add(key)
                jobs.append(candidate)
                added.append(candidate.id)
            return added

        added = self._mutate(_add_missing)
        logger.info("Notification schedule set up for user %s: %d job(s) added", user_id, len(added))
        if added:
            self._notify_listeners()
        return added

    def _invoice_reminder_jobs(
        self, user_id: str, now: datetime, company_id: str | None
    ) -> list[ScheduledNotificationJob]:
        with self._session_factory() as session:
            invoices = SnapshotRepository(session).list_for_user(SNAPSHOT_INVOICES, user_id)

        jobs: list[ScheduledNotificationJob] = []
        for invoice in invoices:
            if invoice.get("deleted_at") or invoice.get("status") == "paid":
                continue
            due = parse_datetime(invoice.get("due_date"))
            if due is None:
                continue

            payload = {
                "invoice_id": invoice.get("id"),
                "invoice_number": invoice.get("invoice_number"),
                "customer_name": invoice.get("customer_name") or "Unspecified customer",
                "due_date": due.isoformat(),
                "amount": invoice.get("total_amount"),
            }
            reminder_at = due - timedelta(days=INVOICE_REMINDER_DAYS)
            # A reminder whose moment passed earlier today fires immediately.
            if reminder_at.date() >= now.date():
                jobs.append(
                    self._build_job(
                        user_id,
                        "invoices",
                        "due_reminder",
                        max(reminder_at, now),
                        {**payload, "days_remaining": INVOICE_REMINDER_DAYS},
                        company_id=company_id,
                    )
                )
            if due > now:
                jobs.append(
                    self._build_job(
                        user_id,
                        "invoices",
                        "due_today",
                        due,
                        {**payload, "days_remaining": 0},
                        company_id=company_id,
                    )
                )
        return jobs

    def _build_job(
        self,
        user_id: str,
        category: str,
        type_: str,
        scheduled_for: datetime,
        data: Mapping[str, Any],
        *,
        recurring: bool = False,
        frequency: Frequency | str | None = None,
        company_id: str | None = None,
    ) -> ScheduledNotificationJob:
        normalized_frequency = Frequency(frequency) if frequency else None
        if recurring and normalized_frequency is None:
            raise ValueError("Recurring jobs need a frequency")
        scheduled_for = ensure_app_timezone(scheduled_for)
        return ScheduledNotificationJob(
            id=self._new_id(),
            user_id=user_id,
            category=category,
            type=type_,
            scheduled_for=scheduled_for,
            data=dict(data),
            recurring=recurring,
            frequency=normalized_frequency,
            executed=False,
            created_at=self._clock(),
            company_id=company_id,
            anchor_day=scheduled_for.day if normalized_frequency is Frequency.MONTHLY else None,
        )

    def _execute(self, job: ScheduledNotificationJob, now: datetime) -> str | None:
        """Run the handler of ``job`` and return the error text on failure."""

        handler = self._handlers.get((job.category, job.type)) or self._handlers.get(
            (job.category, None)
        )
        if handler is None:
            logger.warning(
                "No handler for scheduled notification %s/%s; marking job %s executed",
                job.category,
                job.type,
                job.id,
            )
            return None

        logger.debug("Executing scheduled notification %s/%s (%s)", job.category, job.type, job.id)
        try:
            handler(job, now)
        except Exception as exc:
            logger.exception(
                "Scheduled notification %s (%s/%s) failed", job.id, job.category, job.type
            )
            return f"{type(exc).__name__}: {exc}"
        return None

    def _apply_outcomes(
        self,
        jobs: list[ScheduledNotificationJob],
        outcomes: Iterable[_Outcome],
        now: datetime,
        report: SchedulerTickReport,
    ) -> None:
        by_id = {job.id: job for job in jobs}
        for outcome in outcomes:
            job = by_id.get(outcome.job_id)
            if job is None or job.executed:
                # Cancelled or handled by another writer meanwhile.
                continue

            if outcome.error is not None:
                job.attempts += 1
                job.last_error = outcome.error
                abandoned = job.attempts >= self._max_attempts
                report.failures.append(
                    JobFailure(
                        job_id=job.id,
                        user_id=job.user_id,
                        category=job.category,
                        type=job.type,
                        attempts=job.attempts,
                        error=outcome.error,
                        abandoned=abandoned,
                        occurred_at=now,
                    )
                )
                if not abandoned:
                    job.next_attempt_at = now + self._retry_delay(job.attempts)
                    continue
                job.abandoned = True
                logger.error(
                    "Scheduled notification %s abandoned after %d attempts: %s",
                    job.id,
                    job.attempts,
                    outcome.error,
                )

            job.executed = True
            job.executed_at = now
            job.next_attempt_at = None
            report.executed.append(job.id)

            if job.recurring and job.frequency is not None and outcome.successor_id not in by_id:
                successor = ScheduledNotificationJob(
                    id=outcome.successor_id,
                    user_id=job.user_id,
                    category=job.category,
                    type=job.type,
                    scheduled_for=next_occurrence(
                        job.scheduled_for, job.frequency, job.anchor_day
                    ),
                    data=dict(job.data),
                    recurring=True,
                    frequency=job.frequency,
                    created_at=now,
                    company_id=job.company_id,
                    anchor_day=job.anchor_day,
                )
                jobs.append(successor)
                by_id[successor.id] = successor
                report.enqueued.append(successor.id)

    def _prune(self, jobs: list[ScheduledNotificationJob], now: datetime) -> int:
        cutoff = now - self._retention
        kept = [job for job in jobs if not job.executed or job.scheduled_for > cutoff]
        pruned = len(jobs) - len(kept)
        if pruned:
            jobs[:] = kept
            logger.info("Pruned %d executed scheduled notification(s)", pruned)
        return pruned

    def _retry_delay(self, attempts: int) -> timedelta:
        return min(self._retry_base_delay * (2 ** (attempts - 1)), _MAX_RETRY_DELAY)

    def _pop_due(self, now: datetime) -> list[ScheduledNotificationJob]:
        by_id = {job.id: job for job in self._jobs}
        due: list[ScheduledNotificationJob] = []
        while self._heap and self._heap[0][0] <= now:
            _, job_id = heapq.heappop(self._heap)
            job = by_id.get(job_id)
            if job is not None and job.is_due(now):
                due.append(replace(job, data=dict(job.data)))
        return due

    def _mutate(self, change: Callable[[list[ScheduledNotificationJob]], T]) -> T:
        """Apply ``change`` to the fresh job list and persist it."""

        with self._lock:
            for _ in range(_MAX_WRITE_ATTEMPTS):
                self._refresh(force=True)
                jobs = [replace(job, data=dict(job.data)) for job in self._jobs]
                result = change(jobs)
                try:
                    with self._session_factory() as session:
                        version = ScheduledJobRepository(session).save(
                            jobs, expected_version=self._version
                        )
                except StaleVersionError:
                    logger.warning("Scheduled job list changed concurrently; retrying write")
                    continue
                self._set_state(jobs, version)
                return result
        raise StaleVersionError("scheduled_notifications", self._version, None)

    def _refresh(self, *, force: bool = False) -> None:
        with self._session_factory() as session:
            jobs, version = ScheduledJobRepository(session).load()
        if force or version != self._version or not self._jobs:
            self._set_state(jobs, version)

    def _set_state(self, jobs: list[ScheduledNotificationJob], version: int) -> None:
        self._jobs = jobs
        self._version = version
        self._heap = [(job.due_at, job.id) for job in jobs if not job.executed]
        heapq.heapify(self._heap)

    def _notify_listeners(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:  # pragma: no cover - listeners must not break scheduling
                logger.exception("Scheduler listener failed")


def _next_monday_at(now: datetime, hour: int) -> datetime:
    candidate = at_time_of_day(now + timedelta(days=(7 - now.weekday()) % 7), hour)
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


def _subject_key(job: ScheduledNotificationJob) -> tuple[str, str, str, str | None]:
    subject = job.data.get("invoice_id") if job.category == "invoices" else None
    return (job.user_id, job.category, job.type, str(subject) if subject is not None else None)


__all__ = [
    "INVOICE_REMINDER_DAYS",
    "JobFailure",
    "NotificationScheduler",
    "SchedulerTickReport",
    "next_occurrence",
]
