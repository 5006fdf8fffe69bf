"""APScheduler job that wakes the notification scheduler when jobs are due."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from typing import Protocol

from apscheduler.schedulers.background import BackgroundScheduler

from app.utils import get_app_timezone, now_in_app_timezone

logger = logging.getLogger(__name__)

TICK_JOB_ID = "notification_scheduler_tick"


class _Tickable(Protocol):
    def next_due_at(self) -> datetime | None: ...

    def run_due(self, now: datetime | None = None): ...


class SchedulerRunner:
    """Run ``scheduler.run_due`` whenever the earliest pending job becomes due.

    A single interval job on a ``BackgroundScheduler`` executes the tick. After
    each tick the job is moved to the next due time, capped at ``max_sleep``
    seconds so jobs written by other processes are picked up. :meth:`wake`
    pulls the next run forward to now after new jobs are scheduled.
    """

    def __init__(
        self,
        scheduler: _Tickable,
        *,
        max_sleep: float = 60.0,
        clock: Callable[[], datetime] = now_in_app_timezone,
        timezone: tzinfo | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._max_sleep = max_sleep
        self._clock = clock
        self._timezone = timezone or get_app_timezone()
        self._background: BackgroundScheduler | None = None
        self._lock = threading.Lock()
        self._ticking = False
        self._wake_pending = False
        self.last_report = None
        self.last_run_at: datetime | None = None
        self.last_error: str | None = None

    @property
    def running(self) -> bool:
        background = self._background
        return background is not None and background.running

    @property
    def next_run_at(self) -> datetime | None:
        """When the tick job fires next, or ``None`` while stopped."""

        background = self._background
        if background is None or not background.running:
            return None
        job = background.get_job(TICK_JOB_ID)
        return job.next_run_time if job else None

    def start(self) -> None:
        with self._lock:
            if self.running:
                logger.debug("Scheduler runner already running")
                return
            background = BackgroundScheduler(timezone=self._timezone)
            background.add_job(
                self._tick,
                trigger="interval",
                seconds=self._max_sleep,
                id=TICK_JOB_ID,
                name="Notification scheduler tick",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=None,
                next_run_time=self._now(),
            )
            background.start()
            self._background = background
        logger.info("Notification scheduler started (max sleep %.1fs)", self._max_sleep)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            background = self._background
            self._background = None
        if background is None or not background.running:
            return
        background.shutdown(wait=wait)
        logger.info("Notification scheduler stopped")

    def wake(self) -> None:
        with self._lock:
            if not self.running:
                return
            if self._ticking:
                self._wake_pending = True
                return
            self._reschedule(0.0)

    def seconds_until_next(self) -> float:
        next_due = self._scheduler.next_due_at()
        if next_due is None:
            return self._max_sleep
        remaining = (next_due - self._clock()).total_seconds()
        return max(0.0, min(remaining, self._max_sleep))

    def run_once(self):
        """Execute one tick synchronously and remember its report."""

        report = self._scheduler.run_due()
        for failure in getattr(report, "failures", ()):
            logger.warning(
                "Scheduled job %s (%s/%s) failed on attempt %d%s: %s",
                failure.job_id,
                failure.category,
                failure.type,
                failure.attempts,
                " and was abandoned" if failure.abandoned else "",
                failure.error,
            )
        self.last_report = report
        self.last_run_at = self._clock()
        self.last_error = None
        return report

    def _tick(self) -> None:
        with self._lock:
            self._ticking = True
            self._wake_pending = False

        delay = self._max_sleep
        try:
            self.run_once()
            delay = self.seconds_until_next()
        except Exception as exc:
            logger.exception("Notification scheduler tick failed")
            self.last_error = f"{type(exc).__name__}: {exc}"
        finally:
            with self._lock:
                self._ticking = False
                if self._wake_pending:
                    delay = 0.0
                self._reschedule(delay)

    def _reschedule(self, delay: float) -> None:
        # Caller holds ``self._lock``.
        if self._background is None:
            return
        self._background.modify_job(
            TICK_JOB_ID, next_run_time=self._now() + timedelta(seconds=delay)
        )

    def _now(self) -> datetime:
        return datetime.now(self._timezone)


__all__ = ["SchedulerRunner", "TICK_JOB_ID"]
