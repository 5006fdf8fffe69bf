"""Wiring of the notification engine for one application process."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.config import Settings
from app.infrastructure.notifications import NotificationConnectionManager, NotificationPublisher
from app.infrastructure.scheduling import SchedulerRunner
from app.utils import now_in_app_timezone

from .business_checks import BusinessChecks
from .emitter import NotificationEmitter
from .rule_catalog import RuleCatalog
from .scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


@dataclass
class NotificationRuntime:
    """Process-wide notification components shared by the API and the runner."""

    catalog: RuleCatalog
    emitter: NotificationEmitter
    scheduler: NotificationScheduler
    runner: SchedulerRunner
    publisher: NotificationPublisher
    session_factory: Callable[[], Session]
    scheduler_enabled: bool = True

    @property
    def connections(self) -> NotificationConnectionManager:
        return self.publisher.manager

    def start(self) -> None:
        applied = self.catalog.load_overrides()
        if applied:
            logger.info("Applied %d notification rule override(s)", applied)
        if self.scheduler_enabled:
            self.runner.start()
        else:
            logger.info("Notification scheduler runner disabled by configuration")

    def shutdown(self) -> None:
        self.runner.shutdown()
        self.publisher.bind_loop(None)


def build_notification_runtime(
    settings: Settings,
    session_factory: Callable[[], Session],
    *,
    clock: Callable[[], datetime] = now_in_app_timezone,
) -> NotificationRuntime:
    """Assemble the catalog, emitter, scheduler and runner from ``settings``."""

    publisher = NotificationPublisher(
        NotificationConnectionManager(settings.notification_max_connections_per_user)
    )
    catalog = RuleCatalog(session_factory=session_factory)
    emitter = NotificationEmitter(
        catalog,
        session_factory,
        publisher=publisher,
        dedup_window=timedelta(hours=settings.notification_dedup_window_hours),
        clock=clock,
    )
    checks = BusinessChecks(emitter, session_factory)
    scheduler = NotificationScheduler(
        session_factory,
        checks.handlers(),
        clock=clock,
        retention=timedelta(days=settings.scheduled_job_retention_days),
        max_attempts=settings.scheduled_job_max_attempts,
        retry_base_delay=timedelta(seconds=settings.scheduled_job_retry_base_seconds),
    )
    runner = SchedulerRunner(
        scheduler, max_sleep=settings.scheduler_max_sleep_seconds, clock=clock
    )
    scheduler.add_listener(runner.wake)

    return NotificationRuntime(
        catalog=catalog,
        emitter=emitter,
        scheduler=scheduler,
        runner=runner,
        publisher=publisher,
        session_factory=session_factory,
        scheduler_enabled=settings.scheduler_enabled,
    )


__all__ = ["NotificationRuntime", "build_notification_runtime"]
