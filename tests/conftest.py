"""Shared fixtures: a throwaway SQLite database and a controllable clock."""

from __future__ import annotations

import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

TEST_DB_PATH = Path(tempfile.gettempdir()) / f"business_notifications_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["APP_TIMEZONE"] = "UTC"
os.environ["SCHEDULER_ENABLED"] = "false"

from app.application.use_cases.notifications import (  # noqa: E402
    BusinessChecks,
    NotificationEmitter,
    NotificationScheduler,
    RuleCatalog,
)
from app.infrastructure.database import Base, SessionLocal, engine, initialize_database  # noqa: E402
from app.utils import ensure_app_timezone  # noqa: E402


class FrozenClock:
    """Callable returning a fixed instant that tests move forward explicitly."""

    def __init__(self, start: datetime) -> None:
        self.now = ensure_app_timezone(start)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = ensure_app_timezone(value)
        return self.now


@pytest.fixture(autouse=True)
def database():
    """Recreate every table before each test."""

    Base.metadata.drop_all(bind=engine)
    initialize_database()
    yield
    engine.dispose()


@pytest.fixture
def session_factory():
    return SessionLocal


@pytest.fixture
def clock() -> FrozenClock:
    # A Wednesday.
    return FrozenClock(datetime(2024, 5, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def catalog(session_factory) -> RuleCatalog:
    return RuleCatalog(session_factory=session_factory)


@pytest.fixture
def emitter(catalog, session_factory, clock) -> NotificationEmitter:
    return NotificationEmitter(catalog, session_factory, clock=clock)


@pytest.fixture
def scheduler(emitter, session_factory, clock) -> NotificationScheduler:
    checks = BusinessChecks(emitter, session_factory)
    return NotificationScheduler(session_factory, checks.handlers(), clock=clock)
