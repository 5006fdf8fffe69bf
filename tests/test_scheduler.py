"""Tests for scheduled job execution, recurrence, retries and pruning."""

from datetime import datetime, timedelta, timezone

import pytest

from app.application.use_cases.notifications import NotificationScheduler, next_occurrence
from app.domain.entities import Frequency, ScheduledNotificationJob
from app.infrastructure.repositories import ScheduledJobRepository, KeyValueRepository, SCHEDULED_JOBS_KEY
from app.utils import ensure_app_timezone


class CountingHandler:
    def __init__(self, failures=0):
        self.calls = []
        self.failures = failures

    def __call__(self, job, now):
        self.calls.append((job.id, now))
        if len(self.calls) <= self.failures:
            raise RuntimeError("store unavailable")


@pytest.fixture
def handler():
    return CountingHandler()


@pytest.fixture
def make_scheduler(session_factory, clock):
    def _make(handlers, **kwargs):
        return NotificationScheduler(session_factory, handlers, clock=clock, **kwargs)

    return _make


def _stored_jobs(session_factory):
    with session_factory() as session:
        jobs, _ = ScheduledJobRepository(session).load()
    return {job.id: job for job in jobs}


def test_schedule_persists_pending_job(make_scheduler, handler, session_factory, clock):
    scheduler = make_scheduler({("inventory", "daily_check"): handler})

    job_id = scheduler.schedule_notification(
        "u1", "inventory", "daily_check", clock.now + timedelta(hours=1), {"user_id": "u1"}
    )

    stored = _stored_jobs(session_factory)[job_id]
    assert stored.executed is False
    assert stored.data == {"user_id": "u1"}
    assert stored.created_at == clock.now
    assert scheduler.next_due_at() == clock.now + timedelta(hours=1)
    assert [job.id for job in scheduler.get_scheduled_notifications("u1")] == [job_id]
    assert scheduler.get_scheduled_notifications("u2") == []


def test_recurring_job_requires_frequency(make_scheduler, handler, clock):
    scheduler = make_scheduler({})

    with pytest.raises(ValueError):
        scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now, {}, recurring=True)


def test_jobs_not_yet_due_are_left_alone(make_scheduler, handler, clock):
    scheduler = make_scheduler({("inventory", "daily_check"): handler})
    scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now + timedelta(minutes=1), {})

    report = scheduler.run_due()

    assert handler.calls == []
    assert report.executed == []


def test_due_job_runs_exactly_once(make_scheduler, handler, session_factory, clock):
    scheduler = make_scheduler({("inventory", "daily_check"): handler})
    job_id = scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now, {})

    first = scheduler.run_due()
    second = scheduler.run_due()

    assert len(handler.calls) == 1
    assert first.executed == [job_id]
    assert second.executed == []
    stored = _stored_jobs(session_factory)[job_id]
    assert stored.executed is True
    assert stored.executed_at == clock.now


def test_due_jobs_run_in_due_order(make_scheduler, handler, clock):
    scheduler = make_scheduler({("inventory", "daily_check"): handler})
    late = scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now - timedelta(hours=1), {})
    early = scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now - timedelta(hours=5), {})

    scheduler.run_due()

    assert [job_id for job_id, _ in handler.calls] == [early, late]


def test_wildcard_handler_matches_every_type(make_scheduler, handler, clock):
    scheduler = make_scheduler({("invoices", None): handler})
    scheduler.schedule_notification("u1", "invoices", "due_reminder", clock.now, {})
    scheduler.schedule_notification("u1", "invoices", "due_today", clock.now, {})

    scheduler.run_due()

    assert len(handler.calls) == 2


def test_unknown_category_is_marked_executed(make_scheduler, session_factory, clock, caplog):
    scheduler = make_scheduler({})
    job_id = scheduler.schedule_notification("u1", "mystery", "kind", clock.now, {})

    report = scheduler.run_due()

    assert report.executed == [job_id]
    assert _stored_jobs(session_factory)[job_id].executed is True
    assert "No handler for scheduled notification mystery/kind" in caplog.text


@pytest.mark.parametrize(
    ("frequency", "start", "expected"),
    [
        (Frequency.DAILY, datetime(2024, 5, 15, 8), datetime(2024, 5, 16, 8)),
        (Frequency.WEEKLY, datetime(2024, 5, 13, 10), datetime(2024, 5, 20, 10)),
        (Frequency.MONTHLY, datetime(2024, 1, 31, 9), datetime(2024, 2, 29, 9)),
        (Frequency.MONTHLY, datetime(2024, 12, 1, 9), datetime(2025, 1, 1, 9)),
    ],
)
def test_next_occurrence(frequency, start, expected):
    assert next_occurrence(start, frequency) == expected


def test_monthly_occurrence_returns_to_anchor_day():
    assert next_occurrence(datetime(2024, 2, 29, 9), Frequency.MONTHLY, 31) == datetime(2024, 3, 31, 9)
    assert next_occurrence(datetime(2024, 3, 31, 9), Frequency.MONTHLY, 31) == datetime(2024, 4, 30, 9)


def test_recurring_job_enqueues_successor(make_scheduler, handler, session_factory, clock):
    scheduler = make_scheduler({("financial_performance", "monthly_report"): handler})
    scheduled_for = clock.set(datetime(2024, 1, 31, 9, tzinfo=timezone.utc))
    job_id = scheduler.schedule_notification(
        "u1",
        "financial_performance",
        "monthly_report",
        scheduled_for,
        {"user_id": "u1"},
        recurring=True,
        frequency="monthly",
    )

    report = scheduler.run_due()

    [successor_id] = report.enqueued
    jobs = _stored_jobs(session_factory)
    assert jobs[job_id].executed is True
    successor = jobs[successor_id]
    assert successor.executed is False
    assert successor.recurring is True
    assert successor.frequency is Frequency.MONTHLY
    assert successor.data == {"user_id": "u1"}
    assert successor.scheduled_for == ensure_app_timezone(datetime(2024, 2, 29, 9))
    assert successor.anchor_day == 31


def test_monthly_series_keeps_its_anchor_day(make_scheduler, handler, session_factory, clock):
    scheduler = make_scheduler({("financial_performance", "monthly_report"): handler})
    clock.set(datetime(2024, 1, 31, 9, tzinfo=timezone.utc))
    scheduler.schedule_notification(
        "u1", "financial_performance", "monthly_report", clock.now, {}, recurring=True, frequency="monthly"
    )

    due_dates = []
    for _ in range(3):
        [successor_id] = scheduler.run_due().enqueued
        successor = _stored_jobs(session_factory)[successor_id]
        due_dates.append(successor.scheduled_for.date())
        clock.set(successor.scheduled_for)

    assert [str(value) for value in due_dates] == ["2024-02-29", "2024-03-31", "2024-04-30"]


def test_failed_job_is_retried_with_backoff(make_scheduler, session_factory, clock):
    handler = CountingHandler(failures=1)
    scheduler = make_scheduler(
        {("inventory", "daily_check"): handler},
        retry_base_delay=timedelta(minutes=1),
    )
    job_id = scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now, {})

    report = scheduler.run_due()

    [failure] = report.failures
    assert failure.job_id == job_id
    assert failure.attempts == 1
    assert failure.abandoned is False
    assert "store unavailable" in failure.error
    stored = _stored_jobs(session_factory)[job_id]
    assert stored.executed is False
    assert stored.next_attempt_at == clock.now + timedelta(minutes=1)

    assert scheduler.run_due().executed == []

    clock.advance(minutes=1)
    assert scheduler.run_due().executed == [job_id]
    assert len(handler.calls) == 2


def test_job_is_abandoned_after_max_attempts(make_scheduler, session_factory, clock):
    handler = CountingHandler(failures=10)
    scheduler = make_scheduler(
        {("inventory", "daily_check"): handler},
        max_attempts=2,
        retry_base_delay=timedelta(minutes=1),
    )
    job_id = scheduler.schedule_notification(
        "u1", "inventory", "daily_check", clock.now, {}, recurring=True, frequency="daily"
    )

    scheduler.run_due()
    clock.advance(minutes=1)
    report = scheduler.run_due()

    [failure] = report.failures
    assert failure.abandoned is True
    assert report.executed == [job_id]
    assert len(report.enqueued) == 1
    stored = _stored_jobs(session_factory)[job_id]
    assert stored.abandoned is True
    assert stored.attempts == 2
    assert stored.last_error == "RuntimeError: store unavailable"


def test_executed_jobs_past_retention_are_pruned(make_scheduler, handler, session_factory, clock):
    scheduler = make_scheduler({("inventory", "daily_check"): handler})

    def executed_job(job_id, age):
        return ScheduledNotificationJob(
            id=job_id,
            user_id="u1",
            category="inventory",
            type="daily_check",
            scheduled_for=clock.now - age,
            executed=True,
            executed_at=clock.now - age,
        )

    with session_factory() as session:
        ScheduledJobRepository(session).save(
            [executed_job("old", timedelta(days=8)), executed_job("recent", timedelta(days=6))]
        )
    due_id = scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now, {})

    report = scheduler.run_due()

    assert report.pruned == 1
    assert set(_stored_jobs(session_factory)) == {"recent", due_id}


def test_cancel_removes_job(make_scheduler, handler, session_factory, clock):
    scheduler = make_scheduler({("inventory", "daily_check"): handler})
    job_id = scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now, {})

    assert scheduler.cancel_scheduled_notification(job_id) is True
    assert scheduler.cancel_scheduled_notification(job_id) is False
    scheduler.run_due()

    assert handler.calls == []
    assert _stored_jobs(session_factory) == {}


def test_concurrent_writer_changes_are_kept(make_scheduler, handler, session_factory, clock):
    first = make_scheduler({("inventory", "daily_check"): handler})
    second = make_scheduler({("inventory", "daily_check"): handler})

    a = first.schedule_notification("u1", "inventory", "daily_check", clock.now + timedelta(hours=1), {})
    b = second.schedule_notification("u1", "inventory", "daily_check", clock.now + timedelta(hours=2), {})
    c = first.schedule_notification("u1", "inventory", "daily_check", clock.now + timedelta(hours=3), {})

    assert set(_stored_jobs(session_factory)) == {a, b, c}


def test_malformed_entries_are_skipped(make_scheduler, handler, session_factory, clock):
    with session_factory() as session:
        KeyValueRepository(session).set(
            SCHEDULED_JOBS_KEY,
            [
                {"id": "broken"},
                {
                    "id": "ok",
                    "user_id": "u1",
                    "category": "inventory",
                    "type": "daily_check",
                    "scheduled_for": clock.now.isoformat(),
                },
            ],
        )
    scheduler = make_scheduler({("inventory", "daily_check"): handler})

    report = scheduler.run_due()

    assert report.executed == ["ok"]


def test_non_list_value_is_treated_as_empty(make_scheduler, handler, session_factory, clock):
    with session_factory() as session:
        KeyValueRepository(session).set(SCHEDULED_JOBS_KEY, {"not": "a list"})
    scheduler = make_scheduler({("inventory", "daily_check"): handler})

    assert scheduler.get_scheduled_notifications("u1") == []
    job_id = scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now, {})
    assert set(_stored_jobs(session_factory)) == {job_id}


def test_listeners_are_notified_on_schedule(make_scheduler, handler, clock):
    scheduler = make_scheduler({("inventory", "daily_check"): handler})
    calls = []
    scheduler.add_listener(lambda: calls.append(True))

    scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now, {})

    assert calls == [True]
