"""Tests for the scheduled business checks and the invoice reminder flow."""

from datetime import datetime, timedelta, timezone

from app.infrastructure.repositories import (
    SNAPSHOT_CASH_TRANSACTIONS,
    SNAPSHOT_CUSTOMERS,
    SNAPSHOT_INVOICES,
    SNAPSHOT_PRODUCTS,
    NotificationRepository,
    SnapshotRepository,
)


def _seed(session_factory, name, records):
    with session_factory() as session:
        SnapshotRepository(session).replace(name, records)


def _notifications(session_factory, user_id="u1"):
    with session_factory() as session:
        return NotificationRepository(session).list_for_user(user_id)


def test_invoice_reminder_end_to_end(scheduler, session_factory, clock):
    due_date = clock.now + timedelta(days=3)
    _seed(
        session_factory,
        SNAPSHOT_INVOICES,
        [
            {
                "id": "inv-1",
                "user_id": "u1",
                "invoice_number": "INV-1",
                "customer_name": "Acme",
                "status": "pending",
                "total_amount": 1200,
                "due_date": due_date.isoformat(),
            }
        ],
    )

    scheduler.setup_user_schedule("u1")

    reminders = [
        job for job in scheduler.get_scheduled_notifications("u1") if job.category == "invoices"
    ]
    assert [(job.type, job.data["days_remaining"]) for job in reminders] == [
        ("due_reminder", 3),
        ("due_today", 0),
    ]
    reminder = reminders[0]
    assert reminder.scheduled_for == due_date - timedelta(days=3)

    clock.set(reminder.scheduled_for)
    report = scheduler.run_due()

    assert reminder.id in report.executed
    [notification] = _notifications(session_factory)
    assert notification.category == "invoices"
    assert notification.title == "Invoice due soon"
    assert "3" in notification.message
    assert notification.message == "Invoice INV-1 is due in 3 days"
    assert notification.related_entity_id == "inv-1"


def test_date_only_due_date_gets_reminder_today(scheduler, session_factory, clock):
    due_date = (clock.now + timedelta(days=3)).date().isoformat()
    _seed(
        session_factory,
        SNAPSHOT_INVOICES,
        [{"id": "inv-4", "user_id": "u1", "invoice_number": "INV-4", "due_date": due_date}],
    )

    scheduler.setup_user_schedule("u1")

    reminders = {
        job.type: job
        for job in scheduler.get_scheduled_notifications("u1")
        if job.category == "invoices"
    }
    assert reminders["due_reminder"].scheduled_for == clock.now
    assert reminders["due_reminder"].data["days_remaining"] == 3
    assert reminders["due_today"].scheduled_for == datetime(2024, 5, 18, tzinfo=timezone.utc)

    scheduler.run_due()

    [notification] = _notifications(session_factory)
    assert notification.message == "Invoice INV-4 is due in 3 days"


def test_reminder_from_an_earlier_day_is_not_seeded(scheduler, session_factory, clock):
    due_date = clock.now + timedelta(days=2, hours=14)
    _seed(session_factory, SNAPSHOT_INVOICES, [{"id": "inv-5", "user_id": "u1", "due_date": due_date.isoformat()}])

    scheduler.setup_user_schedule("u1")

    types = [job.type for job in scheduler.get_scheduled_notifications("u1") if job.category == "invoices"]
    assert types == ["due_today"]


def test_due_today_job_emits_due_today(scheduler, session_factory, clock):
    due_date = clock.now + timedelta(hours=2)
    _seed(
        session_factory,
        SNAPSHOT_INVOICES,
        [
            {
                "id": "inv-2",
                "user_id": "u1",
                "invoice_number": "INV-2",
                "customer_name": "Acme",
                "total_amount": 800,
                "due_date": due_date.isoformat(),
            }
        ],
    )
    scheduler.setup_user_schedule("u1")

    clock.set(due_date)
    scheduler.run_due()

    [notification] = _notifications(session_factory)
    assert notification.title == "Invoice due today"
    assert notification.message == "Invoice INV-2 for Acme is due today (800)"


def test_paid_invoice_reminder_is_skipped(scheduler, session_factory, clock):
    invoice = {
        "id": "inv-3",
        "user_id": "u1",
        "invoice_number": "INV-3",
        "due_date": (clock.now + timedelta(days=3, hours=1)).isoformat(),
    }
    _seed(session_factory, SNAPSHOT_INVOICES, [invoice])
    scheduler.setup_user_schedule("u1")
    _seed(session_factory, SNAPSHOT_INVOICES, [{**invoice, "status": "paid"}])

    clock.advance(hours=1, minutes=1)
    scheduler.run_due()

    assert _notifications(session_factory) == []


def test_setup_skips_past_settled_and_undated_invoices(scheduler, session_factory, clock):
    _seed(
        session_factory,
        SNAPSHOT_INVOICES,
        [
            {"id": "past", "user_id": "u1", "due_date": (clock.now - timedelta(days=1)).isoformat()},
            {"id": "paid", "user_id": "u1", "status": "paid", "due_date": "2030-01-01"},
            {"id": "gone", "user_id": "u1", "deleted_at": "2024-01-01", "due_date": "2030-01-01"},
            {"id": "undated", "user_id": "u1"},
            {"id": "other", "user_id": "u2", "due_date": "2030-01-01"},
            {"id": "near", "user_id": "u1", "due_date": (clock.now + timedelta(days=1)).isoformat()},
        ],
    )

    scheduler.setup_user_schedule("u1")

    invoice_jobs = [
        (job.data["invoice_id"], job.type)
        for job in scheduler.get_scheduled_notifications("u1")
        if job.category == "invoices"
    ]
    assert invoice_jobs == [("near", "due_today")]


def test_setup_anchors_recurring_checks(scheduler, clock):
    # 2024-05-15 09:00 is a Wednesday.
    scheduler.setup_user_schedule("u1")

    jobs = {job.type: job for job in scheduler.get_scheduled_notifications("u1")}
    utc = timezone.utc
    assert jobs["daily_check"].scheduled_for == datetime(2024, 5, 16, 8, tzinfo=utc)
    assert jobs["weekly_overdue_check"].scheduled_for == datetime(2024, 5, 20, 10, tzinfo=utc)
    assert jobs["monthly_report"].scheduled_for == datetime(2024, 6, 1, 9, tzinfo=utc)
    assert all(job.recurring for job in jobs.values())


def test_weekly_check_uses_today_on_monday_morning(scheduler, clock):
    clock.set(datetime(2024, 5, 20, 8, 30, tzinfo=timezone.utc))

    scheduler.setup_user_schedule("u1")

    jobs = {job.type: job for job in scheduler.get_scheduled_notifications("u1")}
    assert jobs["weekly_overdue_check"].scheduled_for == datetime(2024, 5, 20, 10, tzinfo=timezone.utc)


def test_setup_is_idempotent(scheduler, clock):
    first = scheduler.setup_user_schedule("u1")
    second = scheduler.setup_user_schedule("u1")

    assert len(first) == 3
    assert second == []


def test_daily_stock_check_notifies_low_products(scheduler, session_factory, clock):
    _seed(
        session_factory,
        SNAPSHOT_PRODUCTS,
        [
            {"id": 1, "user_id": "u1", "name": "Rice", "stock": 4, "min_stock": 5, "is_active": True},
            {"id": 2, "user_id": "u1", "name": "Tea", "stock": 0, "is_active": True},
            {"id": 3, "user_id": "u1", "name": "Salt", "stock": 50, "is_active": True},
            {"id": 4, "user_id": "u1", "name": "Old", "stock": 1, "is_active": False},
            {"id": 5, "user_id": "u2", "name": "Sugar", "stock": 1, "is_active": True},
            {"id": 6, "user_id": "u1", "name": "Unflagged", "stock": 0},
        ],
    )
    scheduler.schedule_notification("u1", "inventory", "daily_check", clock.now, {"user_id": "u1"})

    scheduler.run_due()

    titles = sorted((n.related_entity_id, n.title) for n in _notifications(session_factory))
    assert titles == [("1", "Low stock"), ("2", "Out of stock")]


def test_weekly_customer_check_sums_overdue_invoices(scheduler, session_factory, clock):
    _seed(
        session_factory,
        SNAPSHOT_CUSTOMERS,
        [
            {"id": "c1", "user_id": "u1", "name": "Acme"},
            {"id": "c2", "user_id": "u1", "name": "Small"},
        ],
    )
    _seed(
        session_factory,
        SNAPSHOT_INVOICES,
        [
            {"id": "i1", "customer_id": "c1", "total_amount": 700, "due_date": (clock.now - timedelta(days=10)).isoformat()},
            {"id": "i2", "customer_id": "c1", "total_amount": 600, "due_date": (clock.now - timedelta(days=2)).isoformat()},
            {"id": "i3", "customer_id": "c1", "total_amount": 5000, "status": "paid", "due_date": (clock.now - timedelta(days=2)).isoformat()},
            {"id": "i4", "customer_id": "c2", "total_amount": 900, "due_date": (clock.now - timedelta(days=5)).isoformat()},
        ],
    )
    scheduler.schedule_notification("u1", "customers", "weekly_overdue_check", clock.now, {"user_id": "u1"})

    scheduler.run_due()

    [notification] = _notifications(session_factory)
    assert notification.related_entity_id == "c1"
    assert notification.message == 'Customer "Acme" owes 1300 SAR, overdue for 10 days'


def test_monthly_report_covers_previous_month(scheduler, session_factory, clock):
    clock.set(datetime(2024, 6, 1, 9, tzinfo=timezone.utc))
    _seed(
        session_factory,
        SNAPSHOT_INVOICES,
        [
            {"id": "a", "user_id": "u1", "status": "paid", "total_amount": 3000, "invoice_date": "2024-05-03"},
            {"id": "b", "user_id": "u1", "status": "pending", "total_amount": 900, "invoice_date": "2024-05-20"},
            {"id": "c", "user_id": "u1", "status": "paid", "total_amount": 9999, "invoice_date": "2024-04-30"},
        ],
    )
    _seed(
        session_factory,
        SNAPSHOT_CASH_TRANSACTIONS,
        [
            {"id": 1, "user_id": "u1", "transaction_type": "expense", "amount": 1200, "created_at": "2024-05-10T10:00:00"},
            {"id": 2, "user_id": "u1", "transaction_type": "income", "amount": 500, "created_at": "2024-05-10T10:00:00"},
        ],
    )
    scheduler.schedule_notification(
        "u1", "financial_performance", "monthly_report", clock.now, {"user_id": "u1"}
    )

    scheduler.run_due()

    [notification] = _notifications(session_factory)
    assert notification.message == "Total sales: 3000 SAR, net profit: 1800 SAR"
    assert notification.type == "warning"
