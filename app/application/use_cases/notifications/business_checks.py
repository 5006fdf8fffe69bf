"""Scheduled checks that assemble business data and hand it to the emitter."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from app.domain.entities import ScheduledNotificationJob
from app.infrastructure.repositories import (
    SNAPSHOT_CASH_TRANSACTIONS,
    SNAPSHOT_CUSTOMERS,
    SNAPSHOT_INVOICES,
    SNAPSHOT_PRODUCTS,
    SnapshotRepository,
)
from app.utils import parse_datetime

from .emitter import DEFAULT_MIN_STOCK, CUSTOMER_OVERDUE_THRESHOLD, NotificationEmitter, days_until

JobHandler = Callable[[ScheduledNotificationJob, datetime], None]

logger = logging.getLogger(__name__)


class BusinessChecks:
    """Handlers dispatched by the scheduler for each job category."""

    def __init__(
        self,
        emitter: NotificationEmitter,
        session_factory: Callable[[], Session],
    ) -> None:
        self._emitter = emitter
        self._session_factory = session_factory

    def handlers(self) -> dict[tuple[str, str | None], JobHandler]:
        """Return the handler registry keyed by ``(category, type)``.

        A ``None`` type matches every type of the category.
        """

        return {
            ("invoices", None): self.invoice_due_check,
            ("inventory", "daily_check"): self.daily_stock_check,
            ("customers", "weekly_overdue_check"): self.weekly_customer_check,
            ("financial_performance", "monthly_report"): self.monthly_report,
        }

    def invoice_due_check(self, job: ScheduledNotificationJob, now: datetime) -> None:
        invoice_id = job.data.get("invoice_id")
        current = self._find_record(SNAPSHOT_INVOICES, invoice_id)
        if current is not None and (_is_paid(current) or current.get("deleted_at")):
            logger.info("Invoice %s is settled or deleted; reminder skipped", invoice_id)
            return

        if job.type == "due_today":
            due = parse_datetime(job.data.get("due_date"))
            if due is not None and days_until(due, now) == 0:
                self._emitter.create_smart_notification(
                    "invoices",
                    "due_today",
                    {**job.data, "days_remaining": 0},
                    job.user_id,
                    job.company_id,
                )
                return

        self._emitter.notify_invoice_due(job.data, job.user_id, job.company_id)

    def daily_stock_check(self, job: ScheduledNotificationJob, now: datetime) -> None:
        products = self._user_records(SNAPSHOT_PRODUCTS, job.user_id)
        for product in products:
            # Products without an explicit active flag are skipped.
            if not product.get("is_active"):
                continue
            stock = product.get("stock")
            if stock is None:
                continue
            if stock <= (product.get("min_stock") or DEFAULT_MIN_STOCK):
                self._emitter.notify_low_stock(
                    {
                        **product,
                        "product_id": product.get("id"),
                        "product_name": product.get("name"),
                    },
                    job.user_id,
                    job.company_id,
                )

    def weekly_customer_check(self, job: ScheduledNotificationJob, now: datetime) -> None:
        customers = self._user_records(SNAPSHOT_CUSTOMERS, job.user_id)
        with self._session_factory() as session:
            invoices = SnapshotRepository(session).list(SNAPSHOT_INVOICES)

        for customer in customers:
            if customer.get("deleted_at"):
                continue
            overdue: list[tuple[datetime, dict[str, Any]]] = []
            for invoice in invoices:
                if invoice.get("customer_id") != customer.get("id"):
                    continue
                if _is_paid(invoice) or invoice.get("deleted_at"):
                    continue
                due = parse_datetime(invoice.get("due_date"))
                if due is not None and due < now:
                    overdue.append((due, invoice))

            overdue_amount = sum(_amount(invoice.get("total_amount")) for _, invoice in overdue)
            if overdue_amount <= CUSTOMER_OVERDUE_THRESHOLD:
                continue

            oldest_due = min(due for due, _ in overdue)
            self._emitter.notify_customer_overdue(
                {
                    **customer,
                    "customer_id": customer.get("id"),
                    "customer_name": customer.get("name"),
                    "overdue_amount": round(overdue_amount, 2),
                    "days_overdue": (now - oldest_due).days,
                },
                job.user_id,
                job.company_id,
            )

    def monthly_report(self, job: ScheduledNotificationJob, now: datetime) -> None:
        month_end = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        month_start = month_end - relativedelta(months=1)

        with self._session_factory() as session:
            snapshots = SnapshotRepository(session)
            invoices = snapshots.list_for_user(SNAPSHOT_INVOICES, job.user_id)
            transactions = snapshots.list_for_user(SNAPSHOT_CASH_TRANSACTIONS, job.user_id)

        month_invoices = [
            invoice
            for invoice in invoices
            if not invoice.get("deleted_at")
            and _within(parse_datetime(invoice.get("invoice_date")), month_start, month_end)
        ]
        total_sales = sum(
            _amount(invoice.get("total_amount")) for invoice in month_invoices if _is_paid(invoice)
        )
        total_expenses = sum(
            _amount(transaction.get("amount"))
            for transaction in transactions
            if not transaction.get("deleted_at")
            and transaction.get("transaction_type") == "expense"
            and _within(parse_datetime(transaction.get("created_at")), month_start, month_end)
        )

        self._emitter.notify_monthly_report(
            {
                "month": month_start.month,
                "year": month_start.year,
                "total_sales": round(total_sales, 2),
                "total_expenses": round(total_expenses, 2),
                "net_profit": round(total_sales - total_expenses, 2),
                "invoices_count": len(month_invoices),
            },
            job.user_id,
            job.company_id,
        )

    def _user_records(self, name: str, user_id: str) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            return SnapshotRepository(session).list_for_user(name, user_id)

    def _find_record(self, name: str, record_id: Any) -> dict[str, Any] | None:
        if record_id is None:
            return None
        with self._session_factory() as session:
            records = SnapshotRepository(session).list(name)
        for record in records:
            if str(record.get("id")) == str(record_id):
                return record
        return None


def _is_paid(invoice: dict[str, Any]) -> bool:
    return invoice.get("status") == "paid"


def _amount(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _within(value: datetime | None, start: datetime, end: datetime) -> bool:
    return value is not None and start <= value < end


__all__ = ["BusinessChecks", "JobHandler"]
