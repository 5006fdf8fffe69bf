"""Turn satisfied notification rules into persisted notifications."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from app.domain.entities import (
    NOTIFICATION_TYPE_CRITICAL,
    NOTIFICATION_TYPE_ERROR,
    NOTIFICATION_TYPE_INFO,
    NOTIFICATION_TYPE_WARNING,
    Notification,
    Priority,
)
from app.infrastructure.notifications import NotificationPublisher
from app.infrastructure.repositories import NotificationRepository
from app.utils import now_in_app_timezone, parse_datetime

from .conditions import evaluate_condition
from .rule_catalog import RuleCatalog
from .templating import interpolate_template

logger = logging.getLogger(__name__)

_PRIORITY_TO_TYPE: dict[Priority, str] = {
    Priority.CRITICAL: NOTIFICATION_TYPE_CRITICAL,
    Priority.HIGH: NOTIFICATION_TYPE_ERROR,
    Priority.MEDIUM: NOTIFICATION_TYPE_WARNING,
    Priority.LOW: NOTIFICATION_TYPE_INFO,
}

_ENTITY_ID_KEYS = (
    "id",
    "entity_id",
    "invoice_id",
    "product_id",
    "customer_id",
    "check_id",
    "supplier_id",
)

DEFAULT_MIN_STOCK = 10
LOW_CASH_BALANCE_THRESHOLD = 10000
CUSTOMER_OVERDUE_THRESHOLD = 1000


def map_priority_to_type(priority: Priority | str) -> str:
    """Map a rule priority onto the coarser notification type tag."""

    try:
        return _PRIORITY_TO_TYPE[Priority(priority)]
    except ValueError:
        return NOTIFICATION_TYPE_INFO


def resolve_related_entity_id(data: Mapping[str, Any]) -> str | None:
    """Return the identifier of the record a notification is about."""

    for key in _ENTITY_ID_KEYS:
        value = data.get(key)
        if value is not None and value != "":
            return str(value)
    return None


def days_until(due: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``due``, rounded up (negative when past)."""

    return math.ceil((due - now).total_seconds() / 86400)


class NotificationEmitter:
    """Create notifications from the rule catalog.

    The duplicate check and the insert run under one lock so two concurrent
    calls for the same entity cannot both pass the check.
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        session_factory: Callable[[], Session],
        *,
        publisher: NotificationPublisher | None = None,
        dedup_window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._catalog = catalog
        self._session_factory = session_factory
        self._publisher = publisher
        self._dedup_window = dedup_window
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def catalog(self) -> RuleCatalog:
        return self._catalog

    def create_smart_notification(
        self,
        category: str,
        type_: str,
        data: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        """Create a notification for ``(category, type_)`` when its rule applies.

        Returns ``False`` when no enabled rule exists, the rule condition is not
        met or a similar notification was created within the dedup window.
        Persistence errors propagate to the caller.
        """

        rule = self._catalog.get(category, type_)
        if rule is None:
            logger.debug("No enabled rule for %s/%s", category, type_)
            return False

        if not evaluate_condition(rule.condition, data):
            logger.debug("Condition of rule '%s' not met", rule.id)
            return False

        related_entity_id = resolve_related_entity_id(data)
        template = rule.template

        with self._lock:
            now = self._clock()
            with self._session_factory() as session:
                repository = NotificationRepository(session)
                if repository.exists_recent(
                    user_id=user_id,
                    category=category,
                    related_entity_id=related_entity_id,
                    since=now - self._dedup_window,
                ):
                    logger.debug(
                        "Similar %s notification for entity %s already sent to user %s",
                        category,
                        related_entity_id,
                        user_id,
                    )
                    return False

                action_url = interpolate_template(template.action_url, data)
                saved = repository.create(
                    Notification(
                        id=None,
                        user_id=user_id,
                        type=map_priority_to_type(template.priority),
                        category=category,
                        priority=template.priority.value,
                        title=interpolate_template(template.title, data),
                        message=interpolate_template(template.message, data),
                        action_required=template.action_required,
                        action_text=template.action_text,
                        action_url=action_url or None,
                        related_entity_id=related_entity_id,
                        related_entity_type=category,
                        auto_resolve=not template.action_required,
                        company_id=company_id,
                        created_at=now,
                    )
                )

        logger.info(
            "Notification %s created from rule '%s' for user %s", saved.id, rule.id, user_id
        )
        if self._publisher is not None:
            self._publisher.dispatch(saved)
        return True

    def notify_invoice_due(
        self,
        invoice: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        due = parse_datetime(invoice.get("due_date"))
        if due is None:
            logger.warning("Invoice %s has no usable due date", invoice.get("invoice_id"))
            return False

        remaining = days_until(due, self._clock())
        window = self._before_due("invoices", "due_reminder", default=3)
        if 0 <= remaining <= window:
            return self.create_smart_notification(
                "invoices",
                "due_reminder",
                {**invoice, "days_remaining": remaining},
                user_id,
                company_id,
            )
        if remaining < 0:
            return self.create_smart_notification(
                "invoices",
                "overdue_alert",
                {**invoice, "days_overdue": abs(remaining)},
                user_id,
                company_id,
            )
        return False

    def notify_low_stock(
        self,
        product: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        stock = product.get("stock")
        if stock is None:
            return False
        if stock == 0:
            return self.create_smart_notification(
                "inventory", "out_of_stock", product, user_id, company_id
            )
        if stock <= (product.get("min_stock") or DEFAULT_MIN_STOCK):
            return self.create_smart_notification(
                "inventory", "low_stock", product, user_id, company_id
            )
        return False

    def notify_check_due(
        self,
        check: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        due = parse_datetime(check.get("due_date"))
        if due is None:
            return False
        remaining = days_until(due, self._clock())
        if 0 <= remaining <= self._before_due("checks", "due_reminder", default=2):
            return self.create_smart_notification(
                "checks",
                "due_reminder",
                {**check, "days_remaining": remaining},
                user_id,
                company_id,
            )
        return False

    def notify_low_cash_balance(
        self,
        balance: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        current_balance = balance.get("current_balance")
        if current_balance is None or current_balance >= LOW_CASH_BALANCE_THRESHOLD:
            return False
        return self.create_smart_notification(
            "cash_flow",
            "low_balance",
            {"current_balance": current_balance},
            user_id,
            company_id,
        )

    def notify_customer_overdue(
        self,
        customer: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        if (customer.get("overdue_amount") or 0) <= CUSTOMER_OVERDUE_THRESHOLD:
            return False
        return self.create_smart_notification(
            "customers", "payment_overdue", customer, user_id, company_id
        )

    def notify_supplier_payment_due(
        self,
        payment: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        due = parse_datetime(payment.get("payment_due_date"))
        if due is None:
            return False
        remaining = days_until(due, self._clock())
        if 0 <= remaining <= self._before_due("suppliers", "payment_due", default=5):
            return self.create_smart_notification(
                "suppliers",
                "payment_due",
                {**payment, "days_remaining": remaining},
                user_id,
                company_id,
            )
        return False

    def notify_security_alert(
        self,
        event: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        return self.create_smart_notification(
            "security", "security_alert", event, user_id, company_id
        )

    def notify_monthly_report(
        self,
        report: Mapping[str, Any],
        user_id: str,
        company_id: str | None = None,
    ) -> bool:
        return self.create_smart_notification(
            "financial_performance", "monthly_report", report, user_id, company_id
        )

    def _before_due(self, category: str, type_: str, *, default: int) -> int:
        rule = self._catalog.get(category, type_)
        if rule is None or rule.timing.before_due is None:
            return default
        return rule.timing.before_due


__all__ = [
    "NotificationEmitter",
    "days_until",
    "map_priority_to_type",
    "resolve_related_entity_id",
]
