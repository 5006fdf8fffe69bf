"""Catalog of notification rules and its runtime overrides."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.entities import (
    ConditionOperator,
    Frequency,
    NotificationRule,
    Priority,
    RuleCondition,
    RuleRecipients,
    RuleTemplate,
    RuleTiming,
)
from app.domain.exceptions import InvalidRuleError, RuleNotFoundError
from app.infrastructure.repositories import KeyValueRepository

RULE_OVERRIDES_KEY = "notification_rule_overrides"

logger = logging.getLogger(__name__)

DEFAULT_RULES: tuple[NotificationRule, ...] = (
    NotificationRule(
        id="invoice_due_soon",
        category="invoices",
        type="due_reminder",
        enabled=True,
        timing=RuleTiming(before_due=3, recurring=True, frequency=Frequency.DAILY, time="09:00"),
        condition=RuleCondition(
            field="days_remaining", operator=ConditionOperator.LESS_THAN, threshold=4
        ),
        recipients=RuleRecipients(roles=("manager", "accountant")),
        template=RuleTemplate(
            title="Invoice due soon",
            message="Invoice {invoice_number} is due in {days_remaining} days",
            priority=Priority.HIGH,
            action_required=True,
            action_text="View invoice",
            action_url="/sales/invoices/{invoice_id}",
        ),
    ),
    NotificationRule(
        id="invoice_due_today",
        category="invoices",
        type="due_today",
        enabled=True,
        timing=RuleTiming(before_due=0, recurring=False, time="09:00"),
        condition=RuleCondition(
            field="days_remaining", operator=ConditionOperator.EQUAL_TO, threshold=0
        ),
        recipients=RuleRecipients(roles=("manager", "accountant")),
        template=RuleTemplate(
            title="Invoice due today",
            message="Invoice {invoice_number} for {customer_name} is due today ({amount})",
            priority=Priority.HIGH,
            action_required=True,
            action_text="View invoice",
            action_url="/sales/invoices/{invoice_id}",
        ),
    ),
    NotificationRule(
        id="invoice_overdue",
        category="invoices",
        type="overdue_alert",
        enabled=True,
        timing=RuleTiming(recurring=True, frequency=Frequency.DAILY, time="10:00"),
        condition=RuleCondition(
            field="days_overdue", operator=ConditionOperator.GREATER_THAN, threshold=0
        ),
        recipients=RuleRecipients(roles=("manager", "accountant", "sales")),
        template=RuleTemplate(
            title="Invoice overdue",
            message="Invoice {invoice_number} is {days_overdue} days overdue",
            priority=Priority.CRITICAL,
            action_required=True,
            action_text="Follow up collection",
            action_url="/sales/invoices/{invoice_id}",
        ),
    ),
    NotificationRule(
        id="low_stock_alert",
        category="inventory",
        type="low_stock",
        enabled=True,
        timing=RuleTiming(recurring=True, frequency=Frequency.DAILY, time="08:00"),
        condition=RuleCondition(
            field="stock", operator=ConditionOperator.LESS_THAN, threshold=10
        ),
        recipients=RuleRecipients(roles=("manager", "inventory_manager")),
        template=RuleTemplate(
            title="Low stock",
            message='Product "{product_name}" reached its minimum level ({stock} units)',
            priority=Priority.HIGH,
            action_required=True,
            action_text="Request restock",
            action_url="/inventory/products/{product_id}",
        ),
    ),
    NotificationRule(
        id="out_of_stock_alert",
        category="inventory",
        type="out_of_stock",
        enabled=True,
        timing=RuleTiming(recurring=False),
        condition=RuleCondition(
            field="stock", operator=ConditionOperator.EQUAL_TO, threshold=0
        ),
        recipients=RuleRecipients(roles=("manager", "inventory_manager", "sales")),
        template=RuleTemplate(
            title="Out of stock",
            message='Product "{product_name}" is completely out of stock',
            priority=Priority.CRITICAL,
            action_required=True,
            action_text="Urgent order",
            action_url="/inventory/products/{product_id}",
        ),
    ),
    NotificationRule(
        id="check_due_soon",
        category="checks",
        type="due_reminder",
        enabled=True,
        timing=RuleTiming(before_due=2, recurring=True, frequency=Frequency.DAILY, time="09:30"),
        condition=RuleCondition(
            field="days_remaining", operator=ConditionOperator.LESS_THAN, threshold=3
        ),
        recipients=RuleRecipients(roles=("manager", "accountant")),
        template=RuleTemplate(
            title="Check due soon",
            message="Check {check_number} from {customer_name} is due in {days_remaining} days",
            priority=Priority.HIGH,
            action_required=True,
            action_text="Manage checks",
            action_url="/checks/{check_id}",
        ),
    ),
    NotificationRule(
        id="low_cash_balance",
        category="cash_flow",
        type="low_balance",
        enabled=True,
        timing=RuleTiming(recurring=True, frequency=Frequency.DAILY, time="08:30"),
        condition=RuleCondition(
            field="current_balance", operator=ConditionOperator.LESS_THAN, threshold=10000
        ),
        recipients=RuleRecipients(roles=("manager", "accountant")),
        template=RuleTemplate(
            title="Low cash balance",
            message="Current cash register balance: {current_balance} SAR",
            priority=Priority.CRITICAL,
            action_required=True,
            action_text="Open cash register",
            action_url="/cash-register",
        ),
    ),
    NotificationRule(
        id="monthly_performance_report",
        category="financial_performance",
        type="monthly_report",
        enabled=True,
        timing=RuleTiming(recurring=True, frequency=Frequency.MONTHLY, time="09:00"),
        condition=RuleCondition(),
        recipients=RuleRecipients(roles=("manager", "owner")),
        template=RuleTemplate(
            title="Monthly financial performance report",
            message="Total sales: {total_sales} SAR, net profit: {net_profit} SAR",
            priority=Priority.MEDIUM,
            action_required=False,
            action_text="View detailed report",
            action_url="/reports/profit",
        ),
    ),
    NotificationRule(
        id="customer_payment_overdue",
        category="customers",
        type="payment_overdue",
        enabled=True,
        timing=RuleTiming(recurring=True, frequency=Frequency.WEEKLY, time="10:00"),
        condition=RuleCondition(
            field="overdue_amount", operator=ConditionOperator.GREATER_THAN, threshold=1000
        ),
        recipients=RuleRecipients(roles=("manager", "sales", "accountant")),
        template=RuleTemplate(
            title="Customer payment overdue",
            message='Customer "{customer_name}" owes {overdue_amount} SAR, overdue for {days_overdue} days',
            priority=Priority.HIGH,
            action_required=True,
            action_text="Follow up customer",
            action_url="/sales/customers/{customer_id}",
        ),
    ),
    NotificationRule(
        id="failed_login_attempts",
        category="security",
        type="security_alert",
        enabled=True,
        timing=RuleTiming(recurring=False),
        condition=RuleCondition(
            field="failed_attempts", operator=ConditionOperator.GREATER_THAN, threshold=3
        ),
        recipients=RuleRecipients(roles=("manager", "admin")),
        template=RuleTemplate(
            title="Failed login attempts",
            message="{attempt_count} failed login attempts recorded for user {username}",
            priority=Priority.CRITICAL,
            action_required=True,
            action_text="Review security",
            action_url="/comprehensive-security",
        ),
    ),
    NotificationRule(
        id="supplier_payment_due",
        category="suppliers",
        type="payment_due",
        enabled=True,
        timing=RuleTiming(before_due=5, recurring=True, frequency=Frequency.DAILY, time="09:00"),
        condition=RuleCondition(
            field="days_remaining", operator=ConditionOperator.LESS_THAN, threshold=6
        ),
        recipients=RuleRecipients(roles=("manager", "accountant")),
        template=RuleTemplate(
            title="Supplier payment due",
            message='Payment of {amount} SAR to supplier "{supplier_name}" is due in {days_remaining} days',
            priority=Priority.HIGH,
            action_required=True,
            action_text="Pay supplier",
            action_url="/purchases/suppliers/{supplier_id}",
        ),
    ),
)


class RuleCatalog:
    """In-memory rule table with optional persistence of runtime overrides.

    Rules are immutable values; enabling, disabling or updating a rule
    swaps the catalog entry. When a ``session_factory`` is supplied the
    modified rules are written to the key-value store and re-applied on
    :meth:`load_overrides`.
    """

    def __init__(
        self,
        rules: Iterable[NotificationRule] = DEFAULT_RULES,
        *,
        session_factory: Callable[[], Session] | None = None,
    ) -> None:
        self._rules: dict[str, NotificationRule] = {}
        for rule in rules:
            validate_rule(rule)
            self._rules[rule.id] = rule
        self._defaults = dict(self._rules)
        self._session_factory = session_factory
        self._lock = threading.RLock()

    def get(self, category: str, type_: str) -> NotificationRule | None:
        """Return the enabled rule registered for ``(category, type_)``."""

        with self._lock:
            for rule in self._rules.values():
                if rule.category == category and rule.type == type_ and rule.enabled:
                    return rule
        return None

    def get_rule(self, rule_id: str) -> NotificationRule:
        with self._lock:
            rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    def list_rules(self) -> list[NotificationRule]:
        with self._lock:
            return list(self._rules.values())

    def enable(self, rule_id: str) -> NotificationRule:
        return self.update(rule_id, {"enabled": True})

    def disable(self, rule_id: str) -> NotificationRule:
        return self.update(rule_id, {"enabled": False})

    def update(self, rule_id: str, changes: Mapping[str, Any]) -> NotificationRule:
        """Apply ``changes`` to the rule and persist the override.

        ``changes`` may hold ``enabled`` and partial ``timing``,
        ``condition``, ``recipients`` or ``template`` mappings.
        """

        unknown = set(changes) - {"enabled", "timing", "condition", "recipients", "template"}
        if unknown:
            raise InvalidRuleError(f"Unsupported rule fields: {', '.join(sorted(unknown))}")

        with self._lock:
            current = self.get_rule(rule_id)
            merged = rule_to_dict(current)
            for section in ("timing", "condition", "recipients", "template"):
                if changes.get(section) is not None:
                    merged[section] = {**merged[section], **dict(changes[section])}
            if changes.get("enabled") is not None:
                merged["enabled"] = bool(changes["enabled"])
            updated = rule_from_dict(merged)
            self._rules[rule_id] = updated
            self._persist_overrides()
        logger.info("Notification rule '%s' updated (enabled=%s)", rule_id, updated.enabled)
        return updated

    def reset(self, rule_id: str) -> NotificationRule:
        """Restore the default definition of ``rule_id``."""

        with self._lock:
            default = self._defaults.get(rule_id)
            if default is None:
                raise RuleNotFoundError(rule_id)
            self._rules[rule_id] = default
            self._persist_overrides()
        return default

    def load_overrides(self, *, reset: bool = False) -> int:
        """Apply the persisted overrides and return how many were applied.

        With ``reset`` every rule first goes back to its default, so rules
        missing from the stored overrides lose any in-memory change.
        """

        if self._session_factory is None:
            return 0
        try:
            with self._session_factory() as session:
                raw = KeyValueRepository(session).get(RULE_OVERRIDES_KEY, {})
        except SQLAlchemyError:
            logger.exception("Could not read notification rule overrides; using defaults")
            return 0

        if not isinstance(raw, Mapping):
            logger.error("Notification rule overrides are malformed; using defaults")
            return 0

        applied = 0
        with self._lock:
            if reset:
                self._rules = dict(self._defaults)
            for rule_id, payload in raw.items():
                if rule_id not in self._rules:
                    logger.warning("Ignoring override for unknown rule '%s'", rule_id)
                    continue
                try:
                    self._rules[rule_id] = rule_from_dict(payload)
                except (InvalidRuleError, KeyError, TypeError, ValueError):
                    logger.exception("Ignoring malformed override for rule '%s'", rule_id)
                    continue
                applied += 1
        return applied

    def _persist_overrides(self) -> None:
        if self._session_factory is None:
            return
        overrides = {
            rule_id: rule_to_dict(rule)
            for rule_id, rule in self._rules.items()
            if rule != self._defaults.get(rule_id)
        }
        try:
            with self._session_factory() as session:
                KeyValueRepository(session).set(RULE_OVERRIDES_KEY, overrides)
        except SQLAlchemyError:
            logger.exception(
                "Could not persist notification rule overrides; change kept in memory only"
            )


def validate_rule(rule: NotificationRule) -> None:
    """Reject rules whose enums or condition are not usable."""

    if not rule.id or not rule.category or not rule.type:
        raise InvalidRuleError("Rules need an id, a category and a type")
    condition = rule.condition
    if condition.field and not isinstance(condition.operator, ConditionOperator):
        raise InvalidRuleError(
            f"Rule '{rule.id}' has an unsupported operator: {condition.operator!r}"
        )
    if not isinstance(rule.template.priority, Priority):
        raise InvalidRuleError(
            f"Rule '{rule.id}' has an unsupported priority: {rule.template.priority!r}"
        )
    if rule.timing.frequency is not None and not isinstance(rule.timing.frequency, Frequency):
        raise InvalidRuleError(
            f"Rule '{rule.id}' has an unsupported frequency: {rule.timing.frequency!r}"
        )


def rule_to_dict(rule: NotificationRule) -> dict[str, Any]:
    """Return the JSON representation of ``rule``."""

    return {
        "id": rule.id,
        "category": rule.category,
        "type": rule.type,
        "enabled": rule.enabled,
        "timing": {
            "before_due": rule.timing.before_due,
            "recurring": rule.timing.recurring,
            "frequency": rule.timing.frequency.value if rule.timing.frequency else None,
            "time": rule.timing.time,
        },
        "condition": {
            "field": rule.condition.field,
            "operator": rule.condition.operator.value if rule.condition.operator else None,
            "threshold": rule.condition.threshold,
        },
        "recipients": {
            "roles": list(rule.recipients.roles),
            "user_ids": list(rule.recipients.user_ids),
        },
        "template": {
            "title": rule.template.title,
            "message": rule.template.message,
            "priority": rule.template.priority.value,
            "action_required": rule.template.action_required,
            "action_text": rule.template.action_text,
            "action_url": rule.template.action_url,
        },
    }


def rule_from_dict(payload: Mapping[str, Any]) -> NotificationRule:
    """Build and validate a rule from its JSON representation."""

    timing = payload.get("timing") or {}
    condition = payload.get("condition") or {}
    recipients = payload.get("recipients") or {}
    template = payload["template"]

    try:
        frequency = Frequency(timing["frequency"]) if timing.get("frequency") else None
        operator = (
            ConditionOperator(condition["operator"]) if condition.get("operator") else None
        )
        priority = Priority(template["priority"])
    except ValueError as exc:
        raise InvalidRuleError(str(exc)) from exc

    rule = NotificationRule(
        id=str(payload["id"]),
        category=str(payload["category"]),
        type=str(payload["type"]),
        enabled=bool(payload.get("enabled", True)),
        timing=RuleTiming(
            before_due=timing.get("before_due"),
            recurring=bool(timing.get("recurring", False)),
            frequency=frequency,
            time=timing.get("time"),
        ),
        condition=RuleCondition(
            field=condition.get("field") or None,
            operator=operator,
            threshold=condition.get("threshold"),
        ),
        recipients=RuleRecipients(
            roles=tuple(recipients.get("roles") or ()),
            user_ids=tuple(str(user_id) for user_id in recipients.get("user_ids") or ()),
        ),
        template=RuleTemplate(
            title=str(template["title"]),
            message=str(template["message"]),
            priority=priority,
            action_required=bool(template.get("action_required", False)),
            action_text=template.get("action_text"),
            action_url=template.get("action_url"),
        ),
    )
    validate_rule(rule)
    return rule


__all__ = [
    "DEFAULT_RULES",
    "RULE_OVERRIDES_KEY",
    "RuleCatalog",
    "rule_from_dict",
    "rule_to_dict",
    "validate_rule",
]
