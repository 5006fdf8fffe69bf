"""Domain entities describing when and how a notification is emitted."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Frequency(str, Enum):
    """Recurrence period of a rule or scheduled job."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Priority(str, Enum):
    """Urgency attached to the notification produced by a rule."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConditionOperator(str, Enum):
    """Comparison applied between a record field and a rule threshold."""

    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUAL_TO = "equal_to"


@dataclass(frozen=True)
class RuleTiming:
    """When a rule is meant to fire relative to its subject."""

    before_due: int | None = None
    recurring: bool = False
    frequency: Frequency | None = None
    time: str | None = None


@dataclass(frozen=True)
class RuleCondition:
    """Trigger condition evaluated against the record of a notification.

    A condition without ``field`` is unconditional.
    """

    field: str | None = None
    operator: ConditionOperator | None = None
    threshold: Any = None


@dataclass(frozen=True)
class RuleRecipients:
    roles: tuple[str, ...] = ()
    user_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class RuleTemplate:
    """Texts and action attached to the notification produced by a rule."""

    title: str
    message: str
    priority: Priority
    action_required: bool = False
    action_text: str | None = None
    action_url: str | None = None


@dataclass(frozen=True)
class NotificationRule:
    """Static definition of a notification keyed by ``(category, type)``."""

    id: str
    category: str
    type: str
    enabled: bool
    template: RuleTemplate
    timing: RuleTiming = field(default_factory=RuleTiming)
    condition: RuleCondition = field(default_factory=RuleCondition)
    recipients: RuleRecipients = field(default_factory=RuleRecipients)


__all__ = [
    "ConditionOperator",
    "Frequency",
    "NotificationRule",
    "Priority",
    "RuleCondition",
    "RuleRecipients",
    "RuleTemplate",
    "RuleTiming",
]
