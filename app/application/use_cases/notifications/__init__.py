"""Rule-based notification engine and scheduler."""

from .business_checks import BusinessChecks, JobHandler
from .conditions import evaluate_condition
from .emitter import (
    NotificationEmitter,
    days_until,
    map_priority_to_type,
    resolve_related_entity_id,
)
from .rule_catalog import (
    DEFAULT_RULES,
    RULE_OVERRIDES_KEY,
    RuleCatalog,
    rule_from_dict,
    rule_to_dict,
    validate_rule,
)
from .runtime import NotificationRuntime, build_notification_runtime
from .scheduler import (
    JobFailure,
    NotificationScheduler,
    SchedulerTickReport,
    next_occurrence,
)
from .templating import interpolate_template

__all__ = [
    "BusinessChecks",
    "DEFAULT_RULES",
    "JobFailure",
    "JobHandler",
    "NotificationEmitter",
    "NotificationRuntime",
    "NotificationScheduler",
    "RULE_OVERRIDES_KEY",
    "RuleCatalog",
    "SchedulerTickReport",
    "build_notification_runtime",
    "days_until",
    "evaluate_condition",
    "interpolate_template",
    "map_priority_to_type",
    "next_occurrence",
    "resolve_related_entity_id",
    "rule_from_dict",
    "rule_to_dict",
    "validate_rule",
]
