"""Domain entities exposed by the application."""

from .backup import BackupDocument, BackupEncryption
from .key_value_entry import KeyValueEntry
from .notification import (
    NOTIFICATION_TYPE_CRITICAL,
    NOTIFICATION_TYPE_ERROR,
    NOTIFICATION_TYPE_INFO,
    NOTIFICATION_TYPE_WARNING,
    Notification,
)
from .notification_rule import (
    ConditionOperator,
    Frequency,
    NotificationRule,
    Priority,
    RuleCondition,
    RuleRecipients,
    RuleTemplate,
    RuleTiming,
)
from .scheduled_notification import ScheduledNotificationJob

__all__ = [
    "BackupDocument",
    "BackupEncryption",
    "ConditionOperator",
    "Frequency",
    "KeyValueEntry",
    "Notification",
    "NOTIFICATION_TYPE_CRITICAL",
    "NOTIFICATION_TYPE_ERROR",
    "NOTIFICATION_TYPE_INFO",
    "NOTIFICATION_TYPE_WARNING",
    "NotificationRule",
    "Priority",
    "RuleCondition",
    "RuleRecipients",
    "RuleTemplate",
    "RuleTiming",
    "ScheduledNotificationJob",
]
