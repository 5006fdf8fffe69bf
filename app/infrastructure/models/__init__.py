"""ORM models used by the application infrastructure."""

from .key_value_entry import KeyValueEntryModel
from .notification import NotificationModel

__all__ = [
    "KeyValueEntryModel",
    "NotificationModel",
]
