"""Repository implementations for infrastructure layer."""

from .key_value_repository import KeyValueRepository
from .notification_repository import NotificationRepository
from .scheduled_job_repository import (
    SCHEDULED_JOBS_KEY,
    ScheduledJobRepository,
    deserialize_job,
    serialize_job,
)
from .snapshot_repository import (
    SNAPSHOT_CASH_TRANSACTIONS,
    SNAPSHOT_CUSTOMERS,
    SNAPSHOT_INVOICES,
    SNAPSHOT_NAMES,
    SNAPSHOT_PRODUCTS,
    SnapshotRepository,
)

__all__ = [
    "KeyValueRepository",
    "NotificationRepository",
    "SCHEDULED_JOBS_KEY",
    "ScheduledJobRepository",
    "deserialize_job",
    "serialize_job",
    "SNAPSHOT_CASH_TRANSACTIONS",
    "SNAPSHOT_CUSTOMERS",
    "SNAPSHOT_INVOICES",
    "SNAPSHOT_NAMES",
    "SNAPSHOT_PRODUCTS",
    "SnapshotRepository",
]
