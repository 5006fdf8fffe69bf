from .backup import (
    BackupDocumentSchema,
    BackupExportRequest,
    BackupRestoreRequest,
    BackupRestoreResponse,
)
from .notification import (
    NotificationMarkReadRequest,
    NotificationMarkReadResponse,
    NotificationRead,
    SmartNotificationRequest,
    SmartNotificationResponse,
)
from .notification_rule import NotificationRuleRead, NotificationRuleUpdate
from .scheduled_notification import (
    JobFailureRead,
    ScheduleSetupRequest,
    ScheduleSetupResponse,
    ScheduledNotificationCreate,
    ScheduledNotificationRead,
    SchedulerStatusRead,
    SchedulerTickReportRead,
)
from .snapshot import SnapshotRead, SnapshotReplace, SnapshotReplaceResponse

__all__ = [
    "BackupDocumentSchema",
    "BackupExportRequest",
    "BackupRestoreRequest",
    "BackupRestoreResponse",
    "JobFailureRead",
    "NotificationMarkReadRequest",
    "NotificationMarkReadResponse",
    "NotificationRead",
    "NotificationRuleRead",
    "NotificationRuleUpdate",
    "ScheduleSetupRequest",
    "ScheduleSetupResponse",
    "ScheduledNotificationCreate",
    "ScheduledNotificationRead",
    "SchedulerStatusRead",
    "SchedulerTickReportRead",
    "SnapshotRead",
    "SnapshotReplace",
    "SnapshotReplaceResponse",
]
