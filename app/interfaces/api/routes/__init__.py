from fastapi import FastAPI

from .backups import router as backups_router
from .notification_rules import router as notification_rules_router
from .notifications import router as notifications_router
from .scheduled_notifications import router as scheduled_notifications_router
from .snapshots import router as snapshots_router


def register_routes(app: FastAPI) -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(notification_rules_router)
    app.include_router(notifications_router)
    app.include_router(scheduled_notifications_router)
    app.include_router(snapshots_router)
    app.include_router(backups_router)
