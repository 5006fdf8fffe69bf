"""FastAPI dependency utilities."""

from fastapi import HTTPException, Request, status

from app.application.use_cases.notifications import (
    NotificationEmitter,
    NotificationRuntime,
    NotificationScheduler,
    RuleCatalog,
)


def get_notification_runtime(request: Request) -> NotificationRuntime:
    """Return the notification runtime built by the application lifespan."""

    runtime = getattr(request.app.state, "notification_runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification engine is not running",
        )
    return runtime


def get_rule_catalog(request: Request) -> RuleCatalog:
    return get_notification_runtime(request).catalog


def get_notification_emitter(request: Request) -> NotificationEmitter:
    return get_notification_runtime(request).emitter


def get_notification_scheduler(request: Request) -> NotificationScheduler:
    return get_notification_runtime(request).scheduler


__all__ = [
    "get_notification_emitter",
    "get_notification_runtime",
    "get_notification_scheduler",
    "get_rule_catalog",
]
