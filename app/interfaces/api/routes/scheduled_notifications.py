"""Routes to manage and run scheduled notification jobs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.application.use_cases.notifications import (
    NotificationRuntime,
    NotificationScheduler,
    SchedulerTickReport,
)
from app.domain.entities import ScheduledNotificationJob
from app.domain.exceptions import StaleVersionError
from app.interfaces.api.dependencies import (
    get_notification_runtime,
    get_notification_scheduler,
)
from app.interfaces.api.schemas import (
    ScheduleSetupRequest,
    ScheduleSetupResponse,
    ScheduledNotificationCreate,
    ScheduledNotificationRead,
    SchedulerStatusRead,
    SchedulerTickReportRead,
)

router = APIRouter(tags=["scheduled-notifications"])


def _job_to_schema(job: ScheduledNotificationJob) -> ScheduledNotificationRead:
    return ScheduledNotificationRead(
        id=job.id,
        user_id=job.user_id,
        category=job.category,
        type=job.type,
        scheduled_for=job.scheduled_for,
        data=job.data,
        recurring=job.recurring,
        frequency=job.frequency.value if job.frequency else None,
        executed=job.executed,
        created_at=job.created_at,
        company_id=job.company_id,
        attempts=job.attempts,
        last_error=job.last_error,
        next_attempt_at=job.next_attempt_at,
        executed_at=job.executed_at,
        abandoned=job.abandoned,
        anchor_day=job.anchor_day,
    )


def _report_to_schema(report: SchedulerTickReport) -> SchedulerTickReportRead:
    return SchedulerTickReportRead.model_validate(report)


def _conflict(exc: StaleVersionError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post(
    "/scheduled-notifications",
    response_model=ScheduledNotificationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_scheduled_notification(
    payload: ScheduledNotificationCreate,
    scheduler: NotificationScheduler = Depends(get_notification_scheduler),
) -> ScheduledNotificationRead:
    try:
        job_id = scheduler.schedule_notification(
            payload.user_id,
            payload.category,
            payload.type,
            payload.scheduled_for,
            payload.data,
            recurring=payload.recurring,
            frequency=payload.frequency,
            company_id=payload.company_id,
        )
    except StaleVersionError as exc:
        raise _conflict(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    job = scheduler.get_job(job_id)
    if job is None:  # pragma: no cover - removed right after being scheduled
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return _job_to_schema(job)


@router.get(
    "/users/{user_id}/scheduled-notifications",
    response_model=list[ScheduledNotificationRead],
)
def list_user_scheduled_notifications(
    user_id: str,
    scheduler: NotificationScheduler = Depends(get_notification_scheduler),
) -> list[ScheduledNotificationRead]:
    return [_job_to_schema(job) for job in scheduler.get_scheduled_notifications(user_id)]


@router.delete(
    "/scheduled-notifications/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def cancel_scheduled_notification(
    job_id: str,
    scheduler: NotificationScheduler = Depends(get_notification_scheduler),
) -> Response:
    try:
        removed = scheduler.cancel_scheduled_notification(job_id)
    except StaleVersionError as exc:
        raise _conflict(exc) from exc
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/users/{user_id}/scheduled-notifications/setup",
    response_model=ScheduleSetupResponse,
)
def setup_user_schedule(
    user_id: str,
    payload: ScheduleSetupRequest | None = None,
    scheduler: NotificationScheduler = Depends(get_notification_scheduler),
) -> ScheduleSetupResponse:
    """Seed invoice reminders and the recurring checks of ``user_id``."""

    company_id = payload.company_id if payload else None
    try:
        job_ids = scheduler.setup_user_schedule(user_id, company_id=company_id)
    except StaleVersionError as exc:
        raise _conflict(exc) from exc
    return ScheduleSetupResponse(job_ids=job_ids)


@router.post("/scheduled-notifications/run", response_model=SchedulerTickReportRead)
def run_due_scheduled_notifications(
    runtime: NotificationRuntime = Depends(get_notification_runtime),
) -> SchedulerTickReportRead:
    """Execute the due jobs immediately instead of waiting for the runner."""

    try:
        report = runtime.runner.run_once()
    except StaleVersionError as exc:
        raise _conflict(exc) from exc
    return _report_to_schema(report)


@router.get("/scheduled-notifications/status", response_model=SchedulerStatusRead)
def get_scheduler_status(
    runtime: NotificationRuntime = Depends(get_notification_runtime),
) -> SchedulerStatusRead:
    runner = runtime.runner
    jobs = runtime.scheduler.list_jobs()
    return SchedulerStatusRead(
        enabled=runtime.scheduler_enabled,
        running=runner.running,
        pending_jobs=sum(1 for job in jobs if not job.executed),
        next_due_at=runtime.scheduler.next_due_at(),
        next_run_at=runner.next_run_at,
        last_run_at=runner.last_run_at,
        last_error=runner.last_error,
        last_report=_report_to_schema(runner.last_report) if runner.last_report else None,
    )
