"""Schemas for scheduled notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ScheduledNotificationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    scheduled_for: datetime
    data: dict[str, Any] = Field(default_factory=dict)
    recurring: bool = False
    frequency: Literal["daily", "weekly", "monthly"] | None = None
    company_id: str | None = None

    @model_validator(mode="after")
    def _require_frequency(self) -> "ScheduledNotificationCreate":
        if self.recurring and self.frequency is None:
            raise ValueError("frequency is required for recurring jobs")
        return self


class ScheduledNotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    category: str
    type: str
    scheduled_for: datetime
    data: dict[str, Any]
    recurring: bool
    frequency: str | None = None
    executed: bool
    created_at: datetime | None = None
    company_id: str | None = None
    attempts: int = 0
    last_error: str | None = None
    next_attempt_at: datetime | None = None
    executed_at: datetime | None = None
    abandoned: bool = False
    anchor_day: int | None = None


class ScheduleSetupRequest(BaseModel):
    company_id: str | None = None


class ScheduleSetupResponse(BaseModel):
    job_ids: list[str]


class JobFailureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: str
    user_id: str
    category: str
    type: str
    attempts: int
    error: str
    abandoned: bool
    occurred_at: datetime


class SchedulerTickReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    started_at: datetime
    executed: list[str]
    enqueued: list[str]
    failures: list[JobFailureRead]
    pruned: int


class SchedulerStatusRead(BaseModel):
    enabled: bool
    running: bool
    pending_jobs: int
    next_due_at: datetime | None = None
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    last_error: str | None = None
    last_report: SchedulerTickReportRead | None = None


__all__ = [
    "JobFailureRead",
    "ScheduleSetupRequest",
    "ScheduleSetupResponse",
    "ScheduledNotificationCreate",
    "ScheduledNotificationRead",
    "SchedulerStatusRead",
    "SchedulerTickReportRead",
]
