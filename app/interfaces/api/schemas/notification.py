"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationMarkReadRequest(BaseModel):
    """Payload used to mark a batch of notifications as read."""

    ids: list[int] = Field(..., min_length=1, description="Notification identifiers")

    def unique_ids(self) -> list[int]:
        """Return the identifiers without duplicates, preserving order."""

        return list(dict.fromkeys(self.ids))


class NotificationMarkReadResponse(BaseModel):
    updated: int


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    type: str
    category: str
    priority: str
    title: str
    message: str
    action_required: bool
    action_text: str | None = None
    action_url: str | None = None
    related_entity_id: str | None = None
    related_entity_type: str | None = None
    auto_resolve: bool
    company_id: str | None = None
    created_at: datetime
    read_at: datetime | None = None


class SmartNotificationRequest(BaseModel):
    """Data evaluated against the rule registered for ``category``/``type``."""

    category: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    company_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class SmartNotificationResponse(BaseModel):
    created: bool


__all__ = [
    "NotificationMarkReadRequest",
    "NotificationMarkReadResponse",
    "NotificationRead",
    "SmartNotificationRequest",
    "SmartNotificationResponse",
]
