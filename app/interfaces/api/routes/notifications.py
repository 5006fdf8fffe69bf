"""Endpoints and websocket handler for notifications."""

from __future__ import annotations

import logging

from fastapi import (
    APIRouter,
    Depends,
    Query,
    WebSocket,
    WebSocketDisconnect,
)
from sqlalchemy.orm import Session

from app.application.use_cases.notifications import NotificationEmitter
from app.domain.entities import Notification
from app.infrastructure.database import get_db
from app.infrastructure.notifications import serialize_notification
from app.infrastructure.repositories import NotificationRepository
from app.interfaces.api.dependencies import get_notification_emitter
from app.interfaces.api.schemas import (
    NotificationMarkReadRequest,
    NotificationMarkReadResponse,
    NotificationRead,
    SmartNotificationRequest,
    SmartNotificationResponse,
)

router = APIRouter(tags=["notifications"])

logger = logging.getLogger(__name__)


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead.model_validate(notification)


@router.post("/notifications/smart", response_model=SmartNotificationResponse)
def create_smart_notification(
    payload: SmartNotificationRequest,
    emitter: NotificationEmitter = Depends(get_notification_emitter),
) -> SmartNotificationResponse:
    """Evaluate the rule of ``category``/``type`` and create a notification when it applies."""

    created = emitter.create_smart_notification(
        payload.category,
        payload.type,
        payload.data,
        payload.user_id,
        payload.company_id,
    )
    return SmartNotificationResponse(created=created)


@router.get("/users/{user_id}/notifications", response_model=list[NotificationRead])
def list_user_notifications(
    user_id: str,
    unread_only: bool = False,
    category: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[NotificationRead]:
    """Return the most recent notifications of ``user_id``."""

    notifications = NotificationRepository(db).list_for_user(
        user_id, limit=limit, unread_only=unread_only, category=category
    )
    return [_notification_to_schema(notification) for notification in notifications]


@router.post(
    "/users/{user_id}/notifications/read",
    response_model=NotificationMarkReadResponse,
)
def mark_user_notifications_read(
    user_id: str,
    payload: NotificationMarkReadRequest,
    db: Session = Depends(get_db),
) -> NotificationMarkReadResponse:
    updated = NotificationRepository(db).mark_as_read(payload.unique_ids(), user_id=user_id)
    return NotificationMarkReadResponse(updated=updated)


@router.websocket("/notifications/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Stream the notifications of ``user_id`` as they are created."""

    user_id = websocket.query_params.get("user_id")
    runtime = getattr(websocket.app.state, "notification_runtime", None)
    if not user_id or runtime is None:
        await websocket.close(code=1008)
        return

    session = runtime.session_factory()
    try:
        pending = NotificationRepository(session).list_for_user(user_id, unread_only=True)
    finally:
        session.close()

    manager = runtime.connections
    await manager.connect(user_id, websocket)
    try:
        if pending:
            await websocket.send_json(
                {"type": "init", "data": [serialize_notification(n) for n in pending]}
            )
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message_type == "ack":
                ids = message.get("ids", [])
                if isinstance(ids, list) and ids:
                    ack_session = runtime.session_factory()
                    try:
                        NotificationRepository(ack_session).mark_as_read(ids, user_id=user_id)
                    finally:
                        ack_session.close()
    except WebSocketDisconnect:
        logger.debug("Notification websocket of user %s disconnected", user_id)
    finally:
        manager.disconnect(user_id, websocket)
