"""Utility helpers to push notifications to websocket subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.domain.entities import Notification

from .manager import NotificationConnectionManager

logger = logging.getLogger(__name__)


class NotificationPublisher:
    """Serialize notifications and schedule their delivery.

    Notifications are created from request worker threads and from the
    APScheduler worker threads, neither of which owns an event loop. The loop
    serving the websockets is bound at application start and deliveries are
    handed to it thread-safely.
    """

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def manager(self) -> NotificationConnectionManager:
        return self._manager

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        self._loop = loop

    def dispatch(self, notification: Notification) -> None:
        """Schedule ``notification`` to be delivered to its user."""

        message = {"type": "notification", "data": serialize_notification(notification)}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if self._loop is None or self._loop.is_closed():
                logger.debug(
                    "No event loop bound; notification %s not pushed in realtime",
                    notification.id,
                )
                return
            asyncio.run_coroutine_threadsafe(
                self._manager.send_to_user(notification.user_id, message), self._loop
            )
        else:
            loop.create_task(self._manager.send_to_user(notification.user_id, message))


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "category": notification.category,
        "priority": notification.priority,
        "title": notification.title,
        "message": notification.message,
        "action_required": notification.action_required,
        "action_text": notification.action_text,
        "action_url": notification.action_url,
        "related_entity_id": notification.related_entity_id,
        "related_entity_type": notification.related_entity_type,
        "auto_resolve": notification.auto_resolve,
        "company_id": notification.company_id,
        "created_at": notification.created_at.isoformat()
        if notification.created_at
        else None,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
    }


__all__ = ["NotificationPublisher", "serialize_notification"]
