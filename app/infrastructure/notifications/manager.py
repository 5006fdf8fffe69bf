"""Per-user registry of the websockets that receive pushed notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, DefaultDict

from fastapi import WebSocket, status

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS_PER_USER = 5


class NotificationConnectionManager:
    """Track open websockets per user, oldest first.

    A user may keep at most ``max_connections_per_user`` sockets open; a new
    connection beyond that closes the oldest one with a policy-violation code.
    """

    def __init__(self, max_connections_per_user: int = DEFAULT_MAX_CONNECTIONS_PER_USER) -> None:
        if max_connections_per_user < 1:
            raise ValueError("max_connections_per_user must be at least 1")
        self.max_connections_per_user = max_connections_per_user
        self._connections: DefaultDict[str, list[WebSocket]] = defaultdict(list)

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        """Accept ``websocket`` for ``user_id``, evicting the oldest if over the limit."""

        await websocket.accept()
        connections = self._connections[user_id]
        connections.append(websocket)
        while len(connections) > self.max_connections_per_user:
            evicted = connections.pop(0)
            logger.info(
                "User %s exceeded %d notification connections; closing the oldest",
                user_id,
                self.max_connections_per_user,
            )
            try:
                await evicted.close(code=status.WS_1008_POLICY_VIOLATION)
            except RuntimeError:
                logger.debug("Evicted websocket of user %s was already closed", user_id)

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        connections = self._connections.get(user_id)
        if connections is None:
            return
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self._connections.pop(user_id, None)

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, ()))

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send ``message`` to every socket of ``user_id`` and return the delivered count."""

        delivered = 0
        for connection in list(self._connections.get(user_id, ())):
            try:
                await connection.send_json(message)
            except Exception:
                logger.debug("Dropping websocket of user %s after a failed send", user_id)
                self.disconnect(user_id, connection)
            else:
                delivered += 1
        return delivered


__all__ = ["DEFAULT_MAX_CONNECTIONS_PER_USER", "NotificationConnectionManager"]
