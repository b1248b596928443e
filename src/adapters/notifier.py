"""
Connection directory notifier.

A process-wide registry of per-user push callbacks (e.g. open websocket
sends), kept behind the NotificationPort contract so the commerce core
never touches connection state. Every notification is persisted to the
notifications table first; pushing to live connections is best-effort.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any
from uuid import UUID

from src.core.ports.db import NotificationRepoPort
from src.core.ports.notifications import NotificationPayload
from src.core.ports.time import ClockPort
from src.domain.entities import Notification

logger = logging.getLogger(__name__)

PushCallback = Callable[[dict[str, Any]], None]


class ConnectionDirectory:
    """Thread-safe map of user id -> registered push callbacks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: dict[UUID, dict[str, PushCallback]] = {}

    def register(self, user_id: UUID, connection_id: str, push: PushCallback) -> None:
        with self._lock:
            self._connections.setdefault(user_id, {})[connection_id] = push

    def unregister(self, user_id: UUID, connection_id: str) -> None:
        with self._lock:
            conns = self._connections.get(user_id)
            if not conns:
                return
            conns.pop(connection_id, None)
            if not conns:
                del self._connections[user_id]

    def connections_for(self, user_id: UUID) -> list[tuple[str, PushCallback]]:
        with self._lock:
            return list(self._connections.get(user_id, {}).items())

    def is_online(self, user_id: UUID) -> bool:
        with self._lock:
            return bool(self._connections.get(user_id))


class DirectoryNotifier:
    """
    NotificationPort that persists, then pushes to any live connections.

    A failing push callback is unregistered; it does not stop delivery to
    the user's other connections.
    """

    def __init__(
        self,
        repo: NotificationRepoPort,
        directory: ConnectionDirectory,
        clock: ClockPort,
    ):
        self.repo = repo
        self.directory = directory
        self.clock = clock

    def notify(self, recipient_id: UUID, payload: NotificationPayload) -> None:
        notification = Notification(
            recipient_id=recipient_id,
            type=payload.type,
            title=payload.title,
            message=payload.message,
            data=payload.data,
            action_url=payload.action_url,
            created_at=self.clock.now_utc(),
        )
        self.repo.save(notification)

        message = {"event": "notification", **notification.model_dump(mode="json")}
        for connection_id, push in self.directory.connections_for(recipient_id):
            try:
                push(message)
            except Exception:
                logger.warning(
                    "Push to %s/%s failed; dropping connection",
                    recipient_id,
                    connection_id,
                    exc_info=True,
                )
                self.directory.unregister(recipient_id, connection_id)
