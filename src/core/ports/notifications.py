"""
Notification port interface.

Narrow contract between the commerce core and the notification
collaborator. Delivery channel and persistence belong to the adapter;
the core holds no connection state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from src.domain.entities import NotificationType


@dataclass(frozen=True)
class NotificationPayload:
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    action_url: str | None = None


class NotificationPort(Protocol):
    """
    Port for user notifications.

    Implementations:
    - DevNotifier: records and logs (dev/tests)
    - DirectoryNotifier: persists and pushes to registered connections
    """

    def notify(self, recipient_id: UUID, payload: NotificationPayload) -> None:
        """Deliver a notification. May raise; callers go through dispatch()."""
        ...
