"""
Dev Notifier Adapter.

Logs notifications instead of delivering them.
Used for local development and testing.

Key behaviors:
- Logs notification details
- Stores notifications in memory for test assertions
- Can be told to fail, to exercise the swallow-and-log path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from src.core.ports.notifications import NotificationPayload

logger = logging.getLogger(__name__)


@dataclass
class SentNotification:
    """Record of a logged notification for test assertions."""

    recipient_id: UUID
    payload: NotificationPayload
    logged_at: datetime


@dataclass
class DevNotifier:
    """
    Dev notifier that logs instead of delivering.

    Implements NotificationPort protocol.
    """

    sent: list[SentNotification] = field(default_factory=list)

    log_level: int = logging.INFO
    fail_with: Exception | None = None

    def notify(self, recipient_id: UUID, payload: NotificationPayload) -> None:
        if self.fail_with is not None:
            raise self.fail_with

        self.sent.append(
            SentNotification(
                recipient_id=recipient_id, payload=payload, logged_at=datetime.now(UTC)
            )
        )
        logger.log(
            self.log_level,
            "NOTIFY (dev): To=%s, Type=%s, Title=%s",
            recipient_id,
            payload.type,
            payload.title,
        )

    # --- Test Helper Methods ---

    def get_last(self) -> SentNotification | None:
        return self.sent[-1] if self.sent else None

    def get_sent_to(self, recipient_id: UUID) -> list[SentNotification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]
