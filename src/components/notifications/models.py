"""
Notification component models.

Payloads the commerce core emits to the notification collaborator.
"""

from __future__ import annotations

from src.core.ports.notifications import NotificationPayload
from src.domain.entities import NotificationType

RULE_PURCHASED: NotificationType = "RULE_PURCHASED"
NEW_REVIEW: NotificationType = "NEW_REVIEW"
SYSTEM: NotificationType = "SYSTEM"

__all__ = ["NEW_REVIEW", "RULE_PURCHASED", "SYSTEM", "NotificationPayload"]
