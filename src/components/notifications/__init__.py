"""
Notification component.

Public API for building and dispatching commerce notifications.
"""

from .component import (
    dispatch,
    dispatch_all,
    new_review_messages,
    purchase_messages,
    refund_requested_messages,
    refund_resolved_messages,
)
from .models import NEW_REVIEW, RULE_PURCHASED, SYSTEM, NotificationPayload

__all__ = [
    # Functions
    "dispatch",
    "dispatch_all",
    "new_review_messages",
    "purchase_messages",
    "refund_requested_messages",
    "refund_resolved_messages",
    # Models
    "NEW_REVIEW",
    "RULE_PURCHASED",
    "SYSTEM",
    "NotificationPayload",
]
