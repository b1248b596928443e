"""
Notification component.

Builds the payloads for ledger and review events and dispatches them as
fire-and-forget side effects. A failed notification is logged and
swallowed; it never affects the mutation that preceded it.
"""

from __future__ import annotations

import logging
from uuid import UUID

from src.core.ports.notifications import NotificationPayload, NotificationPort
from src.domain.entities import Purchase, Review, Rule, Transaction

from .models import NEW_REVIEW, RULE_PURCHASED, SYSTEM

logger = logging.getLogger(__name__)


def dispatch(
    notifier: NotificationPort | None,
    recipient_id: UUID,
    payload: NotificationPayload,
) -> bool:
    """Deliver one notification. Returns False if it was not delivered."""
    if notifier is None:
        return False
    try:
        notifier.notify(recipient_id, payload)
    except Exception:
        logger.warning(
            "Notification %s to %s failed", payload.type, recipient_id, exc_info=True
        )
        return False
    return True


def dispatch_all(
    notifier: NotificationPort | None,
    messages: list[tuple[UUID, NotificationPayload]],
) -> int:
    """Dispatch each message independently; returns how many were delivered."""
    return sum(1 for recipient_id, payload in messages if dispatch(notifier, recipient_id, payload))


# --- Payload Builders ---


def _tx_url(tx: Transaction) -> str:
    return f"/transactions/{tx.id}"


def purchase_messages(
    rule: Rule, tx: Transaction, purchase: Purchase
) -> list[tuple[UUID, NotificationPayload]]:
    return [
        (
            tx.seller_id,
            NotificationPayload(
                type=RULE_PURCHASED,
                title="Your rule was purchased",
                message=f'A buyer purchased "{rule.title}"',
                data={
                    "transaction_id": str(tx.id),
                    "rule_id": str(rule.id),
                    "buyer_id": str(tx.buyer_id),
                },
                action_url=_tx_url(tx),
            ),
        ),
        (
            tx.buyer_id,
            NotificationPayload(
                type=RULE_PURCHASED,
                title="Purchase successful",
                message=f'You successfully purchased "{rule.title}"',
                data={
                    "transaction_id": str(tx.id),
                    "rule_id": str(rule.id),
                    "license_key": purchase.license_key,
                },
                action_url=f"/rules/{rule.id}/download",
            ),
        ),
    ]


def refund_requested_messages(tx: Transaction) -> list[tuple[UUID, NotificationPayload]]:
    return [
        (
            tx.buyer_id,
            NotificationPayload(
                type=SYSTEM,
                title="Refund request submitted",
                message="Your refund request has been received and is under review",
                data={"transaction_id": str(tx.id)},
                action_url=_tx_url(tx),
            ),
        ),
        (
            tx.seller_id,
            NotificationPayload(
                type=SYSTEM,
                title="Refund requested",
                message=f"A buyer requested a refund for transaction {tx.id}",
                data={"transaction_id": str(tx.id), "reason": tx.metadata.get("refund_reason")},
                action_url=_tx_url(tx),
            ),
        ),
    ]


def refund_resolved_messages(
    tx: Transaction, approved: bool
) -> list[tuple[UUID, NotificationPayload]]:
    if not approved:
        return [
            (
                tx.buyer_id,
                NotificationPayload(
                    type=SYSTEM,
                    title="Refund denied",
                    message="Your refund request has been denied",
                    data={"transaction_id": str(tx.id)},
                    action_url=_tx_url(tx),
                ),
            )
        ]
    return [
        (
            tx.buyer_id,
            NotificationPayload(
                type=SYSTEM,
                title="Refund approved",
                message=f"Your refund of ${tx.amount} has been approved and will be processed",
                data={"transaction_id": str(tx.id)},
                action_url=_tx_url(tx),
            ),
        ),
        (
            tx.seller_id,
            NotificationPayload(
                type=SYSTEM,
                title="Refund issued",
                message=f"A refund of ${tx.seller_earnings} was issued for transaction {tx.id}",
                data={"transaction_id": str(tx.id)},
                action_url=_tx_url(tx),
            ),
        ),
    ]


def new_review_messages(rule: Rule, review: Review) -> list[tuple[UUID, NotificationPayload]]:
    if rule.is_owned_by(review.user_id):
        return []
    return [
        (
            rule.owner_id,
            NotificationPayload(
                type=NEW_REVIEW,
                title="New review on your rule",
                message=f'"{rule.title}" received a {review.rating}-star review',
                data={"rule_id": str(rule.id), "review_id": str(review.id)},
                action_url=f"/rules/{rule.id}#reviews",
            ),
        )
    ]
