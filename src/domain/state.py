from datetime import datetime
from typing import Any

from src.domain.entities import Transaction, TransactionStatus
from src.domain.errors import InvalidState

# PENDING is transient: purchases are authorized synchronously, so a row is
# normally written directly as COMPLETED or FAILED.
VALID_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    "PENDING": {"COMPLETED", "FAILED"},
    "COMPLETED": {"DISPUTED"},
    "DISPUTED": {"COMPLETED", "REFUNDED"},
    "REFUNDED": set(),
    "FAILED": set(),
}

TERMINAL_STATES: frozenset[TransactionStatus] = frozenset({"REFUNDED", "FAILED"})


def can_transition(current: TransactionStatus, new: TransactionStatus) -> bool:
    """
    Determine if a transaction status change is allowed.
    """
    return new in VALID_TRANSITIONS.get(current, set())


def is_terminal(status: TransactionStatus) -> bool:
    return status in TERMINAL_STATES


def transition(
    tx: Transaction,
    new_status: TransactionStatus,
    now: datetime,
    metadata: dict[str, Any] | None = None,
) -> Transaction:
    """
    Return a NEW Transaction with the updated status.
    Raises InvalidState if the transition is not allowed.

    The caller persists the result with a compare-and-swap on the
    previous status, so the check here and the write stay one unit.
    """
    if not can_transition(tx.status, new_status):
        expected = tuple(
            sorted(s for s, targets in VALID_TRANSITIONS.items() if new_status in targets)
        )
        raise InvalidState(tx.status, expected or new_status)

    updates: dict[str, Any] = {"status": new_status, "updated_at": now}

    if metadata:
        updates["metadata"] = {**tx.metadata, **metadata}

    if new_status == "REFUNDED":
        updates["refunded_at"] = now

    return tx.model_copy(update=updates)
