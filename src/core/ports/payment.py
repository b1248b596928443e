"""
Payment port interface.

The core does not capture money; it asks the payment collaborator to
authorize a charge for an already-initiated payment reference, then does
the bookkeeping. A voided authorization releases the hold when the ledger
write that followed it could not be committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from src.domain.entities import PaymentMethod

# --- Models ---


@dataclass(frozen=True)
class PaymentRequest:
    """A charge the ledger wants authorized."""

    transaction_id: UUID
    buyer_id: UUID
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_ref: str


@dataclass(frozen=True)
class AuthorizationResult:
    """
    Result of an authorization attempt.

    Attributes:
        approved: Whether the charge was authorized
        payment_ref: Reference the gateway assigned (may differ from request)
        decline_reason: Why it was declined, if it was
        metadata: Optional adapter metadata
    """

    approved: bool
    payment_ref: str
    decline_reason: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


# --- Port Interface ---


class PaymentPort(Protocol):
    """
    Port for payment authorization.

    Implementations:
    - PaymentStubAdapter: Approves everything unless told otherwise (dev/tests)
    - StripeAdapter: Real gateway (future)
    """

    def authorize(self, request: PaymentRequest) -> AuthorizationResult:
        """Authorize a charge. Must not raise for an ordinary decline."""
        ...

    def void(self, transaction_id: UUID, payment_ref: str) -> None:
        """Release an authorization that will not be booked."""
        ...
