"""
Payment stub adapter (dev/tests).

Stub implementation of PaymentPort that approves every authorization.
Used until a real gateway is integrated; the payment reference supplied
by the client is echoed back (or one is generated when absent).

Can be told to decline globally or for specific buyers, and records every
call so tests can assert on authorizations and voids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID, uuid4

from src.core.ports.payment import AuthorizationResult, PaymentPort, PaymentRequest

logger = logging.getLogger(__name__)


@dataclass
class PaymentStubAdapter:
    """
    Stub payment adapter.

    This adapter satisfies the PaymentPort protocol.
    """

    # Override behaviour for testing purposes
    _decline_reason: str | None = None
    _declined_buyers: dict[UUID, str] = field(default_factory=dict)

    authorized: list[PaymentRequest] = field(default_factory=list)
    voided: list[tuple[UUID, str]] = field(default_factory=list)

    def authorize(self, request: PaymentRequest) -> AuthorizationResult:
        payment_ref = request.payment_ref or f"pi_{uuid4().hex}"
        reason = self._declined_buyers.get(request.buyer_id, self._decline_reason)

        logger.debug(
            "PaymentStubAdapter.authorize: tx=%s buyer=%s amount=%s %s approved=%s",
            request.transaction_id,
            request.buyer_id,
            request.amount,
            request.currency,
            reason is None,
        )

        if reason is not None:
            return AuthorizationResult(
                approved=False,
                payment_ref=payment_ref,
                decline_reason=reason,
                metadata={"adapter": "stub"},
            )

        self.authorized.append(request)
        return AuthorizationResult(
            approved=True, payment_ref=payment_ref, metadata={"adapter": "stub"}
        )

    def void(self, transaction_id: UUID, payment_ref: str) -> None:
        logger.info("PaymentStubAdapter.void: tx=%s ref=%s", transaction_id, payment_ref)
        self.voided.append((transaction_id, payment_ref))

    # --- Testing Helpers ---

    def decline_all(self, reason: str = "card_declined") -> None:
        """Decline every authorization until cleared."""
        self._decline_reason = reason

    def decline_buyer(self, buyer_id: UUID, reason: str = "card_declined") -> None:
        """Decline authorizations for one buyer (testing)."""
        self._declined_buyers[buyer_id] = reason

    def clear_overrides(self) -> None:
        """Clear all overrides."""
        self._decline_reason = None
        self._declined_buyers = {}


# Verify protocol compliance at module load time
def _verify_protocol_compliance() -> None:
    """Verify PaymentStubAdapter satisfies PaymentPort protocol."""
    adapter: PaymentPort = PaymentStubAdapter()
    _ = adapter.authorize


_verify_protocol_compliance()
