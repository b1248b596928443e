"""
Entitlement component ports.

Narrow read interface other components use to ask about entitlements.
Writes go through the unit of work (src.core.ports.db).
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.domain.entities import Purchase


class PurchaseLookupPort(Protocol):
    """Read-only purchase queries."""

    def get_active(self, buyer_id: UUID, rule_id: UUID) -> Purchase | None:
        """Get the buyer's active purchase for a rule, if any."""
        ...

    def entitled_rule_ids(
        self, buyer_id: UUID, rule_ids: list[UUID], now: datetime
    ) -> set[UUID]:
        """Subset of rule_ids the buyer holds an active, unexpired purchase for."""
        ...

    def list_for_buyer(self, buyer_id: UUID, active_only: bool = False) -> list[Purchase]:
        ...
