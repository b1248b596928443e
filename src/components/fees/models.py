"""
Fee component models.

Data models for the platform fee split.

Invariant: platform_fee + seller_earnings == amount, exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_FEE_RATE = Decimal("0.10")


@dataclass(frozen=True)
class FeeConfig:
    """Fee configuration from rules."""

    fee_rate: Decimal = DEFAULT_FEE_RATE
    currency: str = "USD"


@dataclass(frozen=True)
class SplitInput:
    """Input for computing a fee split."""

    amount: Decimal


@dataclass(frozen=True)
class FeeSplit:
    """
    Output of a fee split.

    seller_earnings is the exact complement of platform_fee, never
    rounded on its own.
    """

    platform_fee: Decimal
    seller_earnings: Decimal

    @property
    def total(self) -> Decimal:
        return self.platform_fee + self.seller_earnings
