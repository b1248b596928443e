"""
Ledger component models.

Data models for purchases, the refund workflow and ledger reporting.

State machine: see src.domain.state (PENDING -> COMPLETED | FAILED,
COMPLETED -> DISPUTED, DISPUTED -> COMPLETED | REFUNDED).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Literal
from uuid import UUID

from src.components.entitlements import EntitlementConfig
from src.components.fees import FeeConfig
from src.domain.entities import (
    PAYMENT_METHODS,
    Actor,
    PaymentMethod,
    Purchase,
    SellerAccount,
    Transaction,
    TransactionStatus,
)

DEFAULT_REFUND_WINDOW_DAYS = 30

TransactionKind = Literal["all", "purchases", "sales"]
Period = Literal["week", "month", "year", "all"]

PERIOD_LENGTHS: dict[Period, timedelta | None] = {
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
    "all": None,
}


# --- Configuration ---


@dataclass(frozen=True)
class LedgerConfig:
    """Ledger configuration from rules."""

    fees: FeeConfig = field(default_factory=FeeConfig)
    entitlements: EntitlementConfig = field(default_factory=EntitlementConfig)
    refund_window_days: int = DEFAULT_REFUND_WINDOW_DAYS
    payment_methods: tuple[str, ...] = PAYMENT_METHODS


# --- Purchase ---


@dataclass(frozen=True)
class PurchaseInput:
    actor: Actor
    rule_id: UUID
    payment_method: PaymentMethod
    payment_ref: str | None = None


@dataclass(frozen=True)
class PurchaseOutput:
    transaction: Transaction
    purchase: Purchase


# --- Refund Workflow ---


@dataclass(frozen=True)
class RefundRequestInput:
    actor: Actor
    transaction_id: UUID
    reason: str


@dataclass(frozen=True)
class ResolveRefundInput:
    actor: Actor
    transaction_id: UUID
    approved: bool
    note: str | None = None


# --- Queries ---


@dataclass(frozen=True)
class GetTransactionInput:
    actor: Actor
    transaction_id: UUID


@dataclass(frozen=True)
class ListTransactionsInput:
    actor: Actor
    kind: TransactionKind = "all"
    page: int = 1
    limit: int = 20


@dataclass(frozen=True)
class ListAllTransactionsInput:
    actor: Actor
    status: TransactionStatus | None = None
    payment_method: PaymentMethod | None = None
    page: int = 1
    limit: int = 20


@dataclass(frozen=True)
class TransactionPage:
    items: list[Transaction]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class EarningsInput:
    actor: Actor
    period: Period = "month"


@dataclass(frozen=True)
class DailyEarnings:
    date: str  # YYYY-MM-DD (UTC)
    earnings: Decimal
    count: int


@dataclass(frozen=True)
class EarningsOutput:
    period: Period
    total_earnings: Decimal
    daily: list[DailyEarnings]
    account: SellerAccount


@dataclass(frozen=True)
class PlatformStatsInput:
    actor: Actor
    period: Period = "month"


@dataclass(frozen=True)
class PaymentMethodTotal:
    payment_method: str
    count: int
    total_amount: Decimal


@dataclass(frozen=True)
class PlatformStatsOutput:
    period: Period
    total_revenue: Decimal
    total_platform_fees: Decimal
    total_seller_earnings: Decimal
    transaction_count: int
    by_payment_method: list[PaymentMethodTotal]
