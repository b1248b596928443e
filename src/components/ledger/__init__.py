"""
Ledger component.

Public API for purchases, the refund workflow and ledger queries.
"""

from .component import (
    LedgerDeps,
    get_transaction,
    list_all,
    list_for_user,
    load_config_from_rules,
    period_start,
    platform_stats,
    purchase,
    request_refund,
    resolve_refund,
    run,
    seller_earnings,
)
from .models import (
    DEFAULT_REFUND_WINDOW_DAYS,
    PERIOD_LENGTHS,
    DailyEarnings,
    EarningsInput,
    EarningsOutput,
    GetTransactionInput,
    LedgerConfig,
    ListAllTransactionsInput,
    ListTransactionsInput,
    PaymentMethodTotal,
    Period,
    PlatformStatsInput,
    PlatformStatsOutput,
    PurchaseInput,
    PurchaseOutput,
    RefundRequestInput,
    ResolveRefundInput,
    TransactionKind,
    TransactionPage,
)

__all__ = [
    # Functions
    "get_transaction",
    "list_all",
    "list_for_user",
    "load_config_from_rules",
    "period_start",
    "platform_stats",
    "purchase",
    "request_refund",
    "resolve_refund",
    "run",
    "seller_earnings",
    # Models
    "DEFAULT_REFUND_WINDOW_DAYS",
    "PERIOD_LENGTHS",
    "DailyEarnings",
    "EarningsInput",
    "EarningsOutput",
    "GetTransactionInput",
    "LedgerConfig",
    "LedgerDeps",
    "ListAllTransactionsInput",
    "ListTransactionsInput",
    "PaymentMethodTotal",
    "Period",
    "PlatformStatsInput",
    "PlatformStatsOutput",
    "PurchaseInput",
    "PurchaseOutput",
    "RefundRequestInput",
    "ResolveRefundInput",
    "TransactionKind",
    "TransactionPage",
]
