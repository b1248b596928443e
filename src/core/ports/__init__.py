# rule-market: Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.db import (
    AuditLogRepoPort,
    NotificationRepoPort,
    PurchaseRepoPort,
    ReviewRepoPort,
    RuleRepoPort,
    SellerAccountRepoPort,
    TransactionRepoPort,
    UnitOfWorkFactory,
    UnitOfWorkPort,
)
from src.core.ports.notifications import NotificationPayload, NotificationPort
from src.core.ports.payment import AuthorizationResult, PaymentPort, PaymentRequest
from src.core.ports.time import ClockPort

__all__ = [
    # Persistence
    "AuditLogRepoPort",
    "NotificationRepoPort",
    "PurchaseRepoPort",
    "ReviewRepoPort",
    "RuleRepoPort",
    "SellerAccountRepoPort",
    "TransactionRepoPort",
    "UnitOfWorkFactory",
    "UnitOfWorkPort",
    # Side channels
    "NotificationPayload",
    "NotificationPort",
    "AuthorizationResult",
    "PaymentPort",
    "PaymentRequest",
    "ClockPort",
]
