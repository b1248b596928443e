"""
Database Adapter Interfaces.

Protocol-based interfaces for the commerce core repositories.
Implementations: SQLite (now), Postgres (future).

Every mutating operation goes through UnitOfWorkPort; repositories
obtained from an open unit of work share its transaction.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from src.domain.entities import (
    AuditEvent,
    DownloadRecord,
    Notification,
    Purchase,
    Review,
    Rule,
    SellerAccount,
    Transaction,
    TransactionStatus,
)

# -----------------------------------------------------------------------------
# Rule Repository (catalog-owned)
# -----------------------------------------------------------------------------


class RuleRepoPort(Protocol):
    """
    Repository for rules.

    The core never creates or destroys rules; it mutates statistics only.
    """

    def get_by_id(self, rule_id: UUID) -> Rule | None:
        """Get rule by ID."""
        ...

    def list_active(self, limit: int = 20, offset: int = 0) -> tuple[list[Rule], int]:
        """List active rules, newest first, with total count."""
        ...

    def save(self, rule: Rule) -> Rule:
        """Upsert a rule (catalog collaborator only)."""
        ...

    def record_sale(self, rule_id: UUID, amount: Decimal, now: datetime) -> None:
        """purchases += 1, revenue += amount."""
        ...

    def record_download(self, rule_id: UUID) -> None:
        """downloads += 1."""
        ...

    def recompute_rating(self, rule_id: UUID) -> tuple[float, int]:
        """Recompute rating/review_count from active reviews. Returns the new values."""
        ...


# -----------------------------------------------------------------------------
# Transaction Repository
# -----------------------------------------------------------------------------


class TransactionRepoPort(Protocol):
    """
    Repository for ledger transactions.

    Invariants:
    - Append-mostly: only status, metadata, refunded_at change after insert
    - platform_fee + seller_earnings == amount
    """

    def get_by_id(self, tx_id: UUID) -> Transaction | None: ...

    def insert(self, tx: Transaction) -> Transaction: ...

    def compare_and_set(self, tx: Transaction, expected_status: TransactionStatus) -> bool:
        """Write tx's status only if the stored status equals expected_status."""
        ...

    def list_for_user(
        self, user_id: UUID, kind: str = "all", limit: int = 20, offset: int = 0
    ) -> tuple[list[Transaction], int]: ...

    def list_all(
        self,
        status: str | None = None,
        payment_method: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Transaction], int]: ...

    def earnings_by_day(self, seller_id: UUID, since: datetime) -> list[dict[str, Any]]: ...

    def platform_totals(self, since: datetime) -> dict[str, Any]: ...

    def payment_method_breakdown(self, since: datetime) -> list[dict[str, Any]]: ...


# -----------------------------------------------------------------------------
# Purchase Repository
# -----------------------------------------------------------------------------


class PurchaseRepoPort(Protocol):
    """
    Repository for purchases (entitlements).

    Invariants:
    - At most one active purchase per (buyer, rule); insert raises AlreadyOwned
    - One purchase per transaction
    """

    def insert(self, purchase: Purchase) -> Purchase: ...

    def get_by_id(self, purchase_id: UUID) -> Purchase | None: ...

    def get_by_transaction(self, tx_id: UUID) -> Purchase | None: ...

    def get_active(self, buyer_id: UUID, rule_id: UUID) -> Purchase | None: ...

    def list_for_buyer(self, buyer_id: UUID, active_only: bool = False) -> list[Purchase]: ...

    def entitled_rule_ids(
        self, buyer_id: UUID, rule_ids: list[UUID], now: datetime
    ) -> set[UUID]: ...

    def append_download(self, purchase_id: UUID, record: DownloadRecord) -> bool: ...

    def revoke(self, purchase_id: UUID, now: datetime) -> bool: ...


# -----------------------------------------------------------------------------
# Review Repository
# -----------------------------------------------------------------------------


class ReviewRepoPort(Protocol):
    """
    Repository for reviews.

    Invariants:
    - At most one active review per (user, rule); insert raises DuplicateReview
    - Soft delete only
    """

    def insert(self, review: Review) -> Review: ...

    def get_by_id(self, review_id: UUID) -> Review | None: ...

    def get_active_by_user(self, rule_id: UUID, user_id: UUID) -> Review | None: ...

    def update_content(self, review: Review) -> None: ...

    def deactivate(self, review_id: UUID, now: datetime) -> bool: ...

    def set_reported(
        self, review_id: UUID, reported: bool, reason: str | None, now: datetime
    ) -> None: ...

    def add_helpful_vote(self, review_id: UUID, user_id: UUID, now: datetime) -> bool: ...

    def remove_helpful_vote(self, review_id: UUID, user_id: UUID) -> bool: ...

    def list_for_rule(
        self, rule_id: UUID, sort: str = "helpful", limit: int = 10, offset: int = 0
    ) -> tuple[list[Review], int]: ...

    def list_by_user(
        self, user_id: UUID, limit: int = 10, offset: int = 0
    ) -> tuple[list[Review], int]: ...

    def list_reported(self, limit: int = 20, offset: int = 0) -> tuple[list[Review], int]: ...


# -----------------------------------------------------------------------------
# Seller Accounts / Notifications / Audit
# -----------------------------------------------------------------------------


class SellerAccountRepoPort(Protocol):
    def get(self, user_id: UUID) -> SellerAccount: ...

    def adjust(
        self, user_id: UUID, earnings_delta: Decimal, sales_delta: int, now: datetime
    ) -> None: ...


class NotificationRepoPort(Protocol):
    def save(self, notification: Notification) -> Notification: ...

    def list_for_recipient(self, recipient_id: UUID, limit: int = 50) -> list[Notification]: ...


class AuditLogRepoPort(Protocol):
    """
    Repository for audit log events.

    Invariants:
    - Append-only (no updates or deletes)
    """

    def append(self, event: AuditEvent) -> AuditEvent: ...

    def list_by_target(self, target_type: str, target_id: str) -> list[AuditEvent]: ...


# -----------------------------------------------------------------------------
# Unit of Work (Transaction Management)
# -----------------------------------------------------------------------------


class UnitOfWorkPort(Protocol):
    """
    Unit of Work pattern for transaction management.

    Usage:
        with uow_factory() as uow:
            uow.transactions.insert(tx)
            uow.purchases.insert(purchase)
            uow.commit()

    Leaving the block without commit() rolls back.
    """

    rules: RuleRepoPort
    transactions: TransactionRepoPort
    purchases: PurchaseRepoPort
    reviews: ReviewRepoPort
    accounts: SellerAccountRepoPort
    audit_log: AuditLogRepoPort

    def __enter__(self) -> UnitOfWorkPort:
        """Enter transaction context (acquires the write lock)."""
        ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit transaction context (rollback unless committed)."""
        ...

    def commit(self) -> None:
        """Commit the transaction."""
        ...

    def rollback(self) -> None:
        """Rollback the transaction."""
        ...


UnitOfWorkFactory = Callable[[], UnitOfWorkPort]
