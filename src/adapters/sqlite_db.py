"""
SQLite Database Adapter.

Implements the commerce core repository ports using SQLite.
Designed to be Postgres-compatible (uses standard SQL patterns, partial
unique indexes, compare-and-swap updates).

Concurrency model:
- Every mutating operation runs inside SQLiteUnitOfWork, which opens the
  shared connection with BEGIN IMMEDIATE. Writers from any process
  serialize on the database write lock.
- Entitlement and review uniqueness are enforced by partial unique
  indexes; violations are converted to AlreadyOwned / DuplicateReview.
- Transaction status changes are compare-and-swap on the prior status.
- The rating aggregate is recomputed by one UPDATE over active reviews.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from src.domain.entities import (
    AuditEvent,
    DownloadRecord,
    HelpfulVotes,
    Notification,
    Purchase,
    PurchaseDownloads,
    Review,
    Rule,
    RuleContent,
    RulePricing,
    RuleStatistics,
    SellerAccount,
    Transaction,
    TransactionStatus,
)
from src.domain.errors import AlreadyOwned, DuplicateReview, StorageUnavailable
from src.domain.money import from_cents, to_cents

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_SECONDS = 10.0

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def iso(dt: datetime | None) -> str | None:
    """Fixed-width UTC ISO string so text comparison matches time order."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(s: str | None) -> datetime | None:
    """Parse ISO datetime string."""
    return datetime.fromisoformat(s) if s else None


def connect(db_path: str, timeout: float = DEFAULT_BUSY_TIMEOUT_SECONDS) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=timeout)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn
        return connect(self.db_path)

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None

    def _finish(self, conn: sqlite3.Connection, write: bool = False) -> None:
        if self._should_close():
            if write:
                conn.commit()
            conn.close()


# -----------------------------------------------------------------------------
# Rule Repository (catalog-owned rows; the core mutates statistics only)
# -----------------------------------------------------------------------------


class SQLiteRuleRepo(SQLiteRepoBase):
    """SQLite implementation of RuleRepoPort."""

    def get_by_id(self, rule_id: UUID) -> Rule | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM rules WHERE id = ?", (str(rule_id),)).fetchone()
            return self._map_row(row) if row else None
        finally:
            self._finish(conn)

    def list_active(self, limit: int = 20, offset: int = 0) -> tuple[list[Rule], int]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM rules WHERE is_active = 1 "
                "ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
            total = conn.execute("SELECT COUNT(*) AS n FROM rules WHERE is_active = 1").fetchone()
            return [self._map_row(r) for r in rows], total["n"]
        finally:
            self._finish(conn)

    def save(self, rule: Rule) -> Rule:
        """Upsert a rule (catalog collaborator / fixtures)."""
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO rules (
                    id, owner_id, title, query, metadata_json, is_paid,
                    price_cents, currency, rating, review_count, downloads,
                    purchases, revenue_cents, is_active, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    owner_id=excluded.owner_id,
                    title=excluded.title,
                    query=excluded.query,
                    metadata_json=excluded.metadata_json,
                    is_paid=excluded.is_paid,
                    price_cents=excluded.price_cents,
                    currency=excluded.currency,
                    is_active=excluded.is_active,
                    updated_at=excluded.updated_at
                """,
                (
                    str(rule.id),
                    str(rule.owner_id),
                    rule.title,
                    rule.content.query,
                    json.dumps(rule.content.metadata),
                    1 if rule.pricing.is_paid else 0,
                    to_cents(rule.pricing.amount),
                    rule.pricing.currency,
                    rule.statistics.rating,
                    rule.statistics.review_count,
                    rule.statistics.downloads,
                    rule.statistics.purchases,
                    to_cents(rule.statistics.revenue),
                    1 if rule.is_active else 0,
                    iso(rule.created_at),
                    iso(rule.updated_at),
                ),
            )
            self._finish(conn, write=True)
            return rule
        except Exception:
            if self._should_close():
                conn.close()
            raise

    def record_sale(self, rule_id: UUID, amount: Decimal, now: datetime) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                UPDATE rules
                SET purchases = purchases + 1,
                    revenue_cents = revenue_cents + ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (to_cents(amount), iso(now), str(rule_id)),
            )
        finally:
            self._finish(conn, write=True)

    def record_download(self, rule_id: UUID) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE rules SET downloads = downloads + 1 WHERE id = ?", (str(rule_id),)
            )
        finally:
            self._finish(conn, write=True)

    def recompute_rating(self, rule_id: UUID) -> tuple[float, int]:
        """
        Recompute rating/review_count from the authoritative active review set.

        One statement: readers never observe a half-applied aggregate and
        concurrent writers cannot interleave a stale average.
        """
        conn = self._get_conn()
        try:
            conn.execute(
                """
                UPDATE rules SET
                    rating = COALESCE(
                        (SELECT AVG(rating) FROM reviews
                         WHERE rule_id = rules.id AND is_active = 1), 0),
                    review_count = (
                        SELECT COUNT(*) FROM reviews
                        WHERE rule_id = rules.id AND is_active = 1)
                WHERE id = ?
                """,
                (str(rule_id),),
            )
            row = conn.execute(
                "SELECT rating, review_count FROM rules WHERE id = ?", (str(rule_id),)
            ).fetchone()
            if row is None:
                return 0.0, 0
            return float(row["rating"]), int(row["review_count"])
        finally:
            self._finish(conn, write=True)

    def _map_row(self, row: dict[str, Any]) -> Rule:
        return Rule(
            id=UUID(row["id"]),
            owner_id=UUID(row["owner_id"]),
            title=row["title"],
            content=RuleContent(
                query=row["query"], metadata=json.loads(row["metadata_json"] or "{}")
            ),
            pricing=RulePricing(
                is_paid=bool(row["is_paid"]),
                amount=from_cents(row["price_cents"]),
                currency=row["currency"],
            ),
            statistics=RuleStatistics(
                rating=float(row["rating"]),
                review_count=row["review_count"],
                downloads=row["downloads"],
                purchases=row["purchases"],
                revenue=from_cents(row["revenue_cents"]),
            ),
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


# -----------------------------------------------------------------------------
# Transaction Repository (ledger)
# -----------------------------------------------------------------------------

TransactionKind = Literal["all", "purchases", "sales"]


class SQLiteTransactionRepo(SQLiteRepoBase):
    """
    SQLite implementation of TransactionRepoPort.

    Rows are append-mostly: after insert only status, metadata,
    refunded_at and updated_at change, and only through compare_and_set.
    """

    def get_by_id(self, tx_id: UUID) -> Transaction | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM transactions WHERE id = ?", (str(tx_id),)).fetchone()
            return self._map_row(row) if row else None
        finally:
            self._finish(conn)

    def insert(self, tx: Transaction) -> Transaction:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO transactions (
                    id, buyer_id, seller_id, rule_id, amount_cents, currency,
                    payment_method, payment_ref, status, platform_fee_cents,
                    seller_earnings_cents, metadata_json, refunded_at,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(tx.id),
                    str(tx.buyer_id),
                    str(tx.seller_id),
                    str(tx.rule_id),
                    to_cents(tx.amount),
                    tx.currency,
                    tx.payment_method,
                    tx.payment_ref,
                    tx.status,
                    to_cents(tx.platform_fee),
                    to_cents(tx.seller_earnings),
                    json.dumps(tx.metadata, default=str),
                    iso(tx.refunded_at),
                    iso(tx.created_at),
                    iso(tx.updated_at),
                ),
            )
            return tx
        finally:
            self._finish(conn, write=True)

    def compare_and_set(self, tx: Transaction, expected_status: TransactionStatus) -> bool:
        """
        Persist tx's status/metadata only if the stored status is still
        expected_status. Returns False when another writer got there first.
        """
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                UPDATE transactions
                SET status = ?, metadata_json = ?, refunded_at = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    tx.status,
                    json.dumps(tx.metadata, default=str),
                    iso(tx.refunded_at),
                    iso(tx.updated_at),
                    str(tx.id),
                    expected_status,
                ),
            )
            return cursor.rowcount == 1
        finally:
            self._finish(conn, write=True)

    def list_for_user(
        self,
        user_id: UUID,
        kind: TransactionKind = "all",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Transaction], int]:
        if kind == "purchases":
            where, params = "buyer_id = ?", [str(user_id)]
        elif kind == "sales":
            where, params = "seller_id = ?", [str(user_id)]
        else:
            where, params = "(buyer_id = ? OR seller_id = ?)", [str(user_id), str(user_id)]
        return self._page(where, params, limit, offset)

    def list_all(
        self,
        status: str | None = None,
        payment_method: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Transaction], int]:
        where = "1=1"
        params: list[Any] = []
        if status:
            where += " AND status = ?"
            params.append(status)
        if payment_method:
            where += " AND payment_method = ?"
            params.append(payment_method)
        return self._page(where, params, limit, offset)

    def earnings_by_day(self, seller_id: UUID, since: datetime) -> list[dict[str, Any]]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT substr(created_at, 1, 10) AS day,
                       SUM(seller_earnings_cents) AS earnings_cents,
                       COUNT(*) AS count
                FROM transactions
                WHERE seller_id = ? AND status = 'COMPLETED' AND created_at >= ?
                GROUP BY day
                ORDER BY day ASC
                """,
                (str(seller_id), iso(since)),
            ).fetchall()
            return [
                {"date": r["day"], "earnings": from_cents(r["earnings_cents"]), "count": r["count"]}
                for r in rows
            ]
        finally:
            self._finish(conn)

    def platform_totals(self, since: datetime) -> dict[str, Any]:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT COALESCE(SUM(amount_cents), 0) AS revenue,
                       COALESCE(SUM(platform_fee_cents), 0) AS fees,
                       COALESCE(SUM(seller_earnings_cents), 0) AS earnings,
                       COUNT(*) AS count
                FROM transactions
                WHERE status = 'COMPLETED' AND created_at >= ?
                """,
                (iso(since),),
            ).fetchone()
            return {
                "total_revenue": from_cents(row["revenue"]),
                "total_platform_fees": from_cents(row["fees"]),
                "total_seller_earnings": from_cents(row["earnings"]),
                "transaction_count": row["count"],
            }
        finally:
            self._finish(conn)

    def payment_method_breakdown(self, since: datetime) -> list[dict[str, Any]]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT payment_method, COUNT(*) AS count, SUM(amount_cents) AS amount
                FROM transactions
                WHERE status = 'COMPLETED' AND created_at >= ?
                GROUP BY payment_method
                ORDER BY payment_method
                """,
                (iso(since),),
            ).fetchall()
            return [
                {
                    "payment_method": r["payment_method"],
                    "count": r["count"],
                    "total_amount": from_cents(r["amount"]),
                }
                for r in rows
            ]
        finally:
            self._finish(conn)

    def _page(
        self, where: str, params: list[Any], limit: int, offset: int
    ) -> tuple[list[Transaction], int]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT * FROM transactions WHERE {where} "
                "ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) AS n FROM transactions WHERE {where}", params
            ).fetchone()
            return [self._map_row(r) for r in rows], total["n"]
        finally:
            self._finish(conn)

    def _map_row(self, row: dict[str, Any]) -> Transaction:
        return Transaction(
            id=UUID(row["id"]),
            buyer_id=UUID(row["buyer_id"]),
            seller_id=UUID(row["seller_id"]),
            rule_id=UUID(row["rule_id"]),
            amount=from_cents(row["amount_cents"]),
            currency=row["currency"],
            payment_method=row["payment_method"],
            payment_ref=row["payment_ref"],
            status=row["status"],
            platform_fee=from_cents(row["platform_fee_cents"]),
            seller_earnings=from_cents(row["seller_earnings_cents"]),
            metadata=json.loads(row["metadata_json"] or "{}"),
            refunded_at=parse_dt(row["refunded_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


# -----------------------------------------------------------------------------
# Purchase Repository (entitlements)
# -----------------------------------------------------------------------------


class SQLitePurchaseRepo(SQLiteRepoBase):
    """
    SQLite implementation of PurchaseRepoPort.

    Invariant: at most one active purchase per (buyer_id, rule_id),
    enforced by ux_purchases_active_buyer_rule.
    """

    def insert(self, purchase: Purchase) -> Purchase:
        conn = self._get_conn()
        try:
            try:
                conn.execute(
                    """
                    INSERT INTO purchases (
                        id, buyer_id, rule_id, transaction_id, license_key,
                        access_granted_at, expires_at, download_count,
                        last_downloaded_at, is_active, revoked_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(purchase.id),
                        str(purchase.buyer_id),
                        str(purchase.rule_id),
                        str(purchase.transaction_id),
                        purchase.license_key,
                        iso(purchase.access_granted_at),
                        iso(purchase.expires_at),
                        purchase.downloads.count,
                        iso(purchase.downloads.last_downloaded_at),
                        1 if purchase.is_active else 0,
                        iso(purchase.revoked_at),
                    ),
                )
            except sqlite3.IntegrityError as e:
                if "purchases.buyer_id" in str(e) or "ux_purchases_active" in str(e):
                    raise AlreadyOwned(purchase.buyer_id, purchase.rule_id) from e
                raise
            return purchase
        finally:
            self._finish(conn, write=True)

    def get_by_id(self, purchase_id: UUID) -> Purchase | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM purchases WHERE id = ?", (str(purchase_id),)
            ).fetchone()
            return self._map_row(conn, row) if row else None
        finally:
            self._finish(conn)

    def get_by_transaction(self, tx_id: UUID) -> Purchase | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM purchases WHERE transaction_id = ?", (str(tx_id),)
            ).fetchone()
            return self._map_row(conn, row) if row else None
        finally:
            self._finish(conn)

    def get_active(self, buyer_id: UUID, rule_id: UUID) -> Purchase | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM purchases WHERE buyer_id = ? AND rule_id = ? AND is_active = 1",
                (str(buyer_id), str(rule_id)),
            ).fetchone()
            return self._map_row(conn, row) if row else None
        finally:
            self._finish(conn)

    def list_for_buyer(self, buyer_id: UUID, active_only: bool = False) -> list[Purchase]:
        conn = self._get_conn()
        try:
            query = "SELECT * FROM purchases WHERE buyer_id = ?"
            if active_only:
                query += " AND is_active = 1"
            query += " ORDER BY access_granted_at DESC"
            rows = conn.execute(query, (str(buyer_id),)).fetchall()
            return [self._map_row(conn, r) for r in rows]
        finally:
            self._finish(conn)

    def entitled_rule_ids(
        self, buyer_id: UUID, rule_ids: list[UUID], now: datetime
    ) -> set[UUID]:
        """Subset of rule_ids the buyer holds an active, unexpired purchase for."""
        if not rule_ids:
            return set()
        conn = self._get_conn()
        try:
            placeholders = ", ".join("?" for _ in rule_ids)
            rows = conn.execute(
                f"""
                SELECT rule_id FROM purchases
                WHERE buyer_id = ? AND is_active = 1
                  AND (expires_at IS NULL OR expires_at > ?)
                  AND rule_id IN ({placeholders})
                """,
                (str(buyer_id), iso(now), *[str(r) for r in rule_ids]),
            ).fetchall()
            return {UUID(r["rule_id"]) for r in rows}
        finally:
            self._finish(conn)

    def append_download(self, purchase_id: UUID, record: DownloadRecord) -> bool:
        """Append to the download log; False if the purchase is not active."""
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                UPDATE purchases
                SET download_count = download_count + 1, last_downloaded_at = ?
                WHERE id = ? AND is_active = 1
                """,
                (iso(record.downloaded_at), str(purchase_id)),
            )
            if cursor.rowcount != 1:
                return False
            conn.execute(
                """
                INSERT INTO purchase_downloads (purchase_id, downloaded_at, ip_address, user_agent)
                VALUES (?, ?, ?, ?)
                """,
                (str(purchase_id), iso(record.downloaded_at), record.ip_address, record.user_agent),
            )
            return True
        finally:
            self._finish(conn, write=True)

    def revoke(self, purchase_id: UUID, now: datetime) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "UPDATE purchases SET is_active = 0, revoked_at = ? WHERE id = ? AND is_active = 1",
                (iso(now), str(purchase_id)),
            )
            return cursor.rowcount == 1
        finally:
            self._finish(conn, write=True)

    def _map_row(self, conn: sqlite3.Connection, row: dict[str, Any]) -> Purchase:
        history_rows = conn.execute(
            "SELECT * FROM purchase_downloads WHERE purchase_id = ? ORDER BY id ASC",
            (row["id"],),
        ).fetchall()
        return Purchase(
            id=UUID(row["id"]),
            buyer_id=UUID(row["buyer_id"]),
            rule_id=UUID(row["rule_id"]),
            transaction_id=UUID(row["transaction_id"]),
            license_key=row["license_key"],
            access_granted_at=datetime.fromisoformat(row["access_granted_at"]),
            expires_at=parse_dt(row["expires_at"]),
            downloads=PurchaseDownloads(
                count=row["download_count"],
                last_downloaded_at=parse_dt(row["last_downloaded_at"]),
                history=[
                    DownloadRecord(
                        downloaded_at=datetime.fromisoformat(h["downloaded_at"]),
                        ip_address=h["ip_address"],
                        user_agent=h["user_agent"],
                    )
                    for h in history_rows
                ],
            ),
            is_active=bool(row["is_active"]),
            revoked_at=parse_dt(row["revoked_at"]),
        )


# -----------------------------------------------------------------------------
# Review Repository
# -----------------------------------------------------------------------------

ReviewSort = Literal["helpful", "newest", "oldest"]

_REVIEW_ORDER: dict[str, str] = {
    "helpful": "helpful_count DESC, created_at DESC",
    "newest": "created_at DESC",
    "oldest": "created_at ASC",
}


class SQLiteReviewRepo(SQLiteRepoBase):
    """
    SQLite implementation of ReviewRepoPort.

    Reviews are soft-deleted (is_active = 0), never removed.
    """

    def insert(self, review: Review) -> Review:
        conn = self._get_conn()
        try:
            try:
                conn.execute(
                    """
                    INSERT INTO reviews (
                        id, rule_id, user_id, rating, comment, verified,
                        helpful_count, reported, report_reason, is_active,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        str(review.id),
                        str(review.rule_id),
                        str(review.user_id),
                        review.rating,
                        review.comment,
                        1 if review.verified else 0,
                        review.helpful.count,
                        1 if review.reported else 0,
                        review.report_reason,
                        1 if review.is_active else 0,
                        iso(review.created_at),
                        iso(review.updated_at),
                    ),
                )
            except sqlite3.IntegrityError as e:
                if "reviews.rule_id" in str(e) or "ux_reviews_active" in str(e):
                    raise DuplicateReview(review.user_id, review.rule_id) from e
                raise
            return review
        finally:
            self._finish(conn, write=True)

    def get_by_id(self, review_id: UUID) -> Review | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM reviews WHERE id = ?", (str(review_id),)).fetchone()
            return self._map_row(conn, row) if row else None
        finally:
            self._finish(conn)

    def get_active_by_user(self, rule_id: UUID, user_id: UUID) -> Review | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM reviews WHERE rule_id = ? AND user_id = ? AND is_active = 1",
                (str(rule_id), str(user_id)),
            ).fetchone()
            return self._map_row(conn, row) if row else None
        finally:
            self._finish(conn)

    def update_content(self, review: Review) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE reviews SET rating = ?, comment = ?, updated_at = ? WHERE id = ?",
                (review.rating, review.comment, iso(review.updated_at), str(review.id)),
            )
        finally:
            self._finish(conn, write=True)

    def deactivate(self, review_id: UUID, now: datetime) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "UPDATE reviews SET is_active = 0, updated_at = ? WHERE id = ? AND is_active = 1",
                (iso(now), str(review_id)),
            )
            return cursor.rowcount == 1
        finally:
            self._finish(conn, write=True)

    def set_reported(
        self, review_id: UUID, reported: bool, reason: str | None, now: datetime
    ) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE reviews SET reported = ?, report_reason = ?, updated_at = ? WHERE id = ?",
                (1 if reported else 0, reason, iso(now), str(review_id)),
            )
        finally:
            self._finish(conn, write=True)

    def add_helpful_vote(self, review_id: UUID, user_id: UUID, now: datetime) -> bool:
        """Add a vote; True only if this call inserted it."""
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO review_helpful_votes (review_id, user_id, created_at) "
                "VALUES (?, ?, ?)",
                (str(review_id), str(user_id), iso(now)),
            )
            if cursor.rowcount == 1:
                conn.execute(
                    "UPDATE reviews SET helpful_count = helpful_count + 1 WHERE id = ?",
                    (str(review_id),),
                )
                return True
            return False
        finally:
            self._finish(conn, write=True)

    def remove_helpful_vote(self, review_id: UUID, user_id: UUID) -> bool:
        """Remove a vote; True only if this call deleted it."""
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "DELETE FROM review_helpful_votes WHERE review_id = ? AND user_id = ?",
                (str(review_id), str(user_id)),
            )
            if cursor.rowcount == 1:
                conn.execute(
                    "UPDATE reviews SET helpful_count = helpful_count - 1 WHERE id = ?",
                    (str(review_id),),
                )
                return True
            return False
        finally:
            self._finish(conn, write=True)

    def list_for_rule(
        self,
        rule_id: UUID,
        sort: ReviewSort = "helpful",
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[Review], int]:
        order = _REVIEW_ORDER.get(sort, _REVIEW_ORDER["newest"])
        return self._page("rule_id = ? AND is_active = 1", [str(rule_id)], order, limit, offset)

    def list_by_user(
        self, user_id: UUID, limit: int = 10, offset: int = 0
    ) -> tuple[list[Review], int]:
        return self._page(
            "user_id = ? AND is_active = 1", [str(user_id)], "created_at DESC", limit, offset
        )

    def list_reported(self, limit: int = 20, offset: int = 0) -> tuple[list[Review], int]:
        return self._page("reported = 1", [], "updated_at DESC", limit, offset)

    def _page(
        self, where: str, params: list[Any], order: str, limit: int, offset: int
    ) -> tuple[list[Review], int]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT * FROM reviews WHERE {where} ORDER BY {order} LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) AS n FROM reviews WHERE {where}", params
            ).fetchone()
            return [self._map_row(conn, r) for r in rows], total["n"]
        finally:
            self._finish(conn)

    def _map_row(self, conn: sqlite3.Connection, row: dict[str, Any]) -> Review:
        voters = conn.execute(
            "SELECT user_id FROM review_helpful_votes WHERE review_id = ?", (row["id"],)
        ).fetchall()
        return Review(
            id=UUID(row["id"]),
            rule_id=UUID(row["rule_id"]),
            user_id=UUID(row["user_id"]),
            rating=row["rating"],
            comment=row["comment"],
            verified=bool(row["verified"]),
            helpful=HelpfulVotes(
                count=row["helpful_count"], users={UUID(v["user_id"]) for v in voters}
            ),
            reported=bool(row["reported"]),
            report_reason=row["report_reason"],
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


# -----------------------------------------------------------------------------
# Seller Account Repository
# -----------------------------------------------------------------------------


class SQLiteSellerAccountRepo(SQLiteRepoBase):
    """Aggregate seller earnings, adjusted in the same unit of work as the ledger."""

    def get(self, user_id: UUID) -> SellerAccount:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM seller_accounts WHERE user_id = ?", (str(user_id),)
            ).fetchone()
            if not row:
                return SellerAccount(user_id=user_id)
            return SellerAccount(
                user_id=UUID(row["user_id"]),
                earnings=from_cents(row["earnings_cents"]),
                sales_count=row["sales_count"],
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
        finally:
            self._finish(conn)

    def adjust(
        self, user_id: UUID, earnings_delta: Decimal, sales_delta: int, now: datetime
    ) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO seller_accounts (user_id, earnings_cents, sales_count, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    earnings_cents = earnings_cents + excluded.earnings_cents,
                    sales_count = sales_count + excluded.sales_count,
                    updated_at = excluded.updated_at
                """,
                (str(user_id), to_cents(earnings_delta), sales_delta, iso(now)),
            )
        finally:
            self._finish(conn, write=True)


# -----------------------------------------------------------------------------
# Notification Repository
# -----------------------------------------------------------------------------


class SQLiteNotificationRepo(SQLiteRepoBase):
    """Persistent inbox used by the directory notifier."""

    def save(self, notification: Notification) -> Notification:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO notifications (
                    id, recipient_id, type, title, message, data_json,
                    action_url, is_read, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(notification.id),
                    str(notification.recipient_id),
                    notification.type,
                    notification.title,
                    notification.message,
                    json.dumps(notification.data, default=str),
                    notification.action_url,
                    1 if notification.is_read else 0,
                    iso(notification.created_at),
                ),
            )
            return notification
        finally:
            self._finish(conn, write=True)

    def list_for_recipient(self, recipient_id: UUID, limit: int = 50) -> list[Notification]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM notifications WHERE recipient_id = ? "
                "ORDER BY created_at DESC LIMIT ?",
                (str(recipient_id), limit),
            ).fetchall()
            return [
                Notification(
                    id=UUID(r["id"]),
                    recipient_id=UUID(r["recipient_id"]),
                    type=r["type"],
                    title=r["title"],
                    message=r["message"],
                    data=json.loads(r["data_json"] or "{}"),
                    action_url=r["action_url"],
                    is_read=bool(r["is_read"]),
                    created_at=datetime.fromisoformat(r["created_at"]),
                )
                for r in rows
            ]
        finally:
            self._finish(conn)


# -----------------------------------------------------------------------------
# Audit Log Repository
# -----------------------------------------------------------------------------


class SQLiteAuditLogRepo(SQLiteRepoBase):
    """Append-only audit trail of ledger and review mutations."""

    def append(self, event: AuditEvent) -> AuditEvent:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO audit_events (
                    id, actor_user_id, action, target_type, target_id, meta_json, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(event.id),
                    str(event.actor_user_id) if event.actor_user_id else None,
                    event.action,
                    event.target_type,
                    event.target_id,
                    json.dumps(event.meta_json, default=str),
                    iso(event.created_at),
                ),
            )
            return event
        finally:
            self._finish(conn, write=True)

    def list_by_target(self, target_type: str, target_id: str) -> list[AuditEvent]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM audit_events WHERE target_type = ? AND target_id = ? "
                "ORDER BY created_at ASC",
                (target_type, target_id),
            ).fetchall()
            return [
                AuditEvent(
                    id=UUID(r["id"]),
                    actor_user_id=UUID(r["actor_user_id"]) if r["actor_user_id"] else None,
                    action=r["action"],
                    target_type=r["target_type"],
                    target_id=r["target_id"],
                    meta_json=json.loads(r["meta_json"] or "{}"),
                    created_at=datetime.fromisoformat(r["created_at"]),
                )
                for r in rows
            ]
        finally:
            self._finish(conn)


# -----------------------------------------------------------------------------
# Unit of Work
# -----------------------------------------------------------------------------


class SQLiteUnitOfWork:
    """
    SQLite Unit of Work implementation.

    Provides transaction management and access to all repositories.
    Uses a shared connection for all operations within a transaction,
    opened with BEGIN IMMEDIATE so that precondition reads and the writes
    that depend on them run under the database write lock.

    Usage:
        with uow:
            ...
            uow.commit()

    Leaving the block without commit() rolls back. sqlite3.OperationalError
    (locked/unavailable database) surfaces as StorageUnavailable after
    rollback, so nothing is partially written.
    """

    def __init__(self, db_path: str, timeout: float = DEFAULT_BUSY_TIMEOUT_SECONDS):
        self.db_path = db_path
        self.timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._committed = False

        # Lazy-initialized repositories
        self._rules: SQLiteRuleRepo | None = None
        self._transactions: SQLiteTransactionRepo | None = None
        self._purchases: SQLitePurchaseRepo | None = None
        self._reviews: SQLiteReviewRepo | None = None
        self._accounts: SQLiteSellerAccountRepo | None = None
        self._audit_log: SQLiteAuditLogRepo | None = None

    def __enter__(self) -> SQLiteUnitOfWork:
        try:
            self._conn = connect(self.db_path, timeout=self.timeout)
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as e:
            self._close()
            raise StorageUnavailable("begin", e) from e
        self._committed = False
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        try:
            if not self._committed:
                self.rollback()
        finally:
            self._close()

        if isinstance(exc_val, sqlite3.OperationalError):
            logger.error("Unit of work rolled back: %s", exc_val)
            raise StorageUnavailable("write", exc_val) from exc_val

    def commit(self) -> None:
        if self._conn:
            try:
                self._conn.commit()
            except sqlite3.OperationalError as e:
                raise StorageUnavailable("commit", e) from e
            self._committed = True

    def rollback(self) -> None:
        if self._conn:
            self._conn.rollback()

    def _close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
        self._rules = None
        self._transactions = None
        self._purchases = None
        self._reviews = None
        self._accounts = None
        self._audit_log = None

    @property
    def rules(self) -> SQLiteRuleRepo:
        if self._rules is None:
            self._rules = SQLiteRuleRepo(self.db_path, self._conn)
        return self._rules

    @property
    def transactions(self) -> SQLiteTransactionRepo:
        if self._transactions is None:
            self._transactions = SQLiteTransactionRepo(self.db_path, self._conn)
        return self._transactions

    @property
    def purchases(self) -> SQLitePurchaseRepo:
        if self._purchases is None:
            self._purchases = SQLitePurchaseRepo(self.db_path, self._conn)
        return self._purchases

    @property
    def reviews(self) -> SQLiteReviewRepo:
        if self._reviews is None:
            self._reviews = SQLiteReviewRepo(self.db_path, self._conn)
        return self._reviews

    @property
    def accounts(self) -> SQLiteSellerAccountRepo:
        if self._accounts is None:
            self._accounts = SQLiteSellerAccountRepo(self.db_path, self._conn)
        return self._accounts

    @property
    def audit_log(self) -> SQLiteAuditLogRepo:
        if self._audit_log is None:
            self._audit_log = SQLiteAuditLogRepo(self.db_path, self._conn)
        return self._audit_log


class SQLiteUnitOfWorkFactory:
    """Hands out a fresh SQLiteUnitOfWork per operation."""

    def __init__(self, db_path: str, timeout: float = DEFAULT_BUSY_TIMEOUT_SECONDS):
        self.db_path = db_path
        self.timeout = timeout

    def __call__(self) -> SQLiteUnitOfWork:
        return SQLiteUnitOfWork(self.db_path, timeout=self.timeout)
