"""
Ledger component.

Transaction lifecycle: purchase, refund request, refund resolution, and
the buyer/seller/admin ledger queries.

Every mutation runs in one unit of work; status changes are
compare-and-swap on the previous status so two concurrent resolvers
cannot both apply. Notifications are sent after commit and never roll a
mutation back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from src.components import entitlements, fees
from src.components.notifications import (
    dispatch_all,
    purchase_messages,
    refund_requested_messages,
    refund_resolved_messages,
)
from src.core.ports.db import SellerAccountRepoPort, TransactionRepoPort
from src.domain.entities import Actor, AuditEvent, Purchase, Rule, Transaction, TransactionStatus
from src.domain.errors import (
    AdminRequired,
    AlreadyOwned,
    Forbidden,
    InvalidState,
    MissingReason,
    NotBuyer,
    NotFound,
    PaymentDeclined,
    RefundWindowExpired,
    RuleNotPurchasable,
    SelfPurchaseForbidden,
    ValidationFailure,
)
from src.domain.policy import PolicyEngine
from src.domain.state import transition
from src.rules.models import Rules

from .models import (
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
    TransactionPage,
)
from .ports import (
    ClockPort,
    NotificationPort,
    PaymentPort,
    PaymentRequest,
    UnitOfWorkFactory,
    UnitOfWorkPort,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass
class LedgerDeps:
    """Collaborators the ledger operations run against."""

    uow_factory: UnitOfWorkFactory
    transactions: TransactionRepoPort
    accounts: SellerAccountRepoPort
    payments: PaymentPort
    clock: ClockPort
    policy: PolicyEngine
    notifier: NotificationPort | None = None
    config: LedgerConfig = field(default_factory=LedgerConfig)


# --- Helpers ---


def _audit(
    uow: UnitOfWorkPort,
    actor: Actor,
    action: str,
    tx: Transaction,
    now: datetime,
    **meta: Any,
) -> None:
    uow.audit_log.append(
        AuditEvent(
            actor_user_id=actor.user_id,
            action=action,
            target_type="transaction",
            target_id=str(tx.id),
            meta_json={"status": tx.status, **meta},
            created_at=now,
        )
    )


def _purchasable_rule(
    uow: UnitOfWorkPort, actor: Actor, rule_id: UUID, now: datetime
) -> tuple[Rule, Purchase | None]:
    """
    Check purchase preconditions.

    Returns the rule and, if the buyer holds an active but expired
    purchase, that stale purchase (to be revoked before minting).
    """
    rule = uow.rules.get_by_id(rule_id)
    if rule is None:
        raise NotFound("Rule", rule_id)
    if not rule.is_active or not rule.pricing.is_paid or rule.pricing.amount <= 0:
        raise RuleNotPurchasable(rule.id)
    if rule.is_owned_by(actor.user_id):
        raise SelfPurchaseForbidden()

    existing = uow.purchases.get_active(actor.user_id, rule.id)
    if existing is not None:
        if existing.grants_access(now):
            raise AlreadyOwned(actor.user_id, rule.id)
        return rule, existing
    return rule, None


def _void_authorization(payments: PaymentPort, tx: Transaction) -> None:
    try:
        payments.void(tx.id, tx.payment_ref)
    except Exception:
        logger.exception(
            "Failed to void authorization %s for transaction %s", tx.payment_ref, tx.id
        )


def _page_bounds(page: int, limit: int) -> tuple[int, int]:
    if page < 1:
        raise ValidationFailure("page must be >= 1", field="page")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationFailure(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
    return limit, (page - 1) * limit


def period_start(period: Period, now: datetime) -> datetime:
    if period not in PERIOD_LENGTHS:
        raise ValidationFailure(f"Unknown period: {period}", field="period")
    length = PERIOD_LENGTHS[period]
    return now - length if length is not None else EPOCH


# --- Purchase ---


def purchase(inp: PurchaseInput, deps: LedgerDeps) -> PurchaseOutput:
    """
    Buy a paid rule.

    Preconditions are checked before payment is authorized and again
    under the write lock. A declined authorization is booked as a FAILED
    transaction and raised as PaymentDeclined. If the booking fails
    after authorization, the authorization is voided.

    Raises:
        ValidationFailure: unsupported payment method
        Forbidden: role may not purchase rules
        NotFound: rule does not exist
        RuleNotPurchasable: rule is free, inactive, or unpriced
        SelfPurchaseForbidden: buyer owns the rule
        AlreadyOwned: buyer already holds an active purchase
        PaymentDeclined: payment collaborator declined
    """
    cfg = deps.config
    actor = inp.actor

    if inp.payment_method not in cfg.payment_methods:
        raise ValidationFailure(
            f"Unsupported payment method: {inp.payment_method}", field="payment_method"
        )
    if not deps.policy.check_permission(actor, "rules:purchase"):
        raise Forbidden("Role is not allowed to purchase rules")

    now = deps.clock.now_utc()
    with deps.uow_factory() as uow:
        rule, _ = _purchasable_rule(uow, actor, inp.rule_id, now)

    split = fees.split(rule.pricing.amount, cfg.fees.fee_rate)
    pending = Transaction(
        buyer_id=actor.user_id,
        seller_id=rule.owner_id,
        rule_id=rule.id,
        amount=rule.pricing.amount,
        currency=rule.pricing.currency,
        payment_method=inp.payment_method,
        payment_ref=inp.payment_ref or "",
        platform_fee=split.platform_fee,
        seller_earnings=split.seller_earnings,
        metadata={"rule_title": rule.title},
        created_at=now,
        updated_at=now,
    )

    auth = deps.payments.authorize(
        PaymentRequest(
            transaction_id=pending.id,
            buyer_id=actor.user_id,
            amount=pending.amount,
            currency=pending.currency,
            payment_method=pending.payment_method,
            payment_ref=pending.payment_ref,
        )
    )
    pending = pending.model_copy(update={"payment_ref": auth.payment_ref})

    if not auth.approved:
        failed = transition(pending, "FAILED", now, {"decline_reason": auth.decline_reason})
        with deps.uow_factory() as uow:
            uow.transactions.insert(failed)
            _audit(uow, actor, "transaction.failed", failed, now, reason=auth.decline_reason)
            uow.commit()
        logger.info("Payment declined for transaction %s: %s", failed.id, auth.decline_reason)
        raise PaymentDeclined(failed.id, auth.decline_reason)

    completed = transition(pending, "COMPLETED", now)
    try:
        with deps.uow_factory() as uow:
            rule, stale = _purchasable_rule(uow, actor, inp.rule_id, now)
            if stale is not None:
                entitlements.revoke(uow, stale.id, now)

            uow.transactions.insert(completed)
            minted = entitlements.mint(uow, actor.user_id, rule, completed, now, cfg.entitlements)
            uow.rules.record_sale(rule.id, completed.amount, now)
            uow.accounts.adjust(completed.seller_id, completed.seller_earnings, 1, now)
            _audit(
                uow,
                actor,
                "transaction.completed",
                completed,
                now,
                rule_id=str(rule.id),
                amount=str(completed.amount),
            )
            uow.commit()
    except Exception:
        _void_authorization(deps.payments, completed)
        raise

    logger.info(
        "Transaction %s completed: buyer=%s rule=%s amount=%s fee=%s",
        completed.id,
        actor.user_id,
        rule.id,
        completed.amount,
        completed.platform_fee,
    )
    dispatch_all(deps.notifier, purchase_messages(rule, completed, minted))
    return PurchaseOutput(transaction=completed, purchase=minted)


# --- Refund Workflow ---


def request_refund(inp: RefundRequestInput, deps: LedgerDeps) -> Transaction:
    """
    Buyer asks for a refund: COMPLETED -> DISPUTED.

    Raises:
        MissingReason: reason is blank
        NotFound: transaction does not exist
        NotBuyer: requester is not the buyer
        InvalidState: transaction is not COMPLETED
        RefundWindowExpired: more than refund_window_days since purchase
    """
    reason = (inp.reason or "").strip()
    if not reason:
        raise MissingReason("Refund reason")

    window_days = deps.config.refund_window_days
    now = deps.clock.now_utc()

    with deps.uow_factory() as uow:
        tx = uow.transactions.get_by_id(inp.transaction_id)
        if tx is None:
            raise NotFound("Transaction", inp.transaction_id)
        if tx.buyer_id != inp.actor.user_id:
            raise NotBuyer()
        if tx.status != "COMPLETED":
            raise InvalidState(tx.status, "COMPLETED")
        if now - tx.created_at > timedelta(days=window_days):
            raise RefundWindowExpired(window_days)

        disputed = transition(
            tx,
            "DISPUTED",
            now,
            {
                "refund_reason": reason,
                "refund_requested_at": now.isoformat(),
                "refund_requested_by": str(inp.actor.user_id),
            },
        )
        if not uow.transactions.compare_and_set(disputed, "COMPLETED"):
            raise InvalidState(tx.status, "COMPLETED")
        _audit(uow, inp.actor, "transaction.refund_requested", disputed, now, reason=reason)
        uow.commit()

    logger.info("Refund requested for transaction %s by %s", tx.id, inp.actor.user_id)
    dispatch_all(deps.notifier, refund_requested_messages(disputed))
    return disputed


def resolve_refund(inp: ResolveRefundInput, deps: LedgerDeps) -> Transaction:
    """
    Admin resolves a dispute: DISPUTED -> REFUNDED (approved) or
    DISPUTED -> COMPLETED (denied).

    Approval debits the seller account by exactly seller_earnings and
    revokes the purchase, in the same unit of work as the status change.

    Raises:
        AdminRequired: caller is not an admin
        NotFound: transaction does not exist
        InvalidState: transaction is not DISPUTED (including a lost race)
    """
    if not deps.policy.can_resolve_refunds(inp.actor):
        raise AdminRequired("resolve refunds")

    now = deps.clock.now_utc()
    new_status: TransactionStatus = "REFUNDED" if inp.approved else "COMPLETED"

    with deps.uow_factory() as uow:
        tx = uow.transactions.get_by_id(inp.transaction_id)
        if tx is None:
            raise NotFound("Transaction", inp.transaction_id)
        if tx.status != "DISPUTED":
            raise InvalidState(tx.status, "DISPUTED")

        resolved = transition(
            tx,
            new_status,
            now,
            {
                "refund_resolution": {
                    "approved": inp.approved,
                    "resolved_by": str(inp.actor.user_id),
                    "resolved_at": now.isoformat(),
                    "note": inp.note,
                }
            },
        )
        if not uow.transactions.compare_and_set(resolved, "DISPUTED"):
            raise InvalidState(tx.status, "DISPUTED")

        revoked = False
        if inp.approved:
            uow.accounts.adjust(tx.seller_id, -tx.seller_earnings, -1, now)
            owned = uow.purchases.get_by_transaction(tx.id)
            if owned is not None:
                revoked = entitlements.revoke(uow, owned.id, now)

        _audit(
            uow,
            inp.actor,
            "transaction.refund_approved" if inp.approved else "transaction.refund_denied",
            resolved,
            now,
            purchase_revoked=revoked,
        )
        uow.commit()

    logger.info(
        "Refund for transaction %s %s by %s",
        tx.id,
        "approved" if inp.approved else "denied",
        inp.actor.user_id,
    )
    dispatch_all(deps.notifier, refund_resolved_messages(resolved, inp.approved))
    return resolved


# --- Queries ---


def get_transaction(inp: GetTransactionInput, deps: LedgerDeps) -> Transaction:
    tx = deps.transactions.get_by_id(inp.transaction_id)
    if tx is None:
        raise NotFound("Transaction", inp.transaction_id)
    if not deps.policy.can_view_transaction(inp.actor, tx):
        raise Forbidden("Not authorized to view this transaction")
    return tx


def list_for_user(inp: ListTransactionsInput, deps: LedgerDeps) -> TransactionPage:
    if inp.kind not in ("all", "purchases", "sales"):
        raise ValidationFailure(f"Unknown transaction type: {inp.kind}", field="type")
    limit, offset = _page_bounds(inp.page, inp.limit)
    items, total = deps.transactions.list_for_user(inp.actor.user_id, inp.kind, limit, offset)
    return TransactionPage(items=items, total=total, page=inp.page, limit=limit)


def list_all(inp: ListAllTransactionsInput, deps: LedgerDeps) -> TransactionPage:
    if not deps.policy.can_view_all_transactions(inp.actor):
        raise AdminRequired("list all transactions")
    limit, offset = _page_bounds(inp.page, inp.limit)
    items, total = deps.transactions.list_all(inp.status, inp.payment_method, limit, offset)
    return TransactionPage(items=items, total=total, page=inp.page, limit=limit)


def seller_earnings(inp: EarningsInput, deps: LedgerDeps) -> EarningsOutput:
    """Completed sales for the caller, grouped by UTC day."""
    since = period_start(inp.period, deps.clock.now_utc())
    rows = deps.transactions.earnings_by_day(inp.actor.user_id, since)
    daily = [DailyEarnings(date=r["date"], earnings=r["earnings"], count=r["count"]) for r in rows]
    return EarningsOutput(
        period=inp.period,
        total_earnings=sum((d.earnings for d in daily), Decimal("0.00")),
        daily=daily,
        account=deps.accounts.get(inp.actor.user_id),
    )


def platform_stats(inp: PlatformStatsInput, deps: LedgerDeps) -> PlatformStatsOutput:
    if not deps.policy.is_admin(inp.actor):
        raise AdminRequired("view platform statistics")
    since = period_start(inp.period, deps.clock.now_utc())
    totals = deps.transactions.platform_totals(since)
    breakdown = deps.transactions.payment_method_breakdown(since)
    return PlatformStatsOutput(
        period=inp.period,
        total_revenue=totals["total_revenue"],
        total_platform_fees=totals["total_platform_fees"],
        total_seller_earnings=totals["total_seller_earnings"],
        transaction_count=totals["transaction_count"],
        by_payment_method=[
            PaymentMethodTotal(
                payment_method=b["payment_method"],
                count=b["count"],
                total_amount=b["total_amount"],
            )
            for b in breakdown
        ],
    )


# --- Run Function (Atomic Component Pattern) ---


LedgerInput = (
    PurchaseInput
    | RefundRequestInput
    | ResolveRefundInput
    | GetTransactionInput
    | ListTransactionsInput
    | ListAllTransactionsInput
    | EarningsInput
    | PlatformStatsInput
)


def run(
    inp: LedgerInput, deps: LedgerDeps
) -> PurchaseOutput | Transaction | TransactionPage | EarningsOutput | PlatformStatsOutput:
    """
    Main component entry point (Atomic Component Pattern).

    Args:
        inp: Input command
        deps: Ledger collaborators

    Returns:
        Operation result
    """
    if isinstance(inp, PurchaseInput):
        return purchase(inp, deps)
    elif isinstance(inp, RefundRequestInput):
        return request_refund(inp, deps)
    elif isinstance(inp, ResolveRefundInput):
        return resolve_refund(inp, deps)
    elif isinstance(inp, GetTransactionInput):
        return get_transaction(inp, deps)
    elif isinstance(inp, ListTransactionsInput):
        return list_for_user(inp, deps)
    elif isinstance(inp, ListAllTransactionsInput):
        return list_all(inp, deps)
    elif isinstance(inp, EarningsInput):
        return seller_earnings(inp, deps)
    elif isinstance(inp, PlatformStatsInput):
        return platform_stats(inp, deps)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> LedgerConfig:
    return LedgerConfig(
        fees=fees.load_config_from_rules(rules),
        entitlements=entitlements.load_config_from_rules(rules),
        refund_window_days=rules.commerce.refund_window_days,
        payment_methods=tuple(rules.commerce.payment_methods),
    )
