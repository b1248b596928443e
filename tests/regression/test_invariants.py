from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from src.adapters.sqlite_db import (
    SQLitePurchaseRepo,
    SQLiteReviewRepo,
    SQLiteRuleRepo,
    SQLiteSellerAccountRepo,
    SQLiteTransactionRepo,
)
from src.components.content_gate import ContentGateConfig, render
from src.components.fees import split
from src.components.ledger import (
    PurchaseInput,
    RefundRequestInput,
    ResolveRefundInput,
    purchase,
    request_refund,
    resolve_refund,
)
from src.components.ratings import (
    DeleteReviewInput,
    SubmitReviewInput,
    soft_delete,
    submit,
)
from src.domain.entities import Actor, Transaction
from src.domain.errors import AlreadyOwned, InvalidAmount, InvalidState, PaymentDeclined
from src.domain.state import TERMINAL_STATES, VALID_TRANSITIONS, transition


# --- R1: Fee split ---
@pytest.mark.parametrize(
    "amount", ["0.01", "0.05", "0.15", "1.00", "9.99", "29.99", "45.55", "1234.56"]
)
def test_R1_fee_split_sums_to_amount(amount):
    """R1: platform_fee + seller_earnings equals the amount, to the cent."""
    result = split(Decimal(amount), Decimal("0.10"))

    assert result.platform_fee + result.seller_earnings == Decimal(amount)
    assert result.platform_fee >= 0
    assert result.seller_earnings >= 0
    assert result.platform_fee == result.platform_fee.quantize(Decimal("0.01"))


def test_R1_fee_split_rejects_non_positive():
    """R1: zero, negative and sub-cent amounts are never split."""
    for bad in ("0", "-1.00", "1.005"):
        with pytest.raises(InvalidAmount):
            split(Decimal(bad))


# --- R2: One active entitlement ---
def test_R2_one_active_purchase(db_path, ledger_deps, paid_rule, buyer, payments):
    """R2: at most one active Purchase per (buyer, rule)."""
    purchase(PurchaseInput(buyer, paid_rule.id, "STRIPE"), ledger_deps)

    with pytest.raises(AlreadyOwned):
        purchase(PurchaseInput(buyer, paid_rule.id, "PAYPAL"), ledger_deps)

    active = [p for p in SQLitePurchaseRepo(db_path).list_for_buyer(buyer.user_id) if p.is_active]
    assert len(active) == 1
    assert len(payments.authorized) == 1


def test_R2_refund_frees_the_slot(db_path, ledger_deps, paid_rule, buyer, admin):
    """R2: after an approved refund the buyer may purchase again."""
    first = purchase(PurchaseInput(buyer, paid_rule.id, "STRIPE"), ledger_deps)
    request_refund(RefundRequestInput(buyer, first.transaction.id, "Wrong platform"), ledger_deps)
    resolve_refund(ResolveRefundInput(admin, first.transaction.id, approved=True), ledger_deps)

    second = purchase(PurchaseInput(buyer, paid_rule.id, "STRIPE"), ledger_deps)

    purchases = SQLitePurchaseRepo(db_path).list_for_buyer(buyer.user_id)
    assert {p.id: p.is_active for p in purchases} == {
        first.purchase.id: False,
        second.purchase.id: True,
    }


# --- R3: Rating aggregate ---
def test_R3_aggregate_is_mean_of_active_reviews(db_path, ratings_deps, free_rule):
    """R3: rule rating and review_count follow the active review set."""
    authors = [Actor(user_id=uuid4()) for _ in range(3)]
    outs = [
        submit(SubmitReviewInput(a, free_rule.id, n), ratings_deps)
        for a, n in zip(authors, [5, 4, 4], strict=True)
    ]

    stats = SQLiteRuleRepo(db_path).get_by_id(free_rule.id).statistics
    assert stats.review_count == 3
    assert stats.rating == pytest.approx(13 / 3)

    soft_delete(DeleteReviewInput(authors[0], outs[0].review.id), ratings_deps)

    stats = SQLiteRuleRepo(db_path).get_by_id(free_rule.id).statistics
    active, total = SQLiteReviewRepo(db_path).list_for_rule(free_rule.id)
    assert total == stats.review_count == 2
    assert stats.rating == pytest.approx(sum(r.rating for r in active) / total)


# --- R4: Refund reversal ---
def test_R4_refund_reverses_seller_accounting(db_path, ledger_deps, paid_rule, buyer, admin):
    """R4: an approved refund returns the seller account to its prior state."""
    accounts = SQLiteSellerAccountRepo(db_path)
    before = accounts.get(paid_rule.owner_id)

    out = purchase(PurchaseInput(buyer, paid_rule.id, "CRYPTO"), ledger_deps)
    assert accounts.get(paid_rule.owner_id).earnings == before.earnings + Decimal("26.99")

    request_refund(RefundRequestInput(buyer, out.transaction.id, "Duplicate"), ledger_deps)
    resolve_refund(ResolveRefundInput(admin, out.transaction.id, approved=True), ledger_deps)

    after = accounts.get(paid_rule.owner_id)
    assert after.earnings == before.earnings
    assert after.sales_count == before.sales_count


# --- R5: Lifecycle ---
def _tx(status):
    now = datetime(2025, 6, 1, tzinfo=UTC)
    return Transaction(
        buyer_id=uuid4(),
        seller_id=uuid4(),
        rule_id=uuid4(),
        amount=Decimal("10.00"),
        payment_method="STRIPE",
        payment_ref="pi_test",
        status=status,
        platform_fee=Decimal("1.00"),
        seller_earnings=Decimal("9.00"),
        created_at=now,
        updated_at=now,
    )


@pytest.mark.parametrize("status", sorted(TERMINAL_STATES))
def test_R5_terminal_states_are_final(status):
    """R5: REFUNDED and FAILED accept no further transition."""
    now = datetime(2025, 6, 2, tzinfo=UTC)
    for target in VALID_TRANSITIONS:
        with pytest.raises(InvalidState):
            transition(_tx(status), target, now)


def test_R5_refund_requires_dispute():
    """R5: COMPLETED cannot jump straight to REFUNDED."""
    with pytest.raises(InvalidState):
        transition(_tx("COMPLETED"), "REFUNDED", datetime(2025, 6, 2, tzinfo=UTC))


# --- R6: Gated content ---
def test_R6_masked_view_never_leaks_metadata(paid_rule, buyer):
    """R6: a viewer without access never sees metadata or the full query."""
    view = render(paid_rule, buyer, False, ContentGateConfig(), mode="detail")

    assert view.is_masked is True
    assert view.metadata == {}
    assert view.query != paid_rule.content.query


# --- R7: No partial writes ---
def test_R7_declined_payment_writes_only_failed_row(
    db_path, ledger_deps, paid_rule, buyer, payments
):
    """R7: a declined purchase leaves a FAILED transaction and nothing else."""
    payments.decline_all("card_declined")

    with pytest.raises(PaymentDeclined):
        purchase(PurchaseInput(buyer, paid_rule.id, "STRIPE"), ledger_deps)

    items, total = SQLiteTransactionRepo(db_path).list_all()
    assert total == 1
    assert items[0].status == "FAILED"
    assert SQLitePurchaseRepo(db_path).list_for_buyer(buyer.user_id) == []
    assert SQLiteRuleRepo(db_path).get_by_id(paid_rule.id).statistics.purchases == 0
