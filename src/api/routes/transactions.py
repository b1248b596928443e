"""Buyer and seller transaction routes: purchase, refund request, ledger views."""

from uuid import UUID

from fastapi import APIRouter, Depends

from src.api.deps import get_actor, get_ledger_deps
from src.api.schemas import (
    DailyEarningsResponse,
    EarningsResponse,
    Period,
    PurchaseRequest,
    PurchaseResponse,
    PurchaseResultResponse,
    RefundRequest,
    TransactionKind,
    TransactionPageResponse,
    TransactionResponse,
    transaction_page_response,
)
from src.components.ledger import (
    EarningsInput,
    GetTransactionInput,
    LedgerDeps,
    ListTransactionsInput,
    PurchaseInput,
    RefundRequestInput,
    get_transaction,
    list_for_user,
    purchase,
    request_refund,
    seller_earnings,
)
from src.domain.entities import Actor

router = APIRouter()


@router.post("/purchase", response_model=PurchaseResultResponse, status_code=201)
def purchase_rule(
    data: PurchaseRequest,
    actor: Actor = Depends(get_actor),
    deps: LedgerDeps = Depends(get_ledger_deps),
) -> PurchaseResultResponse:
    """Buy a paid rule."""
    result = purchase(
        PurchaseInput(
            actor=actor,
            rule_id=data.rule_id,
            payment_method=data.payment_method,
            payment_ref=data.payment_ref,
        ),
        deps,
    )
    return PurchaseResultResponse(
        transaction=TransactionResponse.model_validate(result.transaction),
        purchase=PurchaseResponse.model_validate(result.purchase),
    )


@router.get("", response_model=TransactionPageResponse)
def list_my_transactions(
    type: TransactionKind = "all",
    page: int = 1,
    limit: int = 20,
    actor: Actor = Depends(get_actor),
    deps: LedgerDeps = Depends(get_ledger_deps),
) -> TransactionPageResponse:
    """The caller's purchases, sales, or both."""
    result = list_for_user(ListTransactionsInput(actor, type, page, limit), deps)
    return transaction_page_response(result)


@router.get("/earnings", response_model=EarningsResponse)
def my_earnings(
    period: Period = "month",
    actor: Actor = Depends(get_actor),
    deps: LedgerDeps = Depends(get_ledger_deps),
) -> EarningsResponse:
    """Completed sales for the caller, grouped by day."""
    result = seller_earnings(EarningsInput(actor, period), deps)
    return EarningsResponse(
        period=result.period,
        total_earnings=result.total_earnings,
        daily=[DailyEarningsResponse.model_validate(d) for d in result.daily],
        lifetime_earnings=result.account.earnings,
        lifetime_sales=result.account.sales_count,
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_one(
    transaction_id: UUID,
    actor: Actor = Depends(get_actor),
    deps: LedgerDeps = Depends(get_ledger_deps),
) -> TransactionResponse:
    tx = get_transaction(GetTransactionInput(actor, transaction_id), deps)
    return TransactionResponse.model_validate(tx)


@router.post("/{transaction_id}/refund", response_model=TransactionResponse)
def refund(
    transaction_id: UUID,
    data: RefundRequest,
    actor: Actor = Depends(get_actor),
    deps: LedgerDeps = Depends(get_ledger_deps),
) -> TransactionResponse:
    """Ask for a refund; the transaction moves to DISPUTED until an admin resolves it."""
    tx = request_refund(RefundRequestInput(actor, transaction_id, data.reason), deps)
    return TransactionResponse.model_validate(tx)
