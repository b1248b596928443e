"""
Admin routes: refund resolution, transaction oversight, platform stats,
and review moderation.

Role checks happen in the components; these routes only translate HTTP.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from src.api.deps import get_actor, get_ledger_deps, get_ratings_deps
from src.api.schemas import (
    ModerationRequest,
    Period,
    PlatformStatsResponse,
    ResolveRefundRequest,
    ReviewChangeResponse,
    ReviewPageResponse,
    TransactionPageResponse,
    TransactionResponse,
    review_change_response,
    review_page_response,
    transaction_page_response,
)
from src.components.ledger import (
    LedgerDeps,
    ListAllTransactionsInput,
    PlatformStatsInput,
    ResolveRefundInput,
    list_all,
    platform_stats,
    resolve_refund,
)
from src.components.ratings import (
    ListReportedInput,
    ModerateReviewInput,
    RatingsDeps,
    list_reported,
    moderate,
)
from src.domain.entities import Actor, PaymentMethod, TransactionStatus

router = APIRouter()


# --- Transactions ---


@router.get("/transactions", response_model=TransactionPageResponse)
def all_transactions(
    status: TransactionStatus | None = None,
    payment_method: PaymentMethod | None = None,
    page: int = 1,
    limit: int = 20,
    actor: Actor = Depends(get_actor),
    deps: LedgerDeps = Depends(get_ledger_deps),
) -> TransactionPageResponse:
    result = list_all(ListAllTransactionsInput(actor, status, payment_method, page, limit), deps)
    return transaction_page_response(result)


@router.post("/transactions/{transaction_id}/resolve", response_model=TransactionResponse)
def resolve(
    transaction_id: UUID,
    data: ResolveRefundRequest,
    actor: Actor = Depends(get_actor),
    deps: LedgerDeps = Depends(get_ledger_deps),
) -> TransactionResponse:
    """Approve (refund) or deny a disputed transaction."""
    tx = resolve_refund(ResolveRefundInput(actor, transaction_id, data.approved, data.note), deps)
    return TransactionResponse.model_validate(tx)


@router.get("/stats", response_model=PlatformStatsResponse)
def stats(
    period: Period = "month",
    actor: Actor = Depends(get_actor),
    deps: LedgerDeps = Depends(get_ledger_deps),
) -> PlatformStatsResponse:
    result = platform_stats(PlatformStatsInput(actor, period), deps)
    return PlatformStatsResponse.model_validate(result)


# --- Reviews ---


@router.get("/reviews/reported", response_model=ReviewPageResponse)
def reported_reviews(
    page: int = 1,
    limit: int = 20,
    actor: Actor = Depends(get_actor),
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> ReviewPageResponse:
    return review_page_response(list_reported(ListReportedInput(actor, page, limit), deps))


@router.post("/reviews/{review_id}/moderate", response_model=ReviewChangeResponse)
def moderate_review(
    review_id: UUID,
    data: ModerationRequest,
    actor: Actor = Depends(get_actor),
    deps: RatingsDeps = Depends(get_ratings_deps),
) -> ReviewChangeResponse:
    out = moderate(ModerateReviewInput(actor, review_id, data.action), deps)
    return review_change_response(out)
