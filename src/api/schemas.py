from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.domain.entities import (
    PaymentMethod,
    PurchaseDownloads,
    RulePricing,
    RuleStatistics,
    TransactionStatus,
)

# --- Shared Enums/Types ---
TransactionKind = Literal["all", "purchases", "sales"]
Period = Literal["week", "month", "year", "all"]
ReviewSort = Literal["helpful", "newest", "oldest"]
ModerationAction = Literal["approve", "remove"]


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


# --- Transactions ---
class PurchaseRequest(BaseModel):
    rule_id: UUID
    payment_method: PaymentMethod
    payment_ref: str | None = None


class RefundRequest(BaseModel):
    reason: str


class ResolveRefundRequest(BaseModel):
    approved: bool
    note: str | None = None


class TransactionResponse(BaseModel):
    id: UUID
    buyer_id: UUID
    seller_id: UUID
    rule_id: UUID
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_ref: str
    status: TransactionStatus
    platform_fee: Decimal
    seller_earnings: Decimal
    metadata: dict[str, Any]
    refunded_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionPageResponse(BaseModel):
    transactions: list[TransactionResponse]
    pagination: Pagination


class DailyEarningsResponse(BaseModel):
    date: str
    earnings: Decimal
    count: int

    model_config = ConfigDict(from_attributes=True)


class EarningsResponse(BaseModel):
    period: Period
    total_earnings: Decimal
    daily: list[DailyEarningsResponse]
    lifetime_earnings: Decimal
    lifetime_sales: int


class PaymentMethodTotalResponse(BaseModel):
    payment_method: str
    count: int
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PlatformStatsResponse(BaseModel):
    period: Period
    total_revenue: Decimal
    total_platform_fees: Decimal
    total_seller_earnings: Decimal
    transaction_count: int
    by_payment_method: list[PaymentMethodTotalResponse]

    model_config = ConfigDict(from_attributes=True)


# --- Purchases ---
class PurchaseResponse(BaseModel):
    id: UUID
    buyer_id: UUID
    rule_id: UUID
    transaction_id: UUID
    license_key: str
    access_granted_at: datetime
    expires_at: datetime | None = None
    downloads: PurchaseDownloads
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class PurchaseResultResponse(BaseModel):
    transaction: TransactionResponse
    purchase: PurchaseResponse


# --- Reviews ---
class ReviewCreateRequest(BaseModel):
    rule_id: UUID
    rating: int
    comment: str = ""


class ReviewUpdateRequest(BaseModel):
    rating: int | None = None
    comment: str | None = None


class HelpfulRequest(BaseModel):
    helpful: bool


class ReportRequest(BaseModel):
    reason: str


class ModerationRequest(BaseModel):
    action: ModerationAction


class ReviewResponse(BaseModel):
    id: UUID
    rule_id: UUID
    user_id: UUID
    rating: int
    comment: str
    verified: bool
    helpful_count: int
    user_marked_helpful: bool | None = None
    reported: bool
    report_reason: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ReviewChangeResponse(BaseModel):
    review: ReviewResponse
    rule_rating: float
    rule_review_count: int


class ReviewPageResponse(BaseModel):
    reviews: list[ReviewResponse]
    pagination: Pagination


class HelpfulResponse(BaseModel):
    helpful: int
    user_marked: bool


# --- Rules (gated) ---
class RuleViewResponse(BaseModel):
    id: UUID
    owner_id: UUID
    title: str
    query: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    pricing: RulePricing
    statistics: RuleStatistics
    is_masked: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RuleListResponse(BaseModel):
    rules: list[RuleViewResponse]
    pagination: Pagination


# --- Envelope ---
class MessageResponse(BaseModel):
    success: bool = True
    message: str


# --- Converters ---
def pagination(total: int, page: int, limit: int) -> Pagination:
    pages = (total + limit - 1) // limit if limit else 0
    return Pagination(total=total, page=page, limit=limit, pages=pages)


def review_response(review: Any, user_marked_helpful: bool | None = None) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        rule_id=review.rule_id,
        user_id=review.user_id,
        rating=review.rating,
        comment=review.comment,
        verified=review.verified,
        helpful_count=review.helpful.count,
        user_marked_helpful=user_marked_helpful,
        reported=review.reported,
        report_reason=review.report_reason,
        is_active=review.is_active,
        created_at=review.created_at,
        updated_at=review.updated_at,
    )


def review_page_response(page: Any) -> ReviewPageResponse:
    return ReviewPageResponse(
        reviews=[review_response(v.review, v.user_marked_helpful) for v in page.items],
        pagination=pagination(page.total, page.page, page.limit),
    )


def review_change_response(out: Any) -> ReviewChangeResponse:
    return ReviewChangeResponse(
        review=review_response(out.review),
        rule_rating=out.rating,
        rule_review_count=out.review_count,
    )


def transaction_page_response(page: Any) -> TransactionPageResponse:
    return TransactionPageResponse(
        transactions=[TransactionResponse.model_validate(t) for t in page.items],
        pagination=pagination(page.total, page.page, page.limit),
    )
