from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(UTC)


# --- Enums / Literals ---
RoleType = Literal["user", "verified_contributor", "moderator", "admin"]
PaymentMethod = Literal["STRIPE", "PAYPAL", "CRYPTO", "CREDITS"]
TransactionStatus = Literal["PENDING", "COMPLETED", "FAILED", "REFUNDED", "DISPUTED"]
NotificationType = Literal["RULE_PURCHASED", "NEW_REVIEW", "SYSTEM"]

PAYMENT_METHODS: tuple[PaymentMethod, ...] = ("STRIPE", "PAYPAL", "CRYPTO", "CREDITS")

# --- Identity ---


class Actor(BaseModel):
    """Authenticated caller, as supplied by the identity collaborator."""

    user_id: UUID
    role: RoleType = "user"

    model_config = ConfigDict(frozen=True)


# --- Rules (catalog-owned) ---


class RuleContent(BaseModel):
    query: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class RulePricing(BaseModel):
    is_paid: bool = False
    amount: Decimal = Decimal("0")
    currency: str = "USD"


class RuleStatistics(BaseModel):
    rating: float = 0.0
    review_count: int = 0
    downloads: int = 0
    purchases: int = 0
    revenue: Decimal = Decimal("0")


class Rule(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    title: str
    content: RuleContent
    pricing: RulePricing = Field(default_factory=RulePricing)
    statistics: RuleStatistics = Field(default_factory=RuleStatistics)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def is_owned_by(self, user_id: UUID | None) -> bool:
        return user_id is not None and self.owner_id == user_id


# --- Ledger ---


class Transaction(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    buyer_id: UUID
    seller_id: UUID
    rule_id: UUID
    amount: Decimal
    currency: str = "USD"
    payment_method: PaymentMethod
    payment_ref: str
    status: TransactionStatus = "PENDING"
    platform_fee: Decimal = Decimal("0")
    seller_earnings: Decimal = Decimal("0")
    metadata: dict[str, Any] = Field(default_factory=dict)
    refunded_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class DownloadRecord(BaseModel):
    downloaded_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class PurchaseDownloads(BaseModel):
    count: int = 0
    last_downloaded_at: datetime | None = None
    history: list[DownloadRecord] = Field(default_factory=list)


class Purchase(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    buyer_id: UUID
    rule_id: UUID
    transaction_id: UUID
    license_key: str
    access_granted_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime | None = None
    downloads: PurchaseDownloads = Field(default_factory=PurchaseDownloads)
    is_active: bool = True
    revoked_at: datetime | None = None

    def grants_access(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > now


class SellerAccount(BaseModel):
    user_id: UUID
    earnings: Decimal = Decimal("0")
    sales_count: int = 0
    updated_at: datetime = Field(default_factory=utc_now)


# --- Reviews ---


class HelpfulVotes(BaseModel):
    count: int = 0
    users: set[UUID] = Field(default_factory=set)


class Review(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    rule_id: UUID
    user_id: UUID
    rating: int
    comment: str = ""
    verified: bool = False
    helpful: HelpfulVotes = Field(default_factory=HelpfulVotes)
    reported: bool = False
    report_reason: str | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# --- Side channels ---


class Notification(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    recipient_id: UUID
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    action_url: str | None = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=utc_now)


class AuditEvent(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    actor_user_id: UUID | None
    action: str
    target_type: str
    target_id: str
    meta_json: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
