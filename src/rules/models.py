from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str
    required_sections: list[str]


class RbacRules(BaseModel):
    roles: dict[str, list[str]]
    public_permissions: list[str]


class CommerceRules(BaseModel):
    fee_rate: Decimal = Decimal("0.10")
    currency: str = "USD"
    payment_methods: list[str]
    refund_window_days: int = 30
    license_key_bytes: int = 16
    access_duration_days: int | None = None  # None means perpetual access

    @field_validator("fee_rate")
    @classmethod
    def _fee_rate_in_range(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 1:
            raise ValueError("fee_rate must be in [0, 1)")
        return v


class RangeRule(BaseModel):
    min: int
    max: int


class ReviewRules(BaseModel):
    rating: RangeRule
    comment_max_length: int = 1000
    elevated_roles: list[str] = Field(default_factory=lambda: ["admin", "moderator"])


class ContentGateRules(BaseModel):
    detail_preview_chars: int = 150
    list_preview_chars: int = 100
    purchase_marker: str = "... [Purchase to view full content]"
    anonymous_placeholder: str = "[Login and purchase to view content]"


class OpsRules(BaseModel):
    data_dir_required: bool
    required_env: list[str]


class Rules(BaseModel):
    project: ProjectRules
    rbac: RbacRules
    commerce: CommerceRules
    reviews: ReviewRules
    content_gate: ContentGateRules
    ops: OpsRules
