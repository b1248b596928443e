"""
Gated rule views for the catalog.

Each rule's priced content is shown in full or masked depending on the
viewer's entitlement to that rule.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from src.adapters.sqlite_db import SQLitePurchaseRepo, SQLiteRuleRepo
from src.api.deps import (
    get_clock,
    get_gate_config,
    get_optional_actor,
    get_purchase_repo,
    get_rule_repo,
)
from src.api.schemas import RuleListResponse, RuleViewResponse, pagination
from src.components.content_gate import ContentGateConfig, render, render_many
from src.components.entitlements import access_lookup_for, lookup_access
from src.core.ports.time import ClockPort
from src.domain.entities import Actor
from src.domain.errors import NotFound, ValidationFailure

router = APIRouter()

MAX_PAGE_SIZE = 100


@router.get("", response_model=RuleListResponse)
def list_rules(
    page: int = 1,
    limit: int = 20,
    viewer: Actor | None = Depends(get_optional_actor),
    rules: SQLiteRuleRepo = Depends(get_rule_repo),
    purchases: SQLitePurchaseRepo = Depends(get_purchase_repo),
    clock: ClockPort = Depends(get_clock),
    config: ContentGateConfig = Depends(get_gate_config),
) -> RuleListResponse:
    if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationFailure("Invalid pagination parameters", field="page")

    items, total = rules.list_active(limit, (page - 1) * limit)
    viewer_id = viewer.user_id if viewer else None
    visible = access_lookup_for(purchases, viewer_id, items, clock.now_utc())
    views = render_many(items, viewer, visible, config)
    return RuleListResponse(
        rules=[RuleViewResponse.model_validate(v) for v in views],
        pagination=pagination(total, page, limit),
    )


@router.get("/{rule_id}", response_model=RuleViewResponse)
def get_rule(
    rule_id: UUID,
    viewer: Actor | None = Depends(get_optional_actor),
    rules: SQLiteRuleRepo = Depends(get_rule_repo),
    purchases: SQLitePurchaseRepo = Depends(get_purchase_repo),
    clock: ClockPort = Depends(get_clock),
    config: ContentGateConfig = Depends(get_gate_config),
) -> RuleViewResponse:
    viewer_id = viewer.user_id if viewer else None
    rule = rules.get_by_id(rule_id)
    if rule is None or (not rule.is_active and not rule.is_owned_by(viewer_id)):
        raise NotFound("Rule", rule_id)

    access = lookup_access(purchases, viewer_id, rule, clock.now_utc())
    view = render(rule, viewer, access.has_access, config, mode="detail")
    return RuleViewResponse.model_validate(view)
