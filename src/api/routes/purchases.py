"""Purchase (entitlement) routes for the signed-in buyer."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from src.adapters.sqlite_db import SQLitePurchaseRepo, SQLiteUnitOfWorkFactory
from src.api.deps import get_actor, get_clock, get_purchase_repo, get_uow_factory
from src.api.schemas import PurchaseResponse
from src.components.entitlements import (
    RecordDownloadInput,
    get_for_rule,
    list_for_buyer,
    record_download,
)
from src.core.ports.time import ClockPort
from src.domain.entities import Actor
from src.domain.errors import NotFound

router = APIRouter()


@router.get("", response_model=list[PurchaseResponse])
def list_my_purchases(
    active_only: bool = False,
    actor: Actor = Depends(get_actor),
    repo: SQLitePurchaseRepo = Depends(get_purchase_repo),
) -> list[PurchaseResponse]:
    purchases = list_for_buyer(repo, actor.user_id, active_only=active_only)
    return [PurchaseResponse.model_validate(p) for p in purchases]


@router.get("/rule/{rule_id}", response_model=PurchaseResponse)
def get_my_purchase_for_rule(
    rule_id: UUID,
    actor: Actor = Depends(get_actor),
    repo: SQLitePurchaseRepo = Depends(get_purchase_repo),
) -> PurchaseResponse:
    found = get_for_rule(repo, actor.user_id, rule_id)
    if found is None:
        raise NotFound("Purchase")
    return PurchaseResponse.model_validate(found)


@router.post("/{purchase_id}/download", response_model=PurchaseResponse)
def download(
    purchase_id: UUID,
    request: Request,
    actor: Actor = Depends(get_actor),
    uow_factory: SQLiteUnitOfWorkFactory = Depends(get_uow_factory),
    clock: ClockPort = Depends(get_clock),
) -> PurchaseResponse:
    """Record a download of a purchased rule."""
    updated = record_download(
        uow_factory,
        RecordDownloadInput(
            purchase_id=purchase_id,
            actor_id=actor.user_id,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        ),
        clock,
    )
    return PurchaseResponse.model_validate(updated)
