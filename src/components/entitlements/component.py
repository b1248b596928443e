"""
Entitlement component.

Owns Purchase records: minting on a completed sale, access checks,
download bookkeeping and revocation.

Minting relies on the storage uniqueness constraint for the active
(buyer, rule) key; a concurrent second mint surfaces as AlreadyOwned
from the repository.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from uuid import UUID

from src.core.ports.db import UnitOfWorkFactory, UnitOfWorkPort
from src.core.ports.time import ClockPort
from src.domain.entities import DownloadRecord, Purchase, Rule, Transaction
from src.domain.errors import NotFound
from src.rules.models import Rules

from .models import (
    AccessCheckInput,
    AccessCheckOutput,
    EntitlementConfig,
    ListPurchasesInput,
    RecordDownloadInput,
)
from .ports import PurchaseLookupPort

logger = logging.getLogger(__name__)

# --- Pure Functions ---


def generate_license_key(nbytes: int = 16) -> str:
    """Cryptographically random opaque token, uppercase hex."""
    return secrets.token_hex(nbytes).upper()


def build_purchase(
    buyer_id: UUID,
    rule: Rule,
    transaction: Transaction,
    now: datetime,
    config: EntitlementConfig | None = None,
) -> Purchase:
    config = config or EntitlementConfig()

    expires_at = None
    if config.access_duration_days is not None:
        expires_at = now + timedelta(days=config.access_duration_days)

    return Purchase(
        buyer_id=buyer_id,
        rule_id=rule.id,
        transaction_id=transaction.id,
        license_key=generate_license_key(config.license_key_bytes),
        access_granted_at=now,
        expires_at=expires_at,
    )


def has_active_access(
    actor_id: UUID | None,
    rule: Rule,
    purchase: Purchase | None,
    now: datetime,
) -> bool:
    """
    True if the rule is free, the actor owns it, or the actor holds an
    active non-expired purchase. Anonymous viewers only see free rules.
    """
    return check_access(actor_id, rule, purchase, now).has_access


def check_access(
    actor_id: UUID | None,
    rule: Rule,
    purchase: Purchase | None,
    now: datetime,
) -> AccessCheckOutput:
    if not rule.pricing.is_paid:
        return AccessCheckOutput(has_access=True, reason="free")
    if actor_id is None:
        return AccessCheckOutput(has_access=False, reason="anonymous")
    if rule.is_owned_by(actor_id):
        return AccessCheckOutput(has_access=True, reason="owner")
    if (
        purchase is not None
        and purchase.buyer_id == actor_id
        and purchase.rule_id == rule.id
        and purchase.grants_access(now)
    ):
        return AccessCheckOutput(has_access=True, reason="purchased")
    return AccessCheckOutput(has_access=False, reason="not_purchased")


# --- Store Operations ---


def mint(
    uow: UnitOfWorkPort,
    buyer_id: UUID,
    rule: Rule,
    transaction: Transaction,
    now: datetime,
    config: EntitlementConfig | None = None,
) -> Purchase:
    """
    Insert an active Purchase inside the caller's unit of work.

    Raises:
        AlreadyOwned: an active purchase for (buyer, rule) already exists
    """
    purchase = build_purchase(buyer_id, rule, transaction, now, config)
    return uow.purchases.insert(purchase)


def revoke(uow: UnitOfWorkPort, purchase_id: UUID, now: datetime) -> bool:
    """Deactivate a purchase inside the caller's unit of work."""
    revoked = uow.purchases.revoke(purchase_id, now)
    if revoked:
        logger.info("Purchase %s revoked", purchase_id)
    return revoked


def lookup_access(
    repo: PurchaseLookupPort,
    actor_id: UUID | None,
    rule: Rule,
    now: datetime,
) -> AccessCheckOutput:
    """check_access, reading the actor's purchase from storage when needed."""
    purchase = None
    if actor_id is not None and rule.pricing.is_paid and not rule.is_owned_by(actor_id):
        purchase = repo.get_active(actor_id, rule.id)
    return check_access(actor_id, rule, purchase, now)


def access_lookup_for(
    repo: PurchaseLookupPort,
    actor_id: UUID | None,
    rules: list[Rule],
    now: datetime,
) -> set[UUID]:
    """Ids of the given rules the actor may see in full, in one query."""
    visible = {r.id for r in rules if not r.pricing.is_paid or r.is_owned_by(actor_id)}
    if actor_id is None:
        return visible
    pending = [r.id for r in rules if r.id not in visible]
    return visible | repo.entitled_rule_ids(actor_id, pending, now)


def get_for_rule(repo: PurchaseLookupPort, buyer_id: UUID, rule_id: UUID) -> Purchase | None:
    return repo.get_active(buyer_id, rule_id)


def list_for_buyer(
    repo: PurchaseLookupPort, buyer_id: UUID, active_only: bool = False
) -> list[Purchase]:
    return repo.list_for_buyer(buyer_id, active_only=active_only)


def record_download(
    uow_factory: UnitOfWorkFactory,
    inp: RecordDownloadInput,
    clock: ClockPort,
) -> Purchase:
    """
    Append to the purchase's download history and bump the rule's
    download counter.

    A purchase that is inactive, expired, or belongs to someone else is
    reported as not found.
    """
    now = clock.now_utc()
    with uow_factory() as uow:
        purchase = uow.purchases.get_by_id(inp.purchase_id)
        if purchase is None or purchase.buyer_id != inp.actor_id or not purchase.grants_access(now):
            raise NotFound("Purchase", inp.purchase_id)

        record = DownloadRecord(
            downloaded_at=now, ip_address=inp.ip_address, user_agent=inp.user_agent
        )
        if not uow.purchases.append_download(purchase.id, record):
            raise NotFound("Purchase", inp.purchase_id)
        uow.rules.record_download(purchase.rule_id)

        updated = uow.purchases.get_by_id(purchase.id)
        uow.commit()

    logger.debug("Download recorded for purchase %s", inp.purchase_id)
    return updated or purchase


# --- Run Function (Atomic Component Pattern) ---


def run(
    input_data: AccessCheckInput | RecordDownloadInput | ListPurchasesInput,
    *,
    repo: PurchaseLookupPort,
    clock: ClockPort,
    uow_factory: UnitOfWorkFactory | None = None,
) -> AccessCheckOutput | Purchase | list[Purchase]:
    """
    Run entitlement operation based on input type.

    Args:
        input_data: One of the input types
        repo: Purchase lookup port
        clock: Clock port
        uow_factory: Required for RecordDownloadInput

    Returns:
        Corresponding output type
    """
    if isinstance(input_data, AccessCheckInput):
        return lookup_access(repo, input_data.actor_id, input_data.rule, clock.now_utc())

    if isinstance(input_data, RecordDownloadInput):
        if uow_factory is None:
            raise ValueError("uow_factory is required to record downloads")
        return record_download(uow_factory, input_data, clock)

    if isinstance(input_data, ListPurchasesInput):
        return list_for_buyer(repo, input_data.buyer_id, input_data.active_only)

    raise TypeError(f"Unknown input type: {type(input_data)}")


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> EntitlementConfig:
    return EntitlementConfig(
        license_key_bytes=rules.commerce.license_key_bytes,
        access_duration_days=rules.commerce.access_duration_days,
    )
