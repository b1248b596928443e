"""
Unit tests for the entitlement component.

Tests:
- License keys are random uppercase hex
- Access rules: free, owner, purchased, expired, anonymous
- Minting enforces one active purchase per (buyer, rule)
- Download bookkeeping and not-found cases
- Batched access lookup for listings
"""

from __future__ import annotations

import re
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from src.adapters.clock import FixedClock
from src.adapters.sqlite_db import SQLitePurchaseRepo, SQLiteRuleRepo, SQLiteUnitOfWorkFactory
from src.components.entitlements import (
    AccessCheckInput,
    AccessCheckOutput,
    EntitlementConfig,
    ListPurchasesInput,
    RecordDownloadInput,
    access_lookup_for,
    build_purchase,
    check_access,
    generate_license_key,
    get_for_rule,
    has_active_access,
    list_for_buyer,
    load_config_from_rules,
    mint,
    record_download,
    revoke,
    run,
)
from src.domain.entities import Actor, Purchase, Rule, Transaction
from src.domain.errors import AlreadyOwned, NotFound
from src.rules.models import Rules


def _completed_tx(rule: Rule, buyer: Actor, clock: FixedClock) -> Transaction:
    return Transaction(
        buyer_id=buyer.user_id,
        seller_id=rule.owner_id,
        rule_id=rule.id,
        amount=rule.pricing.amount,
        payment_method="STRIPE",
        payment_ref=f"pi_{uuid4().hex}",
        status="COMPLETED",
        platform_fee=Decimal("3.00"),
        seller_earnings=rule.pricing.amount - Decimal("3.00"),
        created_at=clock.now_utc(),
        updated_at=clock.now_utc(),
    )


def _mint(
    uow_factory: SQLiteUnitOfWorkFactory,
    rule: Rule,
    buyer: Actor,
    clock: FixedClock,
    config: EntitlementConfig | None = None,
) -> Purchase:
    with uow_factory() as uow:
        tx = uow.transactions.insert(_completed_tx(rule, buyer, clock))
        purchase = mint(uow, buyer.user_id, rule, tx, clock.now_utc(), config)
        uow.commit()
    return purchase


# --- License Keys ---


class TestLicenseKey:
    def test_format(self) -> None:
        key = generate_license_key()
        assert re.fullmatch(r"[0-9A-F]{32}", key)

    def test_length_follows_bytes(self) -> None:
        assert len(generate_license_key(8)) == 16

    def test_unique(self) -> None:
        keys = {generate_license_key() for _ in range(200)}
        assert len(keys) == 200


# --- Access Rules ---


class TestAccess:
    def test_free_rule_visible_to_anyone(self, free_rule: Rule, clock: FixedClock) -> None:
        assert has_active_access(None, free_rule, None, clock.now_utc())
        assert has_active_access(uuid4(), free_rule, None, clock.now_utc())

    def test_anonymous_cannot_see_paid(self, paid_rule: Rule, clock: FixedClock) -> None:
        out = check_access(None, paid_rule, None, clock.now_utc())
        assert out == AccessCheckOutput(has_access=False, reason="anonymous")

    def test_owner_always_sees_paid(
        self, paid_rule: Rule, seller: Actor, clock: FixedClock
    ) -> None:
        out = check_access(seller.user_id, paid_rule, None, clock.now_utc())
        assert out.has_access
        assert out.reason == "owner"

    def test_non_purchaser_denied(
        self, paid_rule: Rule, buyer: Actor, clock: FixedClock
    ) -> None:
        assert not has_active_access(buyer.user_id, paid_rule, None, clock.now_utc())

    def test_purchaser_allowed(self, paid_rule: Rule, buyer: Actor, clock: FixedClock) -> None:
        purchase = build_purchase(
            buyer.user_id, paid_rule, _completed_tx(paid_rule, buyer, clock), clock.now_utc()
        )
        assert has_active_access(buyer.user_id, paid_rule, purchase, clock.now_utc())

    def test_someone_elses_purchase_does_not_count(
        self, paid_rule: Rule, buyer: Actor, other_user: Actor, clock: FixedClock
    ) -> None:
        purchase = build_purchase(
            buyer.user_id, paid_rule, _completed_tx(paid_rule, buyer, clock), clock.now_utc()
        )
        assert not has_active_access(other_user.user_id, paid_rule, purchase, clock.now_utc())

    def test_expired_purchase_denied(
        self, paid_rule: Rule, buyer: Actor, clock: FixedClock
    ) -> None:
        purchase = build_purchase(
            buyer.user_id,
            paid_rule,
            _completed_tx(paid_rule, buyer, clock),
            clock.now_utc(),
            EntitlementConfig(access_duration_days=7),
        )
        assert purchase.expires_at == clock.now_utc() + timedelta(days=7)
        assert has_active_access(buyer.user_id, paid_rule, purchase, clock.now_utc())
        assert not has_active_access(
            buyer.user_id, paid_rule, purchase, clock.now_utc() + timedelta(days=7)
        )

    def test_inactive_purchase_denied(
        self, paid_rule: Rule, buyer: Actor, clock: FixedClock
    ) -> None:
        purchase = build_purchase(
            buyer.user_id, paid_rule, _completed_tx(paid_rule, buyer, clock), clock.now_utc()
        ).model_copy(update={"is_active": False})
        assert not has_active_access(buyer.user_id, paid_rule, purchase, clock.now_utc())


# --- Minting ---


class TestMint:
    def test_mint_persists_active_purchase(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        purchase_repo: SQLitePurchaseRepo,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        purchase = _mint(uow_factory, paid_rule, buyer, clock)

        stored = get_for_rule(purchase_repo, buyer.user_id, paid_rule.id)
        assert stored is not None
        assert stored.id == purchase.id
        assert stored.is_active
        assert stored.license_key == purchase.license_key
        assert stored.expires_at is None

    def test_second_active_mint_is_already_owned(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        purchase_repo: SQLitePurchaseRepo,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        _mint(uow_factory, paid_rule, buyer, clock)

        with pytest.raises(AlreadyOwned):
            _mint(uow_factory, paid_rule, buyer, clock)

        # Rolled back: the second transaction row was not kept either
        assert len(list_for_buyer(purchase_repo, buyer.user_id)) == 1

    def test_mint_after_revoke_allowed(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        purchase_repo: SQLitePurchaseRepo,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        first = _mint(uow_factory, paid_rule, buyer, clock)
        with uow_factory() as uow:
            assert revoke(uow, first.id, clock.now_utc())
            uow.commit()

        second = _mint(uow_factory, paid_rule, buyer, clock)

        assert len(list_for_buyer(purchase_repo, buyer.user_id)) == 2
        active = list_for_buyer(purchase_repo, buyer.user_id, active_only=True)
        assert [p.id for p in active] == [second.id]

    def test_revoke_twice_reports_false(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        purchase = _mint(uow_factory, paid_rule, buyer, clock)
        with uow_factory() as uow:
            assert revoke(uow, purchase.id, clock.now_utc())
            assert not revoke(uow, purchase.id, clock.now_utc())
            uow.commit()


# --- Downloads ---


class TestRecordDownload:
    def test_appends_history_and_bumps_counters(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        rule_repo: SQLiteRuleRepo,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        purchase = _mint(uow_factory, paid_rule, buyer, clock)

        clock.advance(hours=1)
        record_download(
            uow_factory,
            RecordDownloadInput(purchase.id, buyer.user_id, "203.0.113.7", "curl/8.0"),
            clock,
        )
        clock.advance(hours=1)
        updated = record_download(
            uow_factory, RecordDownloadInput(purchase.id, buyer.user_id), clock
        )

        assert updated.downloads.count == 2
        assert updated.downloads.last_downloaded_at == clock.now_utc()
        assert [h.ip_address for h in updated.downloads.history] == ["203.0.113.7", None]
        rule = rule_repo.get_by_id(paid_rule.id)
        assert rule is not None
        assert rule.statistics.downloads == 2

    def test_unknown_purchase(
        self, uow_factory: SQLiteUnitOfWorkFactory, buyer: Actor, clock: FixedClock
    ) -> None:
        with pytest.raises(NotFound):
            record_download(uow_factory, RecordDownloadInput(uuid4(), buyer.user_id), clock)

    def test_other_users_purchase_is_not_found(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        paid_rule: Rule,
        buyer: Actor,
        other_user: Actor,
        clock: FixedClock,
    ) -> None:
        purchase = _mint(uow_factory, paid_rule, buyer, clock)
        with pytest.raises(NotFound):
            record_download(
                uow_factory, RecordDownloadInput(purchase.id, other_user.user_id), clock
            )

    def test_revoked_purchase_is_not_found(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        rule_repo: SQLiteRuleRepo,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        purchase = _mint(uow_factory, paid_rule, buyer, clock)
        with uow_factory() as uow:
            revoke(uow, purchase.id, clock.now_utc())
            uow.commit()

        with pytest.raises(NotFound):
            record_download(uow_factory, RecordDownloadInput(purchase.id, buyer.user_id), clock)

        rule = rule_repo.get_by_id(paid_rule.id)
        assert rule is not None
        assert rule.statistics.downloads == 0

    def test_expired_purchase_is_not_found(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        purchase = _mint(
            uow_factory, paid_rule, buyer, clock, EntitlementConfig(access_duration_days=1)
        )
        clock.advance(days=2)
        with pytest.raises(NotFound):
            record_download(uow_factory, RecordDownloadInput(purchase.id, buyer.user_id), clock)


# --- Listing Lookups ---


class TestAccessLookup:
    def test_batched_lookup(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        purchase_repo: SQLitePurchaseRepo,
        paid_rule: Rule,
        free_rule: Rule,
        rule_repo: SQLiteRuleRepo,
        seller: Actor,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        unbought = rule_repo.save(
            paid_rule.model_copy(update={"id": uuid4(), "title": "Another paid rule"})
        )
        _mint(uow_factory, paid_rule, buyer, clock)

        rules = [paid_rule, free_rule, unbought]
        assert access_lookup_for(purchase_repo, buyer.user_id, rules, clock.now_utc()) == {
            paid_rule.id,
            free_rule.id,
        }
        assert access_lookup_for(purchase_repo, None, rules, clock.now_utc()) == {free_rule.id}
        assert access_lookup_for(purchase_repo, seller.user_id, rules, clock.now_utc()) == {
            paid_rule.id,
            free_rule.id,
            unbought.id,
        }


# --- Run / Config ---


class TestRun:
    def test_access_check(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        purchase_repo: SQLitePurchaseRepo,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        out = run(AccessCheckInput(paid_rule, buyer.user_id), repo=purchase_repo, clock=clock)
        assert isinstance(out, AccessCheckOutput)
        assert not out.has_access

        _mint(uow_factory, paid_rule, buyer, clock)
        out = run(AccessCheckInput(paid_rule, buyer.user_id), repo=purchase_repo, clock=clock)
        assert isinstance(out, AccessCheckOutput)
        assert out.has_access

    def test_list(
        self,
        uow_factory: SQLiteUnitOfWorkFactory,
        purchase_repo: SQLitePurchaseRepo,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        _mint(uow_factory, paid_rule, buyer, clock)
        out = run(ListPurchasesInput(buyer.user_id), repo=purchase_repo, clock=clock)
        assert isinstance(out, list)
        assert len(out) == 1

    def test_download_requires_uow(
        self, purchase_repo: SQLitePurchaseRepo, buyer: Actor, clock: FixedClock
    ) -> None:
        with pytest.raises(ValueError):
            run(RecordDownloadInput(uuid4(), buyer.user_id), repo=purchase_repo, clock=clock)

    def test_unknown_input(self, purchase_repo: SQLitePurchaseRepo, clock: FixedClock) -> None:
        with pytest.raises(TypeError):
            run("nope", repo=purchase_repo, clock=clock)  # type: ignore[arg-type]

    def test_config_from_rules(self, rules: Rules) -> None:
        config = load_config_from_rules(rules)
        assert config.license_key_bytes == 16
        assert config.access_duration_days is None
