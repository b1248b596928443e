"""
Tests for the transaction and purchase routes.

Test assertions:
- Purchase returns the transaction and the minted entitlement (201)
- Domain errors map to status codes with a {success, code, message} body
- Refund request moves a transaction to DISPUTED
- Ledger listings and earnings are scoped to the caller
- Download recording appends to the purchase history
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi.testclient import TestClient

from src.adapters.clock import FixedClock
from src.adapters.dev_notifier import DevNotifier
from src.adapters.payment_stub import PaymentStubAdapter
from src.domain.entities import Actor, Rule

Headers = Callable[[Actor], dict[str, str]]


def _buy(client: TestClient, headers: dict[str, str], rule: Rule, method: str = "STRIPE") -> Any:
    return client.post(
        "/api/transactions/purchase",
        json={"rule_id": str(rule.id), "payment_method": method},
        headers=headers,
    )


# --- Purchase ---


class TestPurchaseRoute:
    def test_purchase_returns_transaction_and_entitlement(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
        notifier: DevNotifier,
    ) -> None:
        response = _buy(client, auth_headers(buyer), paid_rule)

        assert response.status_code == 201
        data = response.json()
        tx = data["transaction"]
        assert tx["status"] == "COMPLETED"
        assert tx["amount"] == "29.99"
        assert tx["platform_fee"] == "3.00"
        assert tx["seller_earnings"] == "26.99"
        assert tx["payment_ref"].startswith("pi_")
        assert data["purchase"]["transaction_id"] == tx["id"]
        assert data["purchase"]["license_key"]
        assert data["purchase"]["is_active"] is True
        assert {n.payload.type for n in notifier.sent} == {"RULE_PURCHASED"}

    def test_requires_authentication(self, client: TestClient, paid_rule: Rule) -> None:
        response = client.post(
            "/api/transactions/purchase",
            json={"rule_id": str(paid_rule.id), "payment_method": "STRIPE"},
        )
        assert response.status_code == 401

    def test_garbage_token_is_rejected(self, client: TestClient, paid_rule: Rule) -> None:
        response = _buy(client, {"Authorization": "Bearer not-a-jwt"}, paid_rule)
        assert response.status_code == 401

    def test_second_purchase_conflicts(
        self, client: TestClient, auth_headers: Headers, paid_rule: Rule, buyer: Actor
    ) -> None:
        assert _buy(client, auth_headers(buyer), paid_rule).status_code == 201

        response = _buy(client, auth_headers(buyer), paid_rule)

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "already_owned"
        assert body["message"]

    def test_self_purchase_forbidden(
        self, client: TestClient, auth_headers: Headers, paid_rule: Rule, seller: Actor
    ) -> None:
        response = _buy(client, auth_headers(seller), paid_rule)
        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_free_rule_not_purchasable(
        self, client: TestClient, auth_headers: Headers, free_rule: Rule, buyer: Actor
    ) -> None:
        response = _buy(client, auth_headers(buyer), free_rule)
        assert response.status_code == 409
        assert response.json()["code"] == "rule_not_purchasable"

    def test_unknown_payment_method_is_rejected(
        self, client: TestClient, auth_headers: Headers, paid_rule: Rule, buyer: Actor
    ) -> None:
        response = _buy(client, auth_headers(buyer), paid_rule, method="WIRE")
        assert response.status_code == 422

    def test_declined_payment(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
        payments: PaymentStubAdapter,
    ) -> None:
        payments.decline_all("insufficient_funds")

        response = _buy(client, auth_headers(buyer), paid_rule)

        assert response.status_code == 402
        assert response.json()["code"] == "payment_declined"

        listing = client.get("/api/transactions", headers=auth_headers(buyer)).json()
        assert [t["status"] for t in listing["transactions"]] == ["FAILED"]


# --- Refund request ---


class TestRefundRoute:
    def test_refund_moves_to_disputed(
        self, client: TestClient, auth_headers: Headers, paid_rule: Rule, buyer: Actor
    ) -> None:
        tx_id = _buy(client, auth_headers(buyer), paid_rule).json()["transaction"]["id"]

        response = client.post(
            f"/api/transactions/{tx_id}/refund",
            json={"reason": "Query does not parse on our SIEM"},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "DISPUTED"
        assert data["metadata"]["refund_reason"] == "Query does not parse on our SIEM"

    def test_blank_reason(
        self, client: TestClient, auth_headers: Headers, paid_rule: Rule, buyer: Actor
    ) -> None:
        tx_id = _buy(client, auth_headers(buyer), paid_rule).json()["transaction"]["id"]

        response = client.post(
            f"/api/transactions/{tx_id}/refund", json={"reason": "  "}, headers=auth_headers(buyer)
        )

        assert response.status_code == 400

    def test_window_expired(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
        clock: FixedClock,
    ) -> None:
        tx_id = _buy(client, auth_headers(buyer), paid_rule).json()["transaction"]["id"]
        clock.advance(days=31)

        response = client.post(
            f"/api/transactions/{tx_id}/refund",
            json={"reason": "late"},
            headers=auth_headers(buyer),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "refund_window_expired"

    def test_only_buyer_may_request(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
        other_user: Actor,
    ) -> None:
        tx_id = _buy(client, auth_headers(buyer), paid_rule).json()["transaction"]["id"]

        response = client.post(
            f"/api/transactions/{tx_id}/refund",
            json={"reason": "not mine"},
            headers=auth_headers(other_user),
        )

        assert response.status_code == 403


# --- Queries ---


class TestLedgerQueries:
    def test_get_transaction_visibility(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
        seller: Actor,
        other_user: Actor,
        admin: Actor,
    ) -> None:
        tx_id = _buy(client, auth_headers(buyer), paid_rule).json()["transaction"]["id"]
        url = f"/api/transactions/{tx_id}"

        assert client.get(url, headers=auth_headers(buyer)).status_code == 200
        assert client.get(url, headers=auth_headers(seller)).status_code == 200
        assert client.get(url, headers=auth_headers(admin)).status_code == 200
        assert client.get(url, headers=auth_headers(other_user)).status_code == 403

    def test_list_by_kind(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
        seller: Actor,
    ) -> None:
        _buy(client, auth_headers(buyer), paid_rule)

        sales = client.get(
            "/api/transactions", params={"type": "sales"}, headers=auth_headers(seller)
        ).json()
        purchases = client.get(
            "/api/transactions", params={"type": "purchases"}, headers=auth_headers(seller)
        ).json()

        assert sales["pagination"]["total"] == 1
        assert purchases["pagination"]["total"] == 0

    def test_earnings(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
        other_user: Actor,
        seller: Actor,
        clock: FixedClock,
    ) -> None:
        _buy(client, auth_headers(buyer), paid_rule)
        clock.advance(days=1)
        _buy(client, auth_headers(other_user), paid_rule, method="CRYPTO")

        response = client.get(
            "/api/transactions/earnings", params={"period": "week"}, headers=auth_headers(seller)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_earnings"] == "53.98"
        assert [d["date"] for d in data["daily"]] == ["2025-06-01", "2025-06-02"]
        assert data["lifetime_sales"] == 2
        assert data["lifetime_earnings"] == "53.98"

    def test_unknown_period(
        self, client: TestClient, auth_headers: Headers, seller: Actor
    ) -> None:
        response = client.get(
            "/api/transactions/earnings", params={"period": "decade"}, headers=auth_headers(seller)
        )
        assert response.status_code == 422


# --- Purchases ---


class TestPurchaseRoutes:
    def test_list_and_lookup(
        self, client: TestClient, auth_headers: Headers, paid_rule: Rule, buyer: Actor
    ) -> None:
        _buy(client, auth_headers(buyer), paid_rule)

        listing = client.get("/api/purchases", headers=auth_headers(buyer))
        found = client.get(f"/api/purchases/rule/{paid_rule.id}", headers=auth_headers(buyer))

        assert listing.status_code == 200
        assert [p["rule_id"] for p in listing.json()] == [str(paid_rule.id)]
        assert found.status_code == 200
        assert found.json()["rule_id"] == str(paid_rule.id)

    def test_lookup_without_purchase(
        self, client: TestClient, auth_headers: Headers, paid_rule: Rule, buyer: Actor
    ) -> None:
        response = client.get(f"/api/purchases/rule/{paid_rule.id}", headers=auth_headers(buyer))
        assert response.status_code == 404

    def test_download_records_history(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
    ) -> None:
        purchase_id = _buy(client, auth_headers(buyer), paid_rule).json()["purchase"]["id"]

        response = client.post(
            f"/api/purchases/{purchase_id}/download",
            headers={**auth_headers(buyer), "User-Agent": "rule-sync/1.2"},
        )

        assert response.status_code == 200
        downloads = response.json()["downloads"]
        assert downloads["count"] == 1
        assert downloads["history"][0]["user_agent"] == "rule-sync/1.2"

        rule = client.get(f"/api/rules/{paid_rule.id}", headers=auth_headers(buyer)).json()
        assert rule["statistics"]["downloads"] == 1

    def test_download_by_someone_else_is_not_found(
        self,
        client: TestClient,
        auth_headers: Headers,
        paid_rule: Rule,
        buyer: Actor,
        other_user: Actor,
    ) -> None:
        purchase_id = _buy(client, auth_headers(buyer), paid_rule).json()["purchase"]["id"]

        response = client.post(
            f"/api/purchases/{purchase_id}/download", headers=auth_headers(other_user)
        )

        assert response.status_code == 404
