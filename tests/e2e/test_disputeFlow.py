"""
E2E: Disputes.

- A party to a paid order raises a dispute; the order becomes DISPUTED
- Only admins review and rule; a ruling settles the order (and its
  contract) as COMPLETED or CANCELLED
- The student is credited at most once, and never on a cancellation
- Access control on reads
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from collabotree.models import Dispute, Order, OrderStatus, WalletEntry
from tests.e2e.conftest import (
    ADMIN_ID,
    BUYER2_ID,
    BUYER_ID,
    SERVICE_PRICE,
    STUDENT_ID,
    accepted_hire,
    auth_headers,
    contract_at_stage,
    count_rows,
    direct_order,
    fetch_all,
)


pytestmark = pytest.mark.asyncio

PAYOUT_CENTS = 9000


async def _raise(client: AsyncClient, order_id: str, user_id=BUYER_ID, **overrides):
    payload = {
        "order_id": order_id,
        "title": "Logo not delivered",
        "description": "The student stopped answering after payment.",
        **overrides,
    }
    return await client.post("/api/v1/disputes", json=payload, headers=auth_headers(user_id))


async def _rule(client: AsyncClient, dispute_id: str, status: str, user_id=ADMIN_ID, **extra):
    return await client.patch(
        f"/api/v1/disputes/{dispute_id}/status",
        json={"status": status, **extra},
        headers=auth_headers(user_id),
    )


async def _disputed_contract(client: AsyncClient) -> dict:
    ids = await contract_at_stage(client, "paid")
    resp = await _raise(client, ids["order_id"])
    assert resp.status_code == 201, resp.text
    ids["dispute_id"] = resp.json()["data"]["id"]
    return ids


async def _contract(client: AsyncClient, contract_id: str) -> dict:
    resp = await client.get(f"/api/v1/contracts/{contract_id}", headers=auth_headers(BUYER_ID))
    return resp.json()["data"]


class TestRaiseDispute:

    async def test_buyer_raises_on_paid_order(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "paid")
        resp = await _raise(client, ids["order_id"])
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["message"] == "Dispute raised"
        assert body["data"]["status"] == "OPEN"
        assert body["data"]["raised_by_id"] == str(BUYER_ID)

        orders = await fetch_all(session_factory, Order)
        assert orders[0].status == OrderStatus.DISPUTED

        resp = await client.get("/api/v1/notifications", headers=auth_headers(STUDENT_ID))
        types = [n["notification_type"] for n in resp.json()["data"]]
        assert "DISPUTE_RAISED" in types

    async def test_unpaid_order_refused(self, client: AsyncClient, session_factory):
        order_id = (await accepted_hire(client))["order"]["id"]
        resp = await _raise(client, order_id)
        assert resp.status_code == 400
        assert resp.json()["data"]["status"] == "PENDING"
        assert await count_rows(session_factory, Dispute) == 0

    async def test_duplicate_refused(self, client: AsyncClient, session_factory):
        ids = await _disputed_contract(client)
        resp = await _raise(client, ids["order_id"])
        assert resp.status_code == 409
        assert resp.json()["data"]["id"] == ids["dispute_id"]
        assert await count_rows(session_factory, Dispute) == 1

    async def test_outsider_forbidden(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "paid")
        resp = await _raise(client, ids["order_id"], user_id=BUYER2_ID)
        assert resp.status_code == 403
        assert resp.json()["data"] is None
        orders = await fetch_all(session_factory, Order)
        assert orders[0].status == OrderStatus.PAID

    async def test_short_description(self, client: AsyncClient):
        ids = await contract_at_stage(client, "paid")
        resp = await _raise(client, ids["order_id"], description="bad")
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "body.description"

    async def test_contract_cannot_complete_while_disputed(
        self, client: AsyncClient, session_factory
    ):
        ids = await _disputed_contract(client)
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/complete",
            headers=auth_headers(STUDENT_ID),
        )
        assert resp.status_code == 400
        assert "under dispute" in resp.json()["message"]
        assert await count_rows(session_factory, WalletEntry) == 0


class TestReadDisputes:

    async def test_access(self, client: AsyncClient):
        ids = await _disputed_contract(client)
        url = f"/api/v1/disputes/{ids['dispute_id']}"
        for user_id in (BUYER_ID, STUDENT_ID, ADMIN_ID):
            resp = await client.get(url, headers=auth_headers(user_id))
            assert resp.status_code == 200
        resp = await client.get(url, headers=auth_headers(BUYER2_ID))
        assert resp.status_code == 403

    async def test_list(self, client: AsyncClient):
        await _disputed_contract(client)
        for user_id, expected in ((STUDENT_ID, 1), (ADMIN_ID, 1), (BUYER2_ID, 0)):
            resp = await client.get("/api/v1/disputes", headers=auth_headers(user_id))
            assert resp.json()["meta"]["total_items"] == expected

        resp = await client.get(
            "/api/v1/disputes", params={"status": "RESOLVED"}, headers=auth_headers(ADMIN_ID)
        )
        assert resp.json()["meta"]["total_items"] == 0


class TestRuling:

    async def test_only_admin(self, client: AsyncClient):
        ids = await _disputed_contract(client)
        resp = await _rule(client, ids["dispute_id"], "UNDER_REVIEW", user_id=BUYER_ID)
        assert resp.status_code == 403

    async def test_ruling_requires_outcome(self, client: AsyncClient):
        ids = await _disputed_contract(client)
        resp = await _rule(client, ids["dispute_id"], "UNDER_REVIEW")
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "UNDER_REVIEW"

        resp = await _rule(client, ids["dispute_id"], "RESOLVED")
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "order_outcome"

        resp = await _rule(client, ids["dispute_id"], "RESOLVED", order_outcome="DELIVERED")
        assert resp.status_code == 400

    async def test_review_rejects_outcome(self, client: AsyncClient):
        ids = await _disputed_contract(client)
        resp = await _rule(client, ids["dispute_id"], "UNDER_REVIEW", order_outcome="COMPLETED")
        assert resp.status_code == 400

    async def test_resolved_completes_and_pays_once(self, client: AsyncClient, session_factory):
        ids = await _disputed_contract(client)
        resp = await _rule(
            client,
            ids["dispute_id"],
            "RESOLVED",
            order_outcome="COMPLETED",
            resolution="Work was delivered by email.",
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["order_outcome"] == "COMPLETED"
        assert data["resolved_by_id"] == str(ADMIN_ID)
        assert data["resolution"] == "Work was delivered by email."

        contract = await _contract(client, ids["contract_id"])
        assert contract["status"] == "COMPLETED"
        assert contract["payment_status"] == "RELEASED"

        entries = await fetch_all(session_factory, WalletEntry)
        assert len(entries) == 1
        assert entries[0].amount_cents == PAYOUT_CENTS
        assert str(entries[0].contract_id) == ids["contract_id"]

        resp = await _rule(client, ids["dispute_id"], "REJECTED", order_outcome="CANCELLED")
        assert resp.status_code == 400
        assert await count_rows(session_factory, WalletEntry) == 1

        resp = await client.get("/api/v1/notifications", headers=auth_headers(BUYER_ID))
        types = [n["notification_type"] for n in resp.json()["data"]]
        assert "DISPUTE_RESOLVED" in types

    async def test_rejected_cancels_and_refunds(self, client: AsyncClient, session_factory):
        ids = await _disputed_contract(client)
        resp = await _rule(client, ids["dispute_id"], "REJECTED", order_outcome="CANCELLED")
        assert resp.status_code == 200, resp.text

        contract = await _contract(client, ids["contract_id"])
        assert contract["status"] == "CANCELLED"
        assert contract["payment_status"] == "REFUNDED"

        orders = await fetch_all(session_factory, Order)
        assert orders[0].status == OrderStatus.CANCELLED
        assert await count_rows(session_factory, WalletEntry) == 0

        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/complete",
            headers=auth_headers(STUDENT_ID),
        )
        assert resp.status_code == 400

    async def test_direct_order_credits_price(self, client: AsyncClient, session_factory):
        order_id = await direct_order(session_factory, status=OrderStatus.DELIVERED)
        resp = await _raise(client, order_id, user_id=STUDENT_ID, title="Buyer went quiet")
        assert resp.status_code == 201, resp.text
        dispute_id = resp.json()["data"]["id"]

        resp = await _rule(client, dispute_id, "RESOLVED", order_outcome="COMPLETED")
        assert resp.status_code == 200, resp.text

        entries = await fetch_all(session_factory, WalletEntry)
        assert len(entries) == 1
        assert entries[0].amount_cents == SERVICE_PRICE
        assert str(entries[0].order_id) == order_id

    async def test_status_endpoint_cannot_bypass_ruling(
        self, client: AsyncClient, session_factory
    ):
        order_id = await direct_order(session_factory, status=OrderStatus.DELIVERED)
        assert (await _raise(client, order_id, user_id=STUDENT_ID)).status_code == 201

        for user_id in (BUYER_ID, ADMIN_ID):
            resp = await client.patch(
                f"/api/v1/orders/{order_id}/status",
                json={"status": "CANCELLED"},
                headers=auth_headers(user_id),
            )
            assert resp.status_code == 400
            assert resp.json()["data"]["status"] == "DISPUTED"
