"""
E2E: Contract lifecycle.

- Full hire -> contract -> payment -> completion -> review path with exact
  amounts (fee, payout, single wallet entry)
- Drafting rules, signing, payment preconditions, progress reports
- Completion side effects and its idempotency guard
"""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from collabotree.models import ChatRoom, Contract, ContractSignature, Order, WalletEntry
from tests.e2e.conftest import (
    ADMIN_ID,
    BUYER2_ID,
    BUYER_ID,
    SERVICE_ID,
    STUDENT_ID,
    accepted_hire,
    auth_headers,
    contract_at_stage,
    count_rows,
    create_contract,
    create_hire,
    fetch_all,
    sign,
)


pytestmark = pytest.mark.asyncio


async def _get_contract(client: AsyncClient, contract_id: str, user_id=BUYER_ID) -> dict:
    resp = await client.get(f"/api/v1/contracts/{contract_id}", headers=auth_headers(user_id))
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def _get_order(client: AsyncClient, order_id: str, user_id=BUYER_ID) -> dict:
    resp = await client.get(f"/api/v1/orders/{order_id}", headers=auth_headers(user_id))
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


class TestFullLifecycle:

    async def test_hire_to_review(self, client: AsyncClient, session_factory):
        # Buyer hires the student's 100.00 service
        created = await create_hire(client, service_id=SERVICE_ID)
        assert created.status_code == 201
        hire_id = created.json()["data"]["id"]

        # Student accepts: order + chat room
        resp = await client.patch(
            f"/api/v1/hires/{hire_id}/accept", headers=auth_headers(STUDENT_ID)
        )
        assert resp.status_code == 200
        order = resp.json()["data"]["order"]
        assert order["status"] == "PENDING"
        assert order["price_cents"] == 10000
        assert await count_rows(
            session_factory, ChatRoom, ChatRoom.hire_request_id == uuid.UUID(hire_id)
        ) == 1

        # Student drafts the contract
        resp = await create_contract(client, hire_id, deliverables=["logo"], timeline_days=5)
        assert resp.status_code == 201
        contract = resp.json()["data"]
        contract_id = contract["id"]
        assert contract["status"] == "DRAFT"
        assert contract["order_id"] == order["id"]
        assert contract["price_cents"] == 10000
        assert contract["platform_fee_cents"] == 1000
        assert contract["student_payout_cents"] == 9000
        assert contract["deliverables"] == ["logo"]
        assert contract["timeline_days"] == 5

        # Both sign
        resp = await sign(client, contract_id, BUYER_ID)
        assert resp.json()["data"]["status"] == "PENDING_SIGNATURES"
        resp = await sign(client, contract_id, STUDENT_ID)
        data = resp.json()["data"]
        assert data["status"] == "ACTIVE"
        assert data["is_signed_by_buyer"] is True
        assert data["is_signed_by_student"] is True
        assert data["signed_at"] is not None

        # Buyer pays
        resp = await client.post(
            f"/api/v1/contracts/{contract_id}/payment", headers=auth_headers(BUYER_ID)
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["payment_status"] == "PAID"
        assert data["payment_reference"].startswith("sim_")
        assert data["progress_status"] == "IN_PROGRESS"
        assert (await _get_order(client, order["id"]))["status"] == "PAID"

        # Student completes through the progress endpoint
        resp = await client.post(
            f"/api/v1/contracts/{contract_id}/progress",
            json={"mark_as_completed": True, "notes": "Delivered all files"},
            headers=auth_headers(STUDENT_ID),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["payment_status"] == "RELEASED"
        assert data["progress_status"] == "COMPLETED"
        assert data["completion_notes"] == "Delivered all files"
        assert (await _get_order(client, order["id"]))["status"] == "COMPLETED"

        entries = await fetch_all(session_factory, WalletEntry)
        assert len(entries) == 1
        assert entries[0].user_id == STUDENT_ID
        assert entries[0].amount_cents == 9000
        assert str(entries[0].contract_id) == contract_id

        # Buyer reviews once
        resp = await client.post(
            "/api/v1/reviews",
            json={"order_id": order["id"], "rating": 5, "comment": "Great logo"},
            headers=auth_headers(BUYER_ID),
        )
        assert resp.status_code == 201
        resp = await client.post(
            "/api/v1/reviews",
            json={"order_id": order["id"], "rating": 4},
            headers=auth_headers(BUYER_ID),
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "Conflict"


class TestCreateContract:

    async def test_buyer_cannot_draft(self, client: AsyncClient):
        hire_id = (await accepted_hire(client))["hire_request"]["id"]
        resp = await create_contract(client, hire_id, student_id=BUYER_ID)
        assert resp.status_code == 403

    async def test_pending_request_cannot_have_contract(self, client: AsyncClient):
        hire_id = (await create_hire(client)).json()["data"]["id"]
        resp = await create_contract(client, hire_id)
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "InvalidOperation"
        assert body["data"]["status"] == "PENDING"

    async def test_one_contract_per_request(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "draft")
        resp = await create_contract(client, ids["hire_id"])
        assert resp.status_code == 409
        assert resp.json()["data"]["id"] == ids["contract_id"]
        assert await count_rows(session_factory, Contract) == 1

    async def test_reuses_order_created_on_accept(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "draft")
        assert await count_rows(session_factory, Order) == 1
        contract = await _get_contract(client, ids["contract_id"])
        assert contract["order_id"] == ids["order_id"]

    @pytest.mark.parametrize(
        "payload_update",
        [{"deliverables": []}, {"deliverables": ["  "]}, {"timeline_days": 0}],
    )
    async def test_invalid_terms(self, client: AsyncClient, payload_update):
        hire_id = (await accepted_hire(client))["hire_request"]["id"]
        payload = {"hire_request_id": hire_id, "deliverables": ["logo"], "timeline_days": 5}
        payload.update(payload_update)
        resp = await client.post(
            "/api/v1/contracts", json=payload, headers=auth_headers(STUDENT_ID)
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"


class TestSigning:

    async def test_signature_metadata_recorded(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "draft")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/sign",
            json={"signature": "Bea Buyer"},
            headers={**auth_headers(BUYER_ID), "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )
        assert resp.status_code == 200

        signatures = await fetch_all(session_factory, ContractSignature)
        assert len(signatures) == 1
        assert signatures[0].user_id == BUYER_ID
        assert signatures[0].ip_address == "203.0.113.7"
        assert signatures[0].user_agent

        detail = await _get_contract(client, ids["contract_id"], STUDENT_ID)
        assert [s["user_id"] for s in detail["signatures"]] == [str(BUYER_ID)]

    async def test_signing_twice_is_invalid(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "draft")
        assert (await sign(client, ids["contract_id"], STUDENT_ID)).status_code == 200
        resp = await sign(client, ids["contract_id"], STUDENT_ID)
        assert resp.status_code == 400
        assert resp.json()["message"] == "You have already signed this contract."
        assert await count_rows(session_factory, ContractSignature) == 1

    async def test_outsider_cannot_sign(self, client: AsyncClient):
        ids = await contract_at_stage(client, "draft")
        resp = await sign(client, ids["contract_id"], BUYER2_ID)
        assert resp.status_code == 403
        assert resp.json()["data"] is None

    async def test_admin_cannot_sign(self, client: AsyncClient):
        ids = await contract_at_stage(client, "draft")
        resp = await sign(client, ids["contract_id"], ADMIN_ID)
        assert resp.status_code == 403

    async def test_empty_signature(self, client: AsyncClient):
        ids = await contract_at_stage(client, "draft")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/sign",
            json={"signature": ""},
            headers=auth_headers(BUYER_ID),
        )
        assert resp.status_code == 400


class TestPayment:

    async def test_payment_before_signatures(self, client: AsyncClient):
        ids = await contract_at_stage(client, "draft")
        await sign(client, ids["contract_id"], STUDENT_ID)

        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/payment",
            headers=auth_headers(BUYER_ID),
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "InvalidOperation"
        assert body["message"] == "Contract must be signed by both parties before payment."
        assert body["data"]["payment_status"] == "PENDING"

        contract = await _get_contract(client, ids["contract_id"])
        assert contract["payment_status"] == "PENDING"
        assert (await _get_order(client, ids["order_id"]))["status"] == "PENDING"

    async def test_student_cannot_pay(self, client: AsyncClient):
        ids = await contract_at_stage(client, "active")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/payment",
            headers=auth_headers(STUDENT_ID),
        )
        assert resp.status_code == 403
        assert resp.json()["message"] == "Only the buyer can pay for this contract."
        assert resp.json()["data"]["payment_status"] == "PENDING"

    async def test_double_payment(self, client: AsyncClient):
        ids = await contract_at_stage(client, "paid")
        first = await _get_contract(client, ids["contract_id"])
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/payment",
            headers=auth_headers(BUYER_ID),
        )
        assert resp.status_code == 400
        second = await _get_contract(client, ids["contract_id"])
        assert second["payment_reference"] == first["payment_reference"]


class TestProgress:

    async def test_progress_report_is_logged(self, client: AsyncClient):
        ids = await contract_at_stage(client, "paid")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/progress",
            json={"status": "IN_PROGRESS", "notes": "Sketches done"},
            headers=auth_headers(STUDENT_ID),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["progress_notes"] == "Sketches done"
        assert resp.json()["data"]["status"] == "ACTIVE"

        detail = await _get_contract(client, ids["contract_id"])
        assert len(detail["progress_updates"]) == 1
        assert detail["progress_updates"][0]["notes"] == "Sketches done"

    async def test_buyer_cannot_report_progress(self, client: AsyncClient):
        ids = await contract_at_stage(client, "paid")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/progress",
            json={"notes": "Looks good"},
            headers=auth_headers(BUYER_ID),
        )
        assert resp.status_code == 403

    async def test_completed_status_needs_completion_flag(self, client: AsyncClient):
        ids = await contract_at_stage(client, "paid")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/progress",
            json={"status": "COMPLETED"},
            headers=auth_headers(STUDENT_ID),
        )
        assert resp.status_code == 400
        assert (await _get_contract(client, ids["contract_id"]))["status"] == "ACTIVE"


class TestCompletion:

    async def test_complete_endpoint(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "paid")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/complete",
            json={"completion_notes": "All done"},
            headers=auth_headers(STUDENT_ID),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["released_at"] is not None
        assert data["completed_at"] is not None
        assert await count_rows(session_factory, WalletEntry) == 1

    async def test_unpaid_contract_cannot_complete(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "active")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/complete",
            headers=auth_headers(STUDENT_ID),
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Contract must be paid before it can be completed."
        assert await count_rows(session_factory, WalletEntry) == 0

    async def test_buyer_cannot_complete(self, client: AsyncClient):
        ids = await contract_at_stage(client, "paid")
        resp = await client.post(
            f"/api/v1/contracts/{ids['contract_id']}/complete",
            headers=auth_headers(BUYER_ID),
        )
        assert resp.status_code == 403

    async def test_double_completion_credits_once(self, client: AsyncClient, session_factory):
        ids = await contract_at_stage(client, "paid")
        url = f"/api/v1/contracts/{ids['contract_id']}/complete"
        assert (await client.post(url, headers=auth_headers(STUDENT_ID))).status_code == 200

        resp = await client.post(url, headers=auth_headers(STUDENT_ID))
        assert resp.status_code == 400
        body = resp.json()
        assert body["message"] == "Contract has already been completed."
        assert body["data"]["status"] == "COMPLETED"
        assert await count_rows(session_factory, WalletEntry) == 1


class TestContractAccess:

    async def test_outsider_cannot_read(self, client: AsyncClient):
        ids = await contract_at_stage(client, "draft")
        resp = await client.get(
            f"/api/v1/contracts/{ids['contract_id']}", headers=auth_headers(BUYER2_ID)
        )
        assert resp.status_code == 403

    async def test_admin_can_read(self, client: AsyncClient):
        ids = await contract_at_stage(client, "draft")
        assert (await _get_contract(client, ids["contract_id"], ADMIN_ID))["id"] == ids["contract_id"]

    async def test_unknown_contract(self, client: AsyncClient):
        resp = await client.get(
            f"/api/v1/contracts/{uuid.uuid4()}", headers=auth_headers(BUYER_ID)
        )
        assert resp.status_code == 404

    async def test_list_mine(self, client: AsyncClient):
        await contract_at_stage(client, "active")
        for user_id in (BUYER_ID, STUDENT_ID):
            resp = await client.get("/api/v1/contracts/mine", headers=auth_headers(user_id))
            assert resp.json()["meta"]["total_items"] == 1
        resp = await client.get(
            "/api/v1/contracts/mine",
            params={"status": "DRAFT"},
            headers=auth_headers(BUYER_ID),
        )
        assert resp.json()["data"] == []
        resp = await client.get("/api/v1/contracts/mine", headers=auth_headers(BUYER2_ID))
        assert resp.json()["meta"]["total_items"] == 0
