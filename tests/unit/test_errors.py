"""
Unit tests for the error taxonomy and the JSON error envelope.

A throwaway FastAPI app raises each error kind so the registered handlers
can be checked without a database.
"""

import uuid

import pytest
import pytest_asyncio
from fastapi import FastAPI, HTTPException
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel, Field

from collabotree.api.errors import register_exception_handlers
from collabotree.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
    transition_error,
)


pytestmark = pytest.mark.asyncio

SNAPSHOT_ID = uuid.UUID("cccccccc-0000-4000-8000-000000000001")


class _Body(BaseModel):
    rating: int = Field(ge=1, le=5)


def _make_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/not-found")
    async def not_found():
        raise NotFoundError("Hire request with id 'x' not found.")

    @app.get("/invalid")
    async def invalid():
        raise InvalidOperationError(
            "Contract must be signed by both parties before payment.",
            current={"id": SNAPSHOT_ID, "status": "PENDING_SIGNATURES"},
        )

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("You have already purchased this service.")

    @app.get("/unauthorized")
    async def unauthorized():
        raise HTTPException(status_code=401, detail="Authentication required.")

    @app.post("/body")
    async def body(payload: _Body):
        return payload

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret connection string")

    return app


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=_make_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestTaxonomy:

    async def test_status_codes(self):
        assert ValidationError("x").status_code == 400
        assert NotFoundError("x").status_code == 404
        assert ForbiddenError("x").status_code == 403
        assert InvalidOperationError("x").status_code == 400
        assert ConflictError("x").status_code == 409
        assert InternalError("x").status_code == 500

    async def test_transition_error_wrong_actor_keeps_snapshot(self):
        err = transition_error("Only the buyer can pay.", forbidden=True, current={"a": 1})
        assert isinstance(err, ForbiddenError)
        assert err.current == {"a": 1}

    async def test_transition_error_without_snapshot(self):
        err = transition_error("Only the buyer can pay.", forbidden=True)
        assert isinstance(err, ForbiddenError)
        assert err.current is None

    async def test_transition_error_wrong_state_keeps_snapshot(self):
        err = transition_error("Not yet.", current={"status": "DRAFT"})
        assert isinstance(err, InvalidOperationError)
        assert err.current == {"status": "DRAFT"}


class TestEnvelope:

    async def test_not_found(self, client):
        resp = await client.get("/not-found")
        assert resp.status_code == 404
        body = resp.json()
        assert body["success"] is False
        assert body["error"] == "NotFound"
        assert body["details"] == []
        assert body["data"] is None

    async def test_invalid_operation_carries_current_state(self, client):
        resp = await client.get("/invalid")
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "InvalidOperation"
        assert body["data"] == {"id": str(SNAPSHOT_ID), "status": "PENDING_SIGNATURES"}

    async def test_conflict(self, client):
        resp = await client.get("/conflict")
        assert resp.status_code == 409
        assert resp.json()["message"] == "You have already purchased this service."

    async def test_http_exception_keeps_headers(self, client):
        resp = await client.get("/unauthorized")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthorized"

    async def test_request_validation_is_400_with_field_details(self, client):
        resp = await client.post("/body", json={"rating": 9})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "ValidationError"
        assert body["details"][0]["field"] == "body.rating"

    async def test_unexpected_error_does_not_leak(self, client):
        resp = await client.get("/boom")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "Internal"
        assert "secret" not in body["message"]
