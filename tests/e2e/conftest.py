"""
E2E test fixtures for the CollaboTree backend.

Provides:
- A file-backed SQLite database per test (aiosqlite), with the full schema
- Pre-populated seed data: buyers, students, an admin and their services
- The real FastAPI application with ``get_db`` pointed at the test database
  through the same unit-of-work used in production
- Helpers that drive a hire request through the API to a given stage

SQLite transactions are opened with ``BEGIN IMMEDIATE`` so concurrent
requests serialize on the database lock instead of failing on lock
upgrade, which is what lets the concurrency tests run against SQLite.
"""

from __future__ import annotations

import uuid
from typing import Any, AsyncGenerator, Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from collabotree.models import Base, Order, OrderStatus, Service, User, UserRole
from collabotree.services.auth_service import create_access_token, hash_password

# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

BUYER_ID = uuid.UUID("aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa")
BUYER2_ID = uuid.UUID("aaaaaaaa-aaaa-4aaa-8aaa-bbbbbbbbbbbb")
STUDENT_ID = uuid.UUID("bbbbbbbb-bbbb-4bbb-8bbb-bbbbbbbbbbbb")
STUDENT2_ID = uuid.UUID("bbbbbbbb-bbbb-4bbb-8bbb-cccccccccccc")
ADMIN_ID = uuid.UUID("dddddddd-dddd-4ddd-8ddd-dddddddddddd")
INACTIVE_USER_ID = uuid.UUID("eeeeeeee-eeee-4eee-8eee-eeeeeeeeeeee")

SERVICE_ID = uuid.UUID("11111111-1111-4111-8111-111111111111")
SERVICE2_ID = uuid.UUID("22222222-2222-4222-8222-222222222222")
STUDENT2_SERVICE_ID = uuid.UUID("33333333-3333-4333-8333-333333333333")
INACTIVE_SERVICE_ID = uuid.UUID("44444444-4444-4444-8444-444444444444")
BUYER_OWN_SERVICE_ID = uuid.UUID("55555555-5555-4555-8555-555555555555")

SERVICE_PRICE = 10000
SERVICE2_PRICE = 2500
PASSWORD = "correct horse battery staple"


# ---------------------------------------------------------------------------
# Async engine + session factory (file-backed SQLite)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'collabotree-test.db'}",
        echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn, _):
        # Let the "begin" hook below emit BEGIN; enforce foreign keys
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def seeded(session_factory) -> None:
    """Insert minimum seed data for E2E tests."""
    password_hash = hash_password(PASSWORD, rounds=4)

    def _user(user_id, email, name, role, *, is_active=True) -> User:
        return User(
            id=user_id,
            email=email,
            name=name,
            role=role,
            password_hash=password_hash,
            is_verified=True,
            is_active=is_active,
        )

    async with session_factory() as db:
        db.add_all([
            _user(BUYER_ID, "bea@test.collabotree.dev", "Bea Buyer", UserRole.BUYER),
            _user(BUYER2_ID, "ben@test.collabotree.dev", "Ben Buyer", UserRole.BUYER),
            _user(STUDENT_ID, "sam@test.collabotree.dev", "Sam Student", UserRole.STUDENT),
            _user(STUDENT2_ID, "sue@test.collabotree.dev", "Sue Student", UserRole.STUDENT),
            _user(ADMIN_ID, "ada@test.collabotree.dev", "Ada Admin", UserRole.ADMIN),
            _user(
                INACTIVE_USER_ID,
                "ivy@test.collabotree.dev",
                "Ivy Inactive",
                UserRole.BUYER,
                is_active=False,
            ),
        ])
        await db.flush()

        db.add_all([
            Service(
                id=SERVICE_ID,
                owner_id=STUDENT_ID,
                title="Logo design",
                price_cents=SERVICE_PRICE,
                is_active=True,
            ),
            Service(
                id=SERVICE2_ID,
                owner_id=STUDENT_ID,
                title="Python tutoring",
                price_cents=SERVICE2_PRICE,
                is_active=True,
            ),
            Service(
                id=STUDENT2_SERVICE_ID,
                owner_id=STUDENT2_ID,
                title="Essay proofreading",
                price_cents=4000,
                is_active=True,
            ),
            Service(
                id=INACTIVE_SERVICE_ID,
                owner_id=STUDENT2_ID,
                title="Retired offering",
                price_cents=1000,
                is_active=False,
            ),
            Service(
                id=BUYER_OWN_SERVICE_ID,
                owner_id=BUYER_ID,
                title="Buyer side project",
                price_cents=3000,
                is_active=True,
            ),
        ])
        await db.commit()


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory, seeded) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the application via ASGI transport."""
    from collabotree.api.deps import get_db, transactional_session
    from collabotree.main import app

    async def _override_get_db():
        async with transactional_session(session_factory) as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Database inspection helpers
# ---------------------------------------------------------------------------


async def count_rows(factory: async_sessionmaker[AsyncSession], model, *where) -> int:
    """Count rows of ``model`` in a fresh session."""
    async with factory() as db:
        stmt = select(func.count()).select_from(model)
        if where:
            stmt = stmt.where(*where)
        return (await db.execute(stmt)).scalar_one()


async def fetch_all(factory: async_sessionmaker[AsyncSession], model, *where) -> list[Any]:
    async with factory() as db:
        stmt = select(model)
        if where:
            stmt = stmt.where(*where)
        return list((await db.execute(stmt)).scalars().all())


async def direct_order(
    factory: async_sessionmaker[AsyncSession],
    *,
    buyer_id: uuid.UUID = BUYER_ID,
    student_id: uuid.UUID = STUDENT_ID,
    service_id: uuid.UUID = SERVICE_ID,
    price_cents: int = SERVICE_PRICE,
    status: OrderStatus = OrderStatus.PENDING,
) -> str:
    """Insert an order with no hire request behind it; returns its id."""
    async with factory() as db:
        order = Order(
            buyer_id=buyer_id,
            student_id=student_id,
            service_id=service_id,
            price_cents=price_cents,
            status=status,
        )
        db.add(order)
        await db.commit()
        return str(order.id)


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    token, _ = create_access_token(user_id)
    return {"Authorization": f"Bearer {token}"}


async def create_hire(
    client: AsyncClient,
    *,
    buyer_id: uuid.UUID = BUYER_ID,
    service_id: uuid.UUID = SERVICE_ID,
    price_cents: Optional[int] = None,
    message: Optional[str] = "Hi, can you help?",
) -> Response:
    payload: dict[str, Any] = {"service_id": str(service_id), "message": message}
    if price_cents is not None:
        payload["price_cents"] = price_cents
    return await client.post("/api/v1/hires", json=payload, headers=auth_headers(buyer_id))


async def accepted_hire(
    client: AsyncClient,
    *,
    buyer_id: uuid.UUID = BUYER_ID,
    service_id: uuid.UUID = SERVICE_ID,
    student_id: uuid.UUID = STUDENT_ID,
) -> dict[str, Any]:
    """Create and accept a hire request; returns the accept payload."""
    created = await create_hire(client, buyer_id=buyer_id, service_id=service_id)
    assert created.status_code == 201, created.text
    hire_id = created.json()["data"]["id"]
    resp = await client.patch(
        f"/api/v1/hires/{hire_id}/accept", headers=auth_headers(student_id)
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def create_contract(
    client: AsyncClient,
    hire_id: str,
    *,
    student_id: uuid.UUID = STUDENT_ID,
    deliverables: Optional[list[str]] = None,
    timeline_days: int = 5,
) -> Response:
    return await client.post(
        "/api/v1/contracts",
        json={
            "hire_request_id": hire_id,
            "deliverables": deliverables or ["logo"],
            "timeline_days": timeline_days,
        },
        headers=auth_headers(student_id),
    )


async def sign(client: AsyncClient, contract_id: str, user_id: uuid.UUID) -> Response:
    return await client.post(
        f"/api/v1/contracts/{contract_id}/sign",
        json={"signature": f"signed-by-{user_id}"},
        headers=auth_headers(user_id),
    )


async def contract_at_stage(client: AsyncClient, stage: str) -> dict[str, Any]:
    """Drive the default hire to ``stage``: draft, active or paid.

    Returns ``{"hire_id", "order_id", "contract_id"}``.
    """
    accepted = await accepted_hire(client)
    hire_id = accepted["hire_request"]["id"]
    created = await create_contract(client, hire_id)
    assert created.status_code == 201, created.text
    contract_id = created.json()["data"]["id"]
    ids = {
        "hire_id": hire_id,
        "order_id": accepted["order"]["id"],
        "contract_id": contract_id,
    }
    if stage == "draft":
        return ids

    for user_id in (BUYER_ID, STUDENT_ID):
        resp = await sign(client, contract_id, user_id)
        assert resp.status_code == 200, resp.text
    if stage == "active":
        return ids

    resp = await client.post(
        f"/api/v1/contracts/{contract_id}/payment", headers=auth_headers(BUYER_ID)
    )
    assert resp.status_code == 200, resp.text
    return ids
