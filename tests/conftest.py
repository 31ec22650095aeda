"""
Shared pytest fixtures for CollaboTree unit tests.

Provides a mock database session and transient domain objects built from
the real ORM models (never added to a session) so state machines and
guards can be exercised without a database connection.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from collabotree.models.contract import (
    Contract,
    ContractStatus,
    PaymentStatus,
    ProgressStatus,
)
from collabotree.models.hire_request import HireRequest, HireRequestStatus
from collabotree.models.order import Order, OrderStatus
from collabotree.models.user import User, UserRole


BUYER_ID = uuid.UUID("aaaaaaaa-0000-4000-8000-000000000001")
STUDENT_ID = uuid.UUID("aaaaaaaa-0000-4000-8000-000000000002")
ADMIN_ID = uuid.UUID("aaaaaaaa-0000-4000-8000-000000000003")
OUTSIDER_ID = uuid.UUID("aaaaaaaa-0000-4000-8000-000000000004")
SERVICE_ID = uuid.UUID("bbbbbbbb-0000-4000-8000-000000000001")


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    ``info`` is a real dict so the notification outbox behaves as it does on
    a live session.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.info = {}
    return session


# ---------------------------------------------------------------------------
# User fixtures
# ---------------------------------------------------------------------------


def _user(user_id: uuid.UUID, role: UserRole, name: str) -> User:
    return User(
        id=user_id,
        email=f"{name.lower()}@example.com",
        name=name,
        role=role,
        is_verified=True,
        is_active=True,
    )


@pytest.fixture
def buyer() -> User:
    return _user(BUYER_ID, UserRole.BUYER, "Bea")


@pytest.fixture
def student() -> User:
    return _user(STUDENT_ID, UserRole.STUDENT, "Sam")


@pytest.fixture
def admin() -> User:
    return _user(ADMIN_ID, UserRole.ADMIN, "Ada")


@pytest.fixture
def outsider() -> User:
    return _user(OUTSIDER_ID, UserRole.BUYER, "Otto")


# ---------------------------------------------------------------------------
# Domain object factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_hire() -> Callable[..., HireRequest]:
    def _make(status: HireRequestStatus = HireRequestStatus.PENDING) -> HireRequest:
        return HireRequest(
            id=uuid.uuid4(),
            buyer_id=BUYER_ID,
            student_id=STUDENT_ID,
            service_id=SERVICE_ID,
            price_cents=10000,
            status=status,
        )

    return _make


@pytest.fixture
def make_order() -> Callable[..., Order]:
    def _make(status: OrderStatus = OrderStatus.PENDING) -> Order:
        return Order(
            id=uuid.uuid4(),
            buyer_id=BUYER_ID,
            student_id=STUDENT_ID,
            service_id=SERVICE_ID,
            price_cents=10000,
            status=status,
        )

    return _make


@pytest.fixture
def make_contract() -> Callable[..., Contract]:
    """Build a transient contract; keyword overrides replace the defaults."""

    def _make(**overrides: Any) -> Contract:
        fields: dict[str, Any] = dict(
            id=uuid.uuid4(),
            hire_request_id=uuid.uuid4(),
            order_id=uuid.uuid4(),
            buyer_id=BUYER_ID,
            student_id=STUDENT_ID,
            service_id=SERVICE_ID,
            title="Landing page design",
            price_cents=10000,
            platform_fee_cents=1000,
            student_payout_cents=9000,
            deliverables=["Wireframes", "Final page"],
            timeline_days=14,
            status=ContractStatus.DRAFT,
            is_signed_by_buyer=False,
            is_signed_by_student=False,
            payment_status=PaymentStatus.PENDING,
            progress_status=ProgressStatus.NOT_STARTED,
            created_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
            updated_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        )
        fields.update(overrides)
        return Contract(**fields)

    return _make


@pytest.fixture
def active_contract(make_contract) -> Contract:
    """A fully signed, unpaid contract."""
    return make_contract(
        status=ContractStatus.ACTIVE,
        is_signed_by_buyer=True,
        is_signed_by_student=True,
    )


@pytest.fixture
def paid_contract(make_contract) -> Contract:
    return make_contract(
        status=ContractStatus.ACTIVE,
        is_signed_by_buyer=True,
        is_signed_by_student=True,
        payment_status=PaymentStatus.PAID,
        progress_status=ProgressStatus.IN_PROGRESS,
    )
