"""
Hire Service
============

Hire request negotiation between a buyer and the student who owns a
service. State changes go through ``hireStateManager``.

Key functions:
  - create_hire_request  -- buyer opens a PENDING request
  - accept_hire_request  -- student accepts; opens the chat room and the
                            PENDING order in the same transaction
  - reject_hire_request  -- student declines
  - cancel_hire_request  -- either party (or an admin) withdraws
  - get_hire_request_for_user / list_hire_requests_for_user

Business rules:
  - Only BUYER accounts create requests, never for their own service.
  - At most one open (PENDING/ACCEPTED) request per (buyer, service) and per
    (buyer, student). Checked inside the transaction and backed by partial
    unique indexes.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from collabotree.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    transition_error,
)
from collabotree.events.marketplaceEvents import (
    emit_hire_created,
    emit_hire_status_changed,
)
from collabotree.models import (
    OPEN_HIRE_STATUSES,
    ChatRoom,
    HireRequest,
    HireRequestStatus,
    NotificationType,
    Order,
    Service,
    User,
    UserRole,
)
from collabotree.services import notificationService, orderService
from collabotree.services.hireStateManager import (
    HireActor,
    resolve_actor,
    validate_transition,
)
from collabotree.services.pagination import PaginatedResult, paginate
from collabotree.services.pricingEngine import resolve_hire_price

logger = logging.getLogger(__name__)

OPEN_REQUEST_EXISTS = "You already have an open hire request with this student or for this service."


@dataclass
class AcceptedHire:
    """Everything created when a hire request is accepted."""

    hire_request: HireRequest
    order: Order
    chat_room: ChatRoom


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_hire_request(
    db: AsyncSession,
    hire_request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> HireRequest:
    stmt = select(HireRequest).where(HireRequest.id == hire_request_id)
    if for_update:
        stmt = stmt.with_for_update()
    hire = (await db.execute(stmt)).scalar_one_or_none()
    if hire is None:
        raise NotFoundError(f"Hire request with id '{hire_request_id}' not found.")
    return hire


async def get_hire_request_for_user(
    db: AsyncSession,
    hire_request_id: uuid.UUID,
    user: User,
) -> HireRequest:
    hire = await get_hire_request(db, hire_request_id)
    if not (hire.is_party(user.id) or user.is_admin):
        raise ForbiddenError("You do not have access to this hire request.")
    return hire


async def list_hire_requests_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    as_role: Optional[str] = None,
    status: Optional[HireRequestStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> PaginatedResult:
    """Return hire requests the user sent (buyer) or received (student)."""
    if as_role == "buyer":
        stmt = select(HireRequest).where(HireRequest.buyer_id == user_id)
    elif as_role == "student":
        stmt = select(HireRequest).where(HireRequest.student_id == user_id)
    else:
        stmt = select(HireRequest).where(
            or_(HireRequest.buyer_id == user_id, HireRequest.student_id == user_id)
        )
    if status is not None:
        stmt = stmt.where(HireRequest.status == status)
    stmt = stmt.order_by(HireRequest.created_at.desc(), HireRequest.id)
    return await paginate(db, stmt, page=page, page_size=page_size)


async def _get_service(db: AsyncSession, service_id: uuid.UUID) -> Service:
    return (
        await db.execute(select(Service).where(Service.id == service_id))
    ).scalar_one()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

async def create_hire_request(
    db: AsyncSession,
    *,
    buyer: User,
    service_id: uuid.UUID,
    message: Optional[str] = None,
    price_cents: Optional[int] = None,
) -> HireRequest:
    """Open a PENDING hire request for a service.

    Args:
        db: Async database session.
        buyer: The requesting user; must have the BUYER role.
        service_id: The service being requested.
        message: Optional note to the student.
        price_cents: Optional price override; defaults to the service price.

    Returns:
        The newly-created HireRequest.

    Raises:
        ForbiddenError: The user is not a buyer.
        NotFoundError: The service does not exist or is inactive.
        InvalidOperationError: The buyer owns the service.
        ValidationError: The price override is out of range.
        ConflictError: An open request already exists for this service or
            this student.
    """
    if buyer.role != UserRole.BUYER:
        raise ForbiddenError("Only buyers can create hire requests.")

    service = (
        await db.execute(
            select(Service).where(Service.id == service_id).with_for_update()
        )
    ).scalar_one_or_none()
    if service is None or not service.is_active:
        raise NotFoundError(f"Service with id '{service_id}' not found or inactive.")

    if service.owner_id == buyer.id:
        raise InvalidOperationError("You cannot hire yourself.")

    agreed_price = resolve_hire_price(service.price_cents, price_cents)

    existing = (
        await db.execute(
            select(HireRequest)
            .where(
                HireRequest.buyer_id == buyer.id,
                HireRequest.status.in_(OPEN_HIRE_STATUSES),
                or_(
                    HireRequest.service_id == service.id,
                    HireRequest.student_id == service.owner_id,
                ),
            )
            .limit(1)
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError(OPEN_REQUEST_EXISTS, current=existing.as_dict())

    hire = HireRequest(
        buyer_id=buyer.id,
        student_id=service.owner_id,
        service_id=service.id,
        message=message,
        price_cents=agreed_price,
        status=HireRequestStatus.PENDING,
    )
    db.add(hire)
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.info(
            "Concurrent duplicate hire request rejected: buyer=%s service=%s",
            buyer.id,
            service.id,
        )
        raise ConflictError(OPEN_REQUEST_EXISTS) from exc

    emit_hire_created(hire.id, buyer.id, service.id, agreed_price)
    logger.info(
        "Hire request %s created: buyer=%s student=%s service=%s price_cents=%d",
        hire.id,
        buyer.id,
        service.owner_id,
        service.id,
        agreed_price,
    )

    notificationService.notify(
        db,
        service.owner_id,
        NotificationType.HIRE_REQUESTED,
        "New hire request",
        f"{buyer.name} wants to hire you for '{service.title}' "
        f"({notificationService.format_price(agreed_price)}).",
    )
    return hire


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

async def _transition(
    db: AsyncSession,
    hire_request_id: uuid.UUID,
    actor: User,
    new_status: HireRequestStatus,
) -> tuple[HireRequest, HireActor]:
    hire = await get_hire_request(db, hire_request_id, for_update=True)
    actor_type = resolve_actor(hire, actor.id, is_admin=actor.is_admin)

    result = validate_transition(hire.status, new_status, actor_type)
    if not result.allowed:
        logger.info(
            "Hire request %s transition rejected (%s -> %s by %s): %s",
            hire.id,
            hire.status.value,
            new_status.value,
            actor.id,
            result.reason,
        )
        raise transition_error(
            result.reason,
            forbidden=result.forbidden,
            current=hire.as_dict() if actor_type is not None else None,
        )

    old_status = hire.status
    hire.status = new_status
    await db.flush()

    emit_hire_status_changed(hire.id, old_status.value, new_status.value, actor.id)
    logger.info(
        "Hire request %s transitioned: %s -> %s (actor=%s)",
        hire.id,
        old_status.value,
        new_status.value,
        actor.id,
    )
    return hire, actor_type


async def accept_hire_request(
    db: AsyncSession,
    *,
    hire_request_id: uuid.UUID,
    actor: User,
) -> AcceptedHire:
    """Accept a PENDING request: open its chat room and its PENDING order.

    All three writes share the caller's transaction.

    Raises:
        ConflictError: The buyer already has an order for this service.
    """
    hire, _ = await _transition(db, hire_request_id, actor, HireRequestStatus.ACCEPTED)
    service = await _get_service(db, hire.service_id)

    chat_room = ChatRoom(hire_request_id=hire.id)
    db.add(chat_room)

    price_cents = hire.price_cents if hire.price_cents is not None else service.price_cents
    order = await orderService.create_order(
        db,
        buyer_id=hire.buyer_id,
        student_id=hire.student_id,
        service_id=hire.service_id,
        price_cents=price_cents,
        hire_request_id=hire.id,
    )

    notificationService.notify(
        db,
        hire.buyer_id,
        NotificationType.HIRE_ACCEPTED,
        "Hire request accepted",
        f"{actor.name} accepted your request for '{service.title}'. "
        f"You can now chat once the contract is signed.",
    )
    notificationService.notify(
        db,
        hire.student_id,
        NotificationType.ORDER_CREATED,
        "Order created",
        f"An order for '{service.title}' "
        f"({notificationService.format_price(price_cents)}) is awaiting your contract.",
    )
    return AcceptedHire(hire_request=hire, order=order, chat_room=chat_room)


async def reject_hire_request(
    db: AsyncSession,
    *,
    hire_request_id: uuid.UUID,
    actor: User,
) -> HireRequest:
    hire, _ = await _transition(db, hire_request_id, actor, HireRequestStatus.REJECTED)
    service = await _get_service(db, hire.service_id)

    notificationService.notify(
        db,
        hire.buyer_id,
        NotificationType.HIRE_REJECTED,
        "Hire request declined",
        f"Your request for '{service.title}' was declined.",
    )
    return hire


async def cancel_hire_request(
    db: AsyncSession,
    *,
    hire_request_id: uuid.UUID,
    actor: User,
) -> HireRequest:
    """Cancel a PENDING request; the other party is notified (both, for admins)."""
    hire, actor_type = await _transition(
        db, hire_request_id, actor, HireRequestStatus.CANCELLED
    )
    service = await _get_service(db, hire.service_id)

    if actor_type == HireActor.BUYER:
        recipients = [hire.student_id]
    elif actor_type == HireActor.STUDENT:
        recipients = [hire.buyer_id]
    else:
        recipients = [hire.buyer_id, hire.student_id]

    notificationService.notify_many(
        db,
        recipients,
        NotificationType.HIRE_CANCELLED,
        "Hire request cancelled",
        f"The hire request for '{service.title}' was cancelled.",
    )
    return hire
