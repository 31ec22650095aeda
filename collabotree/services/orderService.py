"""
Order Service
=============

Business logic for the per-(buyer, service) purchase record.

Key functions:
  - create_order              -- insert with an in-transaction duplicate check
  - create_order_from_hire    -- buyer-initiated order for an accepted hire
  - find_order_for_hire       -- lookup by hire request, then by party triple
  - update_order_status       -- state machine transition (orderStateManager)
  - pay_order                 -- PENDING -> PAID for direct orders
  - sync_order_with_contract  -- follow the linked contract's lifecycle
  - mark_disputed / settle_disputed_order -- dispute hooks (disputeService)
  - get_order_for_user / list_orders_for_user

An order that came from a hire request is driven only by its contract, even
before the contract is drafted; the direct status and payment endpoints
refuse it so money is never processed twice and the platform fee always
applies. Those endpoints serve direct orders, which carry no hire request.
"""

from __future__ import annotations

import logging
import uuid
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
    emit_order_created,
    emit_order_status_changed,
)
from collabotree.models import (
    Contract,
    HireRequest,
    HireRequestStatus,
    NotificationType,
    Order,
    OrderStatus,
    Service,
    User,
)
from collabotree.services import notificationService, walletService
from collabotree.services.orderStateManager import (
    OrderActor,
    resolve_actor,
    validate_contract_sync,
    validate_dispute_opening,
    validate_transition,
)
from collabotree.services.pagination import PaginatedResult, paginate

logger = logging.getLogger(__name__)

ALREADY_PURCHASED = "You have already purchased this service."


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Order:
    stmt = select(Order).where(Order.id == order_id)
    if for_update:
        stmt = stmt.with_for_update()
    order = (await db.execute(stmt)).scalar_one_or_none()
    if order is None:
        raise NotFoundError(f"Order with id '{order_id}' not found.")
    return order


async def get_order_for_user(db: AsyncSession, order_id: uuid.UUID, user: User) -> Order:
    """Return the order if ``user`` is one of its parties or an admin."""
    order = await get_order(db, order_id)
    if not (order.is_party(user.id) or user.is_admin):
        raise ForbiddenError("You do not have access to this order.")
    return order


async def find_order_for_hire(
    db: AsyncSession,
    hire: HireRequest,
) -> Optional[Order]:
    """Locate the order belonging to ``hire``.

    Orders created on acceptance carry ``hire_request_id``; older rows are
    matched by the (buyer, student, service) triple.
    """
    result = await db.execute(
        select(Order)
        .where(
            or_(
                Order.hire_request_id == hire.id,
                (Order.buyer_id == hire.buyer_id)
                & (Order.student_id == hire.student_id)
                & (Order.service_id == hire.service_id),
            )
        )
        .with_for_update()
    )
    return result.scalars().first()


async def get_contract_for_order(db: AsyncSession, order_id: uuid.UUID) -> Optional[Contract]:
    result = await db.execute(select(Contract).where(Contract.order_id == order_id))
    return result.scalar_one_or_none()


async def list_orders_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    as_role: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> PaginatedResult:
    """Return the user's orders, newest first.

    ``as_role`` narrows to orders where the user is the ``"buyer"`` or the
    ``"student"``; by default both sides are included.
    """
    if as_role == "buyer":
        stmt = select(Order).where(Order.buyer_id == user_id)
    elif as_role == "student":
        stmt = select(Order).where(Order.student_id == user_id)
    else:
        stmt = select(Order).where(
            or_(Order.buyer_id == user_id, Order.student_id == user_id)
        )
    if status is not None:
        stmt = stmt.where(Order.status == status)
    stmt = stmt.order_by(Order.created_at.desc(), Order.id)
    return await paginate(db, stmt, page=page, page_size=page_size)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

async def create_order(
    db: AsyncSession,
    *,
    buyer_id: uuid.UUID,
    student_id: uuid.UUID,
    service_id: uuid.UUID,
    price_cents: int,
    hire_request_id: Optional[uuid.UUID] = None,
) -> Order:
    """Insert a PENDING order for (buyer, service).

    The duplicate check runs inside the caller's transaction right before
    the insert; the unique constraint settles any remaining race.

    Raises:
        ConflictError: If the buyer already has an order for this service.
    """
    existing = (
        await db.execute(
            select(Order).where(
                Order.buyer_id == buyer_id,
                Order.service_id == service_id,
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError(ALREADY_PURCHASED, current=existing.as_dict())

    order = Order(
        buyer_id=buyer_id,
        student_id=student_id,
        service_id=service_id,
        hire_request_id=hire_request_id,
        price_cents=price_cents,
        status=OrderStatus.PENDING,
    )
    db.add(order)
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.info(
            "Concurrent duplicate order rejected: buyer=%s service=%s",
            buyer_id,
            service_id,
        )
        raise ConflictError(ALREADY_PURCHASED) from exc

    emit_order_created(order.id, buyer_id, service_id, price_cents)
    logger.info(
        "Order %s created: buyer=%s service=%s price_cents=%d",
        order.id,
        buyer_id,
        service_id,
        price_cents,
    )
    return order


async def create_order_from_hire(
    db: AsyncSession,
    *,
    hire_request_id: uuid.UUID,
    actor: User,
) -> Order:
    """Create the order for an accepted hire request on the buyer's behalf.

    Accepting a hire request already creates its order; this covers
    requests accepted before that was the case.
    """
    hire = (
        await db.execute(select(HireRequest).where(HireRequest.id == hire_request_id))
    ).scalar_one_or_none()
    if hire is None:
        raise NotFoundError(f"Hire request with id '{hire_request_id}' not found.")
    if hire.buyer_id != actor.id:
        raise ForbiddenError("Only the buyer of this hire request can place the order.")
    if hire.status != HireRequestStatus.ACCEPTED:
        raise InvalidOperationError(
            "Orders can only be placed for ACCEPTED hire requests.",
            current=hire.as_dict(),
        )

    service = (
        await db.execute(select(Service).where(Service.id == hire.service_id))
    ).scalar_one()
    price_cents = hire.price_cents if hire.price_cents is not None else service.price_cents

    order = await create_order(
        db,
        buyer_id=hire.buyer_id,
        student_id=hire.student_id,
        service_id=hire.service_id,
        price_cents=price_cents,
        hire_request_id=hire.id,
    )
    notificationService.notify(
        db,
        hire.student_id,
        NotificationType.ORDER_CREATED,
        "New order",
        f"{actor.name} placed an order for '{service.title}' "
        f"({notificationService.format_price(price_cents)}).",
    )
    return order


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

async def _ensure_direct_order(db: AsyncSession, order: Order) -> None:
    contract = await get_contract_for_order(db, order.id)
    if contract is not None:
        raise InvalidOperationError(
            f"Order is managed by contract '{contract.id}'. Use the contract "
            f"payment and completion endpoints instead.",
            current=order.as_dict(),
        )
    if order.hire_request_id is not None:
        raise InvalidOperationError(
            "Order belongs to a hire request and is paid and completed through "
            "its contract. Draft and sign the contract first.",
            current=order.as_dict(),
        )


async def _credit_completion(
    db: AsyncSession,
    order: Order,
    contract: Optional[Contract],
) -> None:
    if contract is not None:
        await walletService.credit(
            db,
            user_id=contract.student_id,
            amount_cents=contract.student_payout_cents,
            reason=f"Payment for completed contract: {contract.title}",
            contract_id=contract.id,
        )
        return

    service = (
        await db.execute(select(Service).where(Service.id == order.service_id))
    ).scalar_one()
    await walletService.credit(
        db,
        user_id=order.student_id,
        amount_cents=order.price_cents,
        reason=f"Payment for completed order: {service.title}",
        order_id=order.id,
    )


async def _apply_transition(
    db: AsyncSession,
    order: Order,
    new_status: OrderStatus,
    actor: User,
    actor_type: OrderActor,
    *,
    contract: Optional[Contract] = None,
) -> Order:
    result = validate_transition(order.status, new_status, actor_type)
    if not result.allowed:
        logger.info(
            "Order %s transition rejected (%s -> %s by %s): %s",
            order.id,
            order.status.value,
            new_status.value,
            actor.id,
            result.reason,
        )
        raise transition_error(
            result.reason, forbidden=result.forbidden, current=order.as_dict()
        )

    old_status = order.status
    order.status = new_status
    await db.flush()

    if new_status == OrderStatus.COMPLETED:
        await _credit_completion(db, order, contract)

    emit_order_status_changed(order.id, old_status.value, new_status.value, actor.id)
    logger.info(
        "Order %s transitioned: %s -> %s (actor=%s)",
        order.id,
        old_status.value,
        new_status.value,
        actor.id,
    )

    counterpart = order.student_id if actor.id == order.buyer_id else order.buyer_id
    recipients = (
        [order.buyer_id, order.student_id]
        if actor_type == OrderActor.ADMIN
        else [counterpart]
    )
    notificationService.notify_many(
        db,
        recipients,
        NotificationType.ORDER_STATUS_CHANGED,
        "Order updated",
        f"Order status changed from {old_status.value} to {new_status.value}.",
    )
    return order


async def update_order_status(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: User,
    new_status: OrderStatus,
) -> Order:
    """Move a direct order along the transition table.

    Completing an order through this path credits its price to the
    student's wallet. Orders from hire requests are refused. A DISPUTED
    order waits for the ruling on its dispute.

    Raises:
        NotFoundError, ForbiddenError, InvalidOperationError, ConflictError
    """
    order = await get_order(db, order_id, for_update=True)
    actor_type = resolve_actor(order, actor.id, is_admin=actor.is_admin)
    if actor_type is None:
        raise ForbiddenError("You do not have access to this order.")

    await _ensure_direct_order(db, order)
    if order.status == OrderStatus.DISPUTED:
        raise InvalidOperationError(
            "Order is under dispute; an admin ruling on the dispute settles it.",
            current=order.as_dict(),
        )
    return await _apply_transition(db, order, new_status, actor, actor_type)


async def pay_order(db: AsyncSession, *, order_id: uuid.UUID, actor: User) -> Order:
    """Simulated payment of a PENDING direct order by its buyer."""
    order = await get_order(db, order_id, for_update=True)
    if order.buyer_id != actor.id:
        raise ForbiddenError("Only the buyer can pay for this order.")

    await _ensure_direct_order(db, order)
    if order.status != OrderStatus.PENDING:
        raise InvalidOperationError(
            f"Only PENDING orders can be paid (current: '{order.status.value}').",
            current=order.as_dict(),
        )
    return await _apply_transition(db, order, OrderStatus.PAID, actor, OrderActor.BUYER)


async def sync_order_with_contract(
    db: AsyncSession,
    order: Order,
    new_status: OrderStatus,
    *,
    contract_id: uuid.UUID,
) -> Order:
    """Move the contract's linked order (system actor).

    Raises:
        InvalidOperationError: If the order cannot follow the contract.
    """
    result = validate_contract_sync(order.status, new_status)
    if not result.allowed:
        raise InvalidOperationError(result.reason, current=order.as_dict())

    old_status = order.status
    order.status = new_status
    await db.flush()

    emit_order_status_changed(order.id, old_status.value, new_status.value)
    logger.info(
        "Order %s synced with contract %s: %s -> %s",
        order.id,
        contract_id,
        old_status.value,
        new_status.value,
    )
    return order


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------

async def mark_disputed(db: AsyncSession, order: Order, actor: User) -> Order:
    """Move a locked order into DISPUTED for the party raising a dispute.

    Raises:
        ForbiddenError: The actor is not a party.
        InvalidOperationError: The order is unpaid or already closed.
    """
    actor_type = resolve_actor(order, actor.id, is_admin=actor.is_admin)
    result = validate_dispute_opening(order.status, actor_type)
    if not result.allowed:
        raise transition_error(
            result.reason,
            forbidden=result.forbidden,
            current=order.as_dict() if actor_type is not None else None,
        )

    old_status = order.status
    order.status = OrderStatus.DISPUTED
    await db.flush()

    emit_order_status_changed(order.id, old_status.value, order.status.value, actor.id)
    logger.info(
        "Order %s disputed by %s (was %s)",
        order.id,
        actor.id,
        old_status.value,
    )
    return order


async def settle_disputed_order(
    db: AsyncSession,
    order: Order,
    outcome: OrderStatus,
    actor: User,
    *,
    contract: Optional[Contract] = None,
) -> Order:
    """Apply an admin ruling to a DISPUTED order.

    A COMPLETED outcome credits the student once: the contract payout when
    the order has a contract, the order price otherwise.
    """
    if order.status != OrderStatus.DISPUTED:
        raise InvalidOperationError(
            f"Only DISPUTED orders can be settled by a ruling "
            f"(current: '{order.status.value}').",
            current=order.as_dict(),
        )
    return await _apply_transition(
        db, order, outcome, actor, OrderActor.ADMIN, contract=contract
    )
