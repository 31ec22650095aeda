"""
Dispute Service
===============

A party to a paid order raises a dispute; an admin reviews it and rules.

Key functions:
  - raise_dispute          -- buyer or student; order -> DISPUTED
  - update_dispute_status  -- admin; UNDER_REVIEW, or a ruling that closes
                              the dispute and settles the order
  - get_dispute_for_user / list_disputes_for_user

A ruling (RESOLVED or REJECTED) names the order outcome. COMPLETED pays
the student once: the contract payout, or the order price for a direct
order. CANCELLED refunds a contract's escrow and credits nobody.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from collabotree.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from collabotree.events.marketplaceEvents import (
    emit_dispute_opened,
    emit_dispute_status_changed,
)
from collabotree.models import (
    ContractStatus,
    Dispute,
    DisputeStatus,
    NotificationType,
    Order,
    OrderStatus,
    User,
)
from collabotree.services import contractService, notificationService, orderService
from collabotree.services.pagination import PaginatedResult, paginate

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10

DISPUTE_TRANSITIONS: dict[DisputeStatus, set[DisputeStatus]] = {
    DisputeStatus.OPEN: {
        DisputeStatus.UNDER_REVIEW,
        DisputeStatus.RESOLVED,
        DisputeStatus.REJECTED,
    },
    DisputeStatus.UNDER_REVIEW: {
        DisputeStatus.RESOLVED,
        DisputeStatus.REJECTED,
    },
    # Terminal states
    DisputeStatus.RESOLVED: set(),
    DisputeStatus.REJECTED: set(),
}

# Order outcome of a ruling -> contract status it implies
_CONTRACT_OUTCOMES: dict[OrderStatus, ContractStatus] = {
    OrderStatus.COMPLETED: ContractStatus.COMPLETED,
    OrderStatus.CANCELLED: ContractStatus.CANCELLED,
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_dispute(
    db: AsyncSession,
    dispute_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Dispute:
    stmt = select(Dispute).where(Dispute.id == dispute_id)
    if for_update:
        stmt = stmt.with_for_update()
    dispute = (await db.execute(stmt)).scalar_one_or_none()
    if dispute is None:
        raise NotFoundError(f"Dispute with id '{dispute_id}' not found.")
    return dispute


async def get_dispute_for_user(
    db: AsyncSession,
    dispute_id: uuid.UUID,
    user: User,
) -> Dispute:
    """Return the dispute if ``user`` is a party to its order or an admin."""
    dispute = await get_dispute(db, dispute_id)
    if not user.is_admin:
        order = await orderService.get_order(db, dispute.order_id)
        if not order.is_party(user.id):
            raise ForbiddenError("You do not have access to this dispute.")
    return dispute


async def list_disputes_for_user(
    db: AsyncSession,
    user: User,
    *,
    status: Optional[DisputeStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> PaginatedResult:
    """Admins see every dispute; other users see those on their own orders."""
    stmt = select(Dispute)
    if not user.is_admin:
        stmt = stmt.join(Order, Order.id == Dispute.order_id).where(
            or_(Order.buyer_id == user.id, Order.student_id == user.id)
        )
    if status is not None:
        stmt = stmt.where(Dispute.status == status)
    stmt = stmt.order_by(Dispute.created_at.desc(), Dispute.id)
    return await paginate(db, stmt, page=page, page_size=page_size)


# ---------------------------------------------------------------------------
# Raise
# ---------------------------------------------------------------------------

def _validate_claim(title: str, description: str) -> tuple[str, str]:
    details = []
    title = title.strip()
    description = description.strip()
    if not title:
        details.append({"field": "title", "message": "Must not be blank"})
    if len(description) < MIN_DESCRIPTION_LENGTH:
        details.append({
            "field": "description",
            "message": f"Must be at least {MIN_DESCRIPTION_LENGTH} characters",
        })
    if details:
        raise ValidationError("Invalid dispute", details=details)
    return title, description


async def raise_dispute(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: User,
    title: str,
    description: str,
) -> Dispute:
    """Open a dispute on a paid order and move the order to DISPUTED.

    Raises:
        ValidationError: Blank title or too short a description.
        NotFoundError: Unknown order.
        ForbiddenError: The actor is not a party to the order.
        ConflictError: The actor already raised a dispute on this order.
        InvalidOperationError: The order is unpaid or already closed.
    """
    title, description = _validate_claim(title, description)

    order = await orderService.get_order(db, order_id, for_update=True)
    if not order.is_party(actor.id):
        raise ForbiddenError("Only the buyer or the student of this order can raise a dispute.")

    existing = (
        await db.execute(
            select(Dispute).where(
                Dispute.order_id == order.id,
                Dispute.raised_by_id == actor.id,
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError(
            "You have already raised a dispute for this order.",
            current=existing.as_dict(),
        )

    snapshot = order.as_dict()
    await orderService.mark_disputed(db, order, actor)

    dispute = Dispute(
        order_id=order.id,
        raised_by_id=actor.id,
        title=title,
        description=description,
        status=DisputeStatus.OPEN,
    )
    db.add(dispute)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            "You have already raised a dispute for this order.", current=snapshot
        ) from exc

    emit_dispute_opened(dispute.id, actor.id, order.id)
    logger.info(
        "Dispute %s raised on order %s by %s",
        dispute.id,
        order.id,
        actor.id,
    )

    counterpart = order.student_id if actor.id == order.buyer_id else order.buyer_id
    notificationService.notify(
        db,
        counterpart,
        NotificationType.DISPUTE_RAISED,
        "Dispute raised",
        f"{actor.name} raised a dispute on your order: {title}",
    )
    return dispute


# ---------------------------------------------------------------------------
# Admin review & ruling
# ---------------------------------------------------------------------------

async def _settle_order(
    db: AsyncSession,
    order: Order,
    outcome: OrderStatus,
    actor: User,
) -> None:
    contract = await orderService.get_contract_for_order(db, order.id)
    if contract is not None:
        contract = await contractService.settle_disputed_contract(
            db,
            contract_id=contract.id,
            outcome=_CONTRACT_OUTCOMES[outcome],
            actor=actor,
        )
    await orderService.settle_disputed_order(db, order, outcome, actor, contract=contract)


async def update_dispute_status(
    db: AsyncSession,
    *,
    dispute_id: uuid.UUID,
    actor: User,
    new_status: DisputeStatus,
    resolution: Optional[str] = None,
    order_outcome: Optional[OrderStatus] = None,
) -> Dispute:
    """Move a dispute under review, or close it with a ruling.

    Closing (RESOLVED or REJECTED) requires ``order_outcome``, COMPLETED or
    CANCELLED, which is applied to the DISPUTED order in the same
    transaction.

    Raises:
        ForbiddenError: The actor is not an admin.
        ValidationError: A ruling without a valid order outcome.
        InvalidOperationError: The dispute is already closed, or the
            transition is not in the table.
    """
    if not actor.is_admin:
        raise ForbiddenError("Only administrators can update disputes.")

    dispute = await get_dispute(db, dispute_id, for_update=True)
    if new_status not in DISPUTE_TRANSITIONS[dispute.status]:
        raise InvalidOperationError(
            f"Invalid dispute transition: '{dispute.status.value}' -> "
            f"'{new_status.value}'.",
            current=dispute.as_dict(),
        )

    closing = not DISPUTE_TRANSITIONS[new_status]
    if closing and order_outcome not in _CONTRACT_OUTCOMES:
        raise ValidationError(
            "A ruling must name the order outcome",
            details=[{
                "field": "order_outcome",
                "message": "Must be COMPLETED or CANCELLED",
            }],
        )
    if not closing and order_outcome is not None:
        raise ValidationError(
            "An order outcome is only accepted with a ruling",
            details=[{
                "field": "order_outcome",
                "message": "Only allowed when resolving or rejecting",
            }],
        )

    order = await orderService.get_order(db, dispute.order_id, for_update=True)
    old_status = dispute.status
    dispute.status = new_status
    if resolution is not None:
        dispute.resolution = resolution
    if closing:
        await _settle_order(db, order, order_outcome, actor)
        dispute.order_outcome = order_outcome
        dispute.resolved_by_id = actor.id
        dispute.resolved_at = datetime.now(timezone.utc)
    await db.flush()

    emit_dispute_status_changed(
        dispute.id,
        old_status.value,
        new_status.value,
        actor.id,
        order_outcome.value if closing else None,
    )
    logger.info(
        "Dispute %s: %s -> %s (admin=%s, order_outcome=%s)",
        dispute.id,
        old_status.value,
        new_status.value,
        actor.id,
        order_outcome.value if closing else None,
    )

    if closing:
        notificationService.notify_many(
            db,
            [order.buyer_id, order.student_id],
            NotificationType.DISPUTE_RESOLVED,
            f"Dispute {new_status.value.lower()}",
            f"The dispute '{dispute.title}' was {new_status.value.lower()}; "
            f"the order is now {order_outcome.value}.",
        )
    else:
        notificationService.notify_many(
            db,
            [order.buyer_id, order.student_id],
            NotificationType.DISPUTE_UPDATED,
            "Dispute under review",
            f"An administrator is reviewing the dispute '{dispute.title}'.",
        )
    return dispute
