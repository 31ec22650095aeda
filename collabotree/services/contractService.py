"""
Contract Service
================

Business logic for the contract lifecycle: drafting from an accepted hire
request, bilateral signing, simulated escrow payment, progress reporting
and completion with payout release.

Key functions:
  - create_contract   -- student drafts; fee split computed, order linked
  - sign_contract     -- one signature per party; both => ACTIVE
  - process_payment   -- buyer captures escrow; linked order -> PAID
  - update_progress   -- student progress report (or completion)
  - mark_completed    -- student completes; order -> COMPLETED, payout credited
  - settle_disputed_contract -- admin ruling closes a paid contract
  - get_contract_detail / list_contracts_for_user

Every multi-step effect runs in the caller's transaction. Payment and
completion are applied with a conditional UPDATE on the contract row so a
retried or concurrent call matches nothing and is rejected instead of
being applied twice.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from collabotree.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
    transition_error,
)
from collabotree.events.marketplaceEvents import (
    emit_contract_completed,
    emit_contract_created,
    emit_contract_paid,
    emit_contract_progress_updated,
    emit_contract_settled,
    emit_contract_signed,
)
from collabotree.models import (
    Contract,
    ContractProgressUpdate,
    ContractSignature,
    ContractStatus,
    HireRequestStatus,
    NotificationType,
    OrderStatus,
    PaymentStatus,
    ProgressStatus,
    Service,
    User,
)
from collabotree.services import hireService, notificationService, orderService, walletService
from collabotree.services.contractStateManager import (
    SETTLEMENT_OUTCOMES,
    ContractActor,
    check_can_complete,
    check_can_pay,
    check_can_settle,
    check_can_sign,
    check_can_update_progress,
    resolve_actor,
    status_after_signature,
)
from collabotree.services.pagination import PaginatedResult, paginate
from collabotree.services.pricingEngine import compute_fee_split

logger = logging.getLogger(__name__)

MAX_DELIVERABLES = 50
MAX_TIMELINE_DAYS = 365


@dataclass
class ContractDetail:
    contract: Contract
    signatures: Sequence[ContractSignature]
    progress_updates: Sequence[ContractProgressUpdate]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_contract(
    db: AsyncSession,
    contract_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Contract:
    stmt = select(Contract).where(Contract.id == contract_id)
    if for_update:
        stmt = stmt.with_for_update()
    contract = (await db.execute(stmt)).scalar_one_or_none()
    if contract is None:
        raise NotFoundError(f"Contract with id '{contract_id}' not found.")
    return contract


async def get_contract_for_hire(
    db: AsyncSession,
    hire_request_id: uuid.UUID,
) -> Optional[Contract]:
    result = await db.execute(
        select(Contract).where(Contract.hire_request_id == hire_request_id)
    )
    return result.scalar_one_or_none()


async def get_contract_detail(
    db: AsyncSession,
    contract_id: uuid.UUID,
    user: User,
) -> ContractDetail:
    """Contract plus its signatures and progress log, for a party or admin."""
    contract = await get_contract(db, contract_id)
    if not (contract.is_party(user.id) or user.is_admin):
        raise ForbiddenError("You do not have access to this contract.")

    signatures = (
        await db.execute(
            select(ContractSignature)
            .where(ContractSignature.contract_id == contract.id)
            .order_by(ContractSignature.signed_at)
        )
    ).scalars().all()
    progress_updates = (
        await db.execute(
            select(ContractProgressUpdate)
            .where(ContractProgressUpdate.contract_id == contract.id)
            .order_by(ContractProgressUpdate.created_at)
        )
    ).scalars().all()
    return ContractDetail(
        contract=contract,
        signatures=signatures,
        progress_updates=progress_updates,
    )


async def list_contracts_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    status: Optional[ContractStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> PaginatedResult:
    stmt = select(Contract).where(
        or_(Contract.buyer_id == user_id, Contract.student_id == user_id)
    )
    if status is not None:
        stmt = stmt.where(Contract.status == status)
    stmt = stmt.order_by(Contract.created_at.desc(), Contract.id)
    return await paginate(db, stmt, page=page, page_size=page_size)


def _actor(contract: Contract, user: User) -> Optional[ContractActor]:
    return resolve_actor(contract, user.id, is_admin=user.is_admin)


def _reject(
    contract: Contract,
    action: str,
    reason: str,
    *,
    forbidden: bool = False,
    visible: bool = True,
):
    logger.info("Contract %s %s rejected: %s", contract.id, action, reason)
    return transition_error(
        reason,
        forbidden=forbidden,
        current=contract.as_dict() if visible else None,
    )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def _validate_terms(deliverables: list[str], timeline_days: int) -> list[str]:
    details = []
    cleaned = [d.strip() for d in deliverables if d and d.strip()]
    if not cleaned:
        details.append({
            "field": "deliverables",
            "message": "At least one non-empty deliverable is required",
        })
    elif len(cleaned) > MAX_DELIVERABLES:
        details.append({
            "field": "deliverables",
            "message": f"At most {MAX_DELIVERABLES} deliverables are allowed",
        })
    if not 0 < timeline_days <= MAX_TIMELINE_DAYS:
        details.append({
            "field": "timeline_days",
            "message": f"Must be between 1 and {MAX_TIMELINE_DAYS} days",
        })
    if details:
        raise ValidationError("Invalid contract terms", details=details)
    return cleaned


async def create_contract(
    db: AsyncSession,
    *,
    hire_request_id: uuid.UUID,
    actor: User,
    deliverables: list[str],
    timeline_days: int,
    additional_terms: Optional[str] = None,
) -> Contract:
    """Draft the contract for an accepted hire request.

    The linked order is located (or created, for requests accepted without
    one) and attached in the same transaction.

    Args:
        db: Async database session.
        hire_request_id: The ACCEPTED hire request.
        actor: Must be the hire request's student.
        deliverables: Ordered list of deliverable descriptions.
        timeline_days: Delivery timeline in days.
        additional_terms: Optional free-text terms.

    Returns:
        The new DRAFT contract.

    Raises:
        ValidationError, NotFoundError, ForbiddenError,
        InvalidOperationError, ConflictError
    """
    cleaned = _validate_terms(deliverables, timeline_days)

    hire = await hireService.get_hire_request(db, hire_request_id, for_update=True)
    if hire.student_id != actor.id:
        raise ForbiddenError("Only the student can create a contract for this hire request.")
    if hire.status != HireRequestStatus.ACCEPTED:
        raise InvalidOperationError(
            f"Contracts can only be created from ACCEPTED hire requests "
            f"(current: '{hire.status.value}').",
            current=hire.as_dict(),
        )

    existing = await get_contract_for_hire(db, hire.id)
    if existing is not None:
        raise ConflictError(
            "A contract already exists for this hire request.",
            current=existing.as_dict(),
        )

    service = (
        await db.execute(select(Service).where(Service.id == hire.service_id))
    ).scalar_one()
    price_cents = hire.price_cents if hire.price_cents is not None else service.price_cents
    split = compute_fee_split(price_cents)

    order = await orderService.find_order_for_hire(db, hire)
    if order is None:
        order = await orderService.create_order(
            db,
            buyer_id=hire.buyer_id,
            student_id=hire.student_id,
            service_id=hire.service_id,
            price_cents=price_cents,
            hire_request_id=hire.id,
        )
    elif order.status != OrderStatus.PENDING:
        raise InvalidOperationError(
            f"The order for this hire request is '{order.status.value}'; "
            f"a contract can only be attached to a PENDING order.",
            current=order.as_dict(),
        )
    elif order.hire_request_id is None:
        order.hire_request_id = hire.id

    contract = Contract(
        hire_request_id=hire.id,
        order_id=order.id,
        buyer_id=hire.buyer_id,
        student_id=hire.student_id,
        service_id=hire.service_id,
        title=service.title,
        price_cents=split.price_cents,
        platform_fee_cents=split.platform_fee_cents,
        student_payout_cents=split.student_payout_cents,
        deliverables=cleaned,
        timeline_days=timeline_days,
        additional_terms=additional_terms,
        status=ContractStatus.DRAFT,
    )
    snapshot = hire.as_dict()
    db.add(contract)
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.info("Concurrent duplicate contract rejected for hire %s", hire.id)
        raise ConflictError(
            "A contract already exists for this hire request.", current=snapshot
        ) from exc

    emit_contract_created(
        contract.id, actor.id, order.id, split.price_cents, split.platform_fee_cents
    )
    logger.info(
        "Contract %s created for hire %s: price=%d fee=%d payout=%d order=%s",
        contract.id,
        hire.id,
        split.price_cents,
        split.platform_fee_cents,
        split.student_payout_cents,
        order.id,
    )

    notificationService.notify(
        db,
        hire.buyer_id,
        NotificationType.CONTRACT_CREATED,
        "Contract ready to sign",
        f"{actor.name} drafted a contract for '{service.title}' "
        f"({notificationService.format_price(split.price_cents)}). Please review and sign.",
    )
    return contract


# ---------------------------------------------------------------------------
# Sign
# ---------------------------------------------------------------------------

async def sign_contract(
    db: AsyncSession,
    *,
    contract_id: uuid.UUID,
    actor: User,
    signature: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Contract:
    """Record the actor's signature; the second signature activates the contract.

    Raises:
        ForbiddenError: The actor is not a party.
        InvalidOperationError: The actor already signed.
        ConflictError: A concurrent duplicate signature won the race.
    """
    if not signature or not signature.strip():
        raise ValidationError(
            "Signature is required",
            details=[{"field": "signature", "message": "Must not be empty"}],
        )

    contract = await get_contract(db, contract_id, for_update=True)
    actor_type = _actor(contract, actor)

    existing = (
        await db.execute(
            select(ContractSignature.id).where(
                ContractSignature.contract_id == contract.id,
                ContractSignature.user_id == actor.id,
            )
        )
    ).scalar_one_or_none()
    signed_flag = (
        contract.is_signed_by_buyer
        if actor_type == ContractActor.BUYER
        else contract.is_signed_by_student
    )
    result = check_can_sign(
        contract,
        actor_type,
        already_signed=existing is not None or signed_flag,
    )
    if not result.allowed:
        raise _reject(
            contract,
            "signature",
            result.reason,
            forbidden=result.forbidden,
            visible=actor_type is not None,
        )

    snapshot = contract.as_dict()
    now = datetime.now(timezone.utc)
    db.add(
        ContractSignature(
            contract_id=contract.id,
            user_id=actor.id,
            signature=signature,
            ip_address=ip_address,
            user_agent=user_agent,
            signed_at=now,
        )
    )
    if actor_type == ContractActor.BUYER:
        contract.is_signed_by_buyer = True
    else:
        contract.is_signed_by_student = True
    contract.status = status_after_signature(
        contract.is_signed_by_buyer, contract.is_signed_by_student
    )
    if contract.status == ContractStatus.ACTIVE:
        contract.signed_at = now

    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            "You have already signed this contract.", current=snapshot
        ) from exc

    # Activation is re-derived from the stored flags so that two parties
    # signing at the same moment still end with an ACTIVE contract.
    await db.execute(
        update(Contract)
        .where(
            Contract.id == contract.id,
            Contract.is_signed_by_buyer.is_(True),
            Contract.is_signed_by_student.is_(True),
            Contract.status != ContractStatus.ACTIVE,
        )
        .values(status=ContractStatus.ACTIVE, signed_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(contract)

    fully_signed = contract.is_fully_signed
    emit_contract_signed(contract.id, actor.id, fully_signed)
    logger.info(
        "Contract %s signed by %s (%s); status=%s",
        contract.id,
        actor.id,
        actor_type.value,
        contract.status.value,
    )

    if fully_signed:
        notificationService.notify_many(
            db,
            [contract.buyer_id, contract.student_id],
            NotificationType.CONTRACT_ACTIVATED,
            "Contract active",
            f"Both parties signed '{contract.title}'. The buyer can now make the payment.",
        )
    else:
        counterpart = (
            contract.student_id
            if actor_type == ContractActor.BUYER
            else contract.buyer_id
        )
        notificationService.notify(
            db,
            counterpart,
            NotificationType.CONTRACT_SIGNED,
            "Contract signed",
            f"{actor.name} signed '{contract.title}'. Your signature is needed.",
        )
    return contract


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------

def _payment_reference() -> str:
    # Simulated escrow capture; no external processor is involved
    return f"sim_{uuid.uuid4().hex[:24]}"


async def process_payment(
    db: AsyncSession,
    *,
    contract_id: uuid.UUID,
    actor: User,
) -> Contract:
    """Capture the contract price into escrow (simulated).

    Sets payment PAID, starts progress and moves the linked order to PAID.

    Raises:
        ForbiddenError: The actor is not the buyer.
        InvalidOperationError: Signatures missing or payment already made.
    """
    contract = await get_contract(db, contract_id, for_update=True)
    actor_type = _actor(contract, actor)
    result = check_can_pay(contract, actor_type)
    if not result.allowed:
        raise _reject(
            contract,
            "payment",
            result.reason,
            forbidden=result.forbidden,
            visible=actor_type is not None,
        )

    now = datetime.now(timezone.utc)
    reference = _payment_reference()
    progress = (
        ProgressStatus.IN_PROGRESS
        if contract.progress_status == ProgressStatus.NOT_STARTED
        else contract.progress_status
    )
    captured = await db.execute(
        update(Contract)
        .where(
            Contract.id == contract.id,
            Contract.status == ContractStatus.ACTIVE,
            Contract.payment_status == PaymentStatus.PENDING,
            Contract.is_signed_by_buyer.is_(True),
            Contract.is_signed_by_student.is_(True),
        )
        .values(
            payment_status=PaymentStatus.PAID,
            paid_at=now,
            payment_reference=reference,
            progress_status=progress,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(contract)
    if captured.rowcount != 1:
        raise _reject(
            contract,
            "payment",
            "Payment has already been processed for this contract.",
        )

    order = await orderService.get_order(db, contract.order_id, for_update=True)
    await orderService.sync_order_with_contract(
        db, order, OrderStatus.PAID, contract_id=contract.id
    )

    emit_contract_paid(contract.id, actor.id, reference, contract.price_cents)
    logger.info(
        "Contract %s paid: amount_cents=%d reference=%s",
        contract.id,
        contract.price_cents,
        reference,
    )

    notificationService.notify(
        db,
        contract.student_id,
        NotificationType.PAYMENT_RECEIVED,
        "Payment received",
        f"{notificationService.format_price(contract.price_cents)} for '{contract.title}' "
        f"is held in escrow. You can start working.",
    )
    return contract


# ---------------------------------------------------------------------------
# Progress & completion
# ---------------------------------------------------------------------------

async def update_progress(
    db: AsyncSession,
    *,
    contract_id: uuid.UUID,
    actor: User,
    progress_status: ProgressStatus,
    notes: Optional[str] = None,
    mark_as_completed: bool = False,
) -> Contract:
    """Record a progress report, or complete the contract when
    ``mark_as_completed`` is set (same effects as ``mark_completed``)."""
    if mark_as_completed:
        return await mark_completed(
            db, contract_id=contract_id, actor=actor, completion_notes=notes
        )

    contract = await get_contract(db, contract_id, for_update=True)
    actor_type = _actor(contract, actor)
    result = check_can_update_progress(contract, actor_type, progress_status)
    if not result.allowed:
        raise _reject(
            contract,
            "progress update",
            result.reason,
            forbidden=result.forbidden,
            visible=actor_type is not None,
        )

    old_progress = contract.progress_status
    contract.progress_status = progress_status
    if notes is not None:
        contract.progress_notes = notes
    db.add(
        ContractProgressUpdate(
            contract_id=contract.id,
            author_id=actor.id,
            status=progress_status,
            notes=notes,
        )
    )
    await db.flush()

    emit_contract_progress_updated(contract.id, actor.id, progress_status.value)
    logger.info(
        "Contract %s progress: %s -> %s",
        contract.id,
        old_progress.value,
        progress_status.value,
    )

    notificationService.notify(
        db,
        contract.buyer_id,
        NotificationType.PROGRESS_UPDATED,
        "Progress update",
        f"{actor.name} updated progress on '{contract.title}'"
        + (f": {notes}" if notes else "."),
    )
    return contract


async def mark_completed(
    db: AsyncSession,
    *,
    contract_id: uuid.UUID,
    actor: User,
    completion_notes: Optional[str] = None,
) -> Contract:
    """Complete a paid contract and release the payout.

    In one transaction: contract COMPLETED (progress COMPLETED, payment
    RELEASED), linked order COMPLETED, one WalletEntry for the student's
    payout.

    Raises:
        ForbiddenError: The actor is not the student.
        InvalidOperationError: Not ACTIVE, not paid, already completed, or
            the order is under dispute.
        ConflictError: The payout was already credited.
    """
    contract = await get_contract(db, contract_id, for_update=True)
    actor_type = _actor(contract, actor)
    result = check_can_complete(contract, actor_type)
    if not result.allowed:
        raise _reject(
            contract,
            "completion",
            result.reason,
            forbidden=result.forbidden,
            visible=actor_type is not None,
        )

    order = await orderService.get_order(db, contract.order_id, for_update=True)
    if order.status == OrderStatus.DISPUTED:
        raise _reject(
            contract,
            "completion",
            "The order is under dispute; an admin ruling will settle this contract.",
        )

    now = datetime.now(timezone.utc)
    values = dict(
        status=ContractStatus.COMPLETED,
        progress_status=ProgressStatus.COMPLETED,
        payment_status=PaymentStatus.RELEASED,
        released_at=now,
        completed_at=now,
    )
    if completion_notes is not None:
        values["completion_notes"] = completion_notes

    completed = await db.execute(
        update(Contract)
        .where(
            Contract.id == contract.id,
            Contract.status == ContractStatus.ACTIVE,
            Contract.payment_status == PaymentStatus.PAID,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(contract)
    if completed.rowcount != 1:
        raise _reject(contract, "completion", "Contract has already been completed.")

    await orderService.sync_order_with_contract(
        db, order, OrderStatus.COMPLETED, contract_id=contract.id
    )

    await walletService.credit(
        db,
        user_id=contract.student_id,
        amount_cents=contract.student_payout_cents,
        reason=f"Payment for completed contract: {contract.title}",
        contract_id=contract.id,
    )

    emit_contract_completed(contract.id, actor.id, contract.student_payout_cents)
    logger.info(
        "Contract %s completed: payout_cents=%d released to %s",
        contract.id,
        contract.student_payout_cents,
        contract.student_id,
    )

    notificationService.notify(
        db,
        contract.buyer_id,
        NotificationType.CONTRACT_COMPLETED,
        "Work completed",
        f"'{contract.title}' has been completed. Please leave a review.",
    )
    notificationService.notify(
        db,
        contract.student_id,
        NotificationType.PAYMENT_RECEIVED,
        "Payout released",
        f"{notificationService.format_price(contract.student_payout_cents)} "
        f"was added to your wallet.",
    )
    return contract


# ---------------------------------------------------------------------------
# Dispute settlement
# ---------------------------------------------------------------------------

async def settle_disputed_contract(
    db: AsyncSession,
    *,
    contract_id: uuid.UUID,
    outcome: ContractStatus,
    actor: User,
) -> Contract:
    """Close a paid contract on an admin's dispute ruling.

    COMPLETED releases the escrow (the payout is credited by the order
    settlement); CANCELLED refunds it and credits nobody. Applied with a
    conditional UPDATE so a repeated ruling matches nothing.

    Raises:
        InvalidOperationError: The contract is not ACTIVE and PAID.
    """
    contract = await get_contract(db, contract_id, for_update=True)
    result = check_can_settle(contract, outcome)
    if not result.allowed:
        raise _reject(contract, "settlement", result.reason)

    now = datetime.now(timezone.utc)
    values = dict(status=outcome, payment_status=SETTLEMENT_OUTCOMES[outcome])
    if outcome == ContractStatus.COMPLETED:
        values.update(
            progress_status=ProgressStatus.COMPLETED,
            released_at=now,
            completed_at=now,
        )

    settled = await db.execute(
        update(Contract)
        .where(
            Contract.id == contract.id,
            Contract.status == ContractStatus.ACTIVE,
            Contract.payment_status == PaymentStatus.PAID,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(contract)
    if settled.rowcount != 1:
        raise _reject(contract, "settlement", "Contract has already been settled.")

    emit_contract_settled(contract.id, actor.id, outcome.value, contract.payment_status.value)
    logger.info(
        "Contract %s settled by ruling: status=%s payment=%s",
        contract.id,
        contract.status.value,
        contract.payment_status.value,
    )
    return contract
