"""
Contract State Manager
======================

A contract moves along three coupled tracks::

    status:    DRAFT --> PENDING_SIGNATURES --> ACTIVE --> COMPLETED
                                                  `--> CANCELLED
    payment:   PENDING --> PAID --> RELEASED
                             `--> REFUNDED
    progress:  NOT_STARTED --> IN_PROGRESS --> COMPLETED

Couplings enforced here:

- ``status`` becomes ACTIVE only once both parties have signed.
- Payment is captured by the buyer, only on a fully signed contract whose
  payment is still PENDING.
- Progress is reported by the student on an ACTIVE contract.
- Completion is triggered by the student on an ACTIVE, PAID contract; it
  moves all three tracks to their final value in one step.
- An admin ruling on a dispute settles an ACTIVE, PAID contract either way:
  COMPLETED with the escrow RELEASED, or CANCELLED with it REFUNDED.

Each ``check_*`` function returns a ``TransitionResult``; callers turn a
rejection into ``ForbiddenError`` (``forbidden=True``) or
``InvalidOperationError``.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from collabotree.models.contract import (
    Contract,
    ContractStatus,
    PaymentStatus,
    ProgressStatus,
)


class ContractActor(str, enum.Enum):
    BUYER = "buyer"
    STUDENT = "student"
    ADMIN = "admin"


@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition validation attempt."""
    allowed: bool
    reason: str | None = None
    forbidden: bool = False


_OK = TransitionResult(allowed=True)


# ---------------------------------------------------------------------------
# Transition definitions
# ---------------------------------------------------------------------------

STATUS_TRANSITIONS: dict[ContractStatus, set[ContractStatus]] = {
    ContractStatus.DRAFT: {ContractStatus.PENDING_SIGNATURES, ContractStatus.ACTIVE},
    ContractStatus.PENDING_SIGNATURES: {ContractStatus.ACTIVE},
    ContractStatus.ACTIVE: {ContractStatus.COMPLETED, ContractStatus.CANCELLED},
    ContractStatus.COMPLETED: set(),
    ContractStatus.CANCELLED: set(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.PAID},
    PaymentStatus.PAID: {PaymentStatus.RELEASED, PaymentStatus.REFUNDED},
    PaymentStatus.RELEASED: set(),
    PaymentStatus.REFUNDED: set(),
}

# Self-loops allow a student to post notes without changing the status
PROGRESS_TRANSITIONS: dict[ProgressStatus, set[ProgressStatus]] = {
    ProgressStatus.NOT_STARTED: {ProgressStatus.NOT_STARTED, ProgressStatus.IN_PROGRESS},
    ProgressStatus.IN_PROGRESS: {ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETED},
    ProgressStatus.COMPLETED: set(),
}


def resolve_actor(
    contract: Contract,
    user_id: uuid.UUID,
    *,
    is_admin: bool = False,
) -> Optional[ContractActor]:
    """Map a user to their relation with ``contract``, or ``None`` for outsiders."""
    if user_id == contract.student_id:
        return ContractActor.STUDENT
    if user_id == contract.buyer_id:
        return ContractActor.BUYER
    if is_admin:
        return ContractActor.ADMIN
    return None


def _forbidden(reason: str) -> TransitionResult:
    return TransitionResult(allowed=False, reason=reason, forbidden=True)


def _invalid(reason: str) -> TransitionResult:
    return TransitionResult(allowed=False, reason=reason)


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------

def check_can_sign(
    contract: Contract,
    actor: Optional[ContractActor],
    *,
    already_signed: bool,
) -> TransitionResult:
    if actor not in (ContractActor.BUYER, ContractActor.STUDENT):
        return _forbidden("Only the buyer or the student can sign this contract.")
    if already_signed:
        return _invalid("You have already signed this contract.")
    if ContractStatus.ACTIVE not in STATUS_TRANSITIONS[contract.status]:
        return _invalid(
            f"Contract in '{contract.status.value}' status can no longer be signed."
        )
    return _OK


def status_after_signature(
    is_signed_by_buyer: bool,
    is_signed_by_student: bool,
) -> ContractStatus:
    """Contract status once the given signatures are on file."""
    if is_signed_by_buyer and is_signed_by_student:
        return ContractStatus.ACTIVE
    if is_signed_by_buyer or is_signed_by_student:
        return ContractStatus.PENDING_SIGNATURES
    return ContractStatus.DRAFT


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------

def check_can_pay(contract: Contract, actor: Optional[ContractActor]) -> TransitionResult:
    if actor != ContractActor.BUYER:
        return _forbidden("Only the buyer can pay for this contract.")
    if not contract.is_fully_signed:
        return _invalid("Contract must be signed by both parties before payment.")
    if contract.status != ContractStatus.ACTIVE:
        return _invalid(
            f"Contract must be ACTIVE to accept payment (current: '{contract.status.value}')."
        )
    if PaymentStatus.PAID not in PAYMENT_TRANSITIONS[contract.payment_status]:
        return _invalid(
            f"Payment has already been processed for this contract "
            f"(payment status: '{contract.payment_status.value}')."
        )
    return _OK


# ---------------------------------------------------------------------------
# Progress & completion
# ---------------------------------------------------------------------------

def check_can_update_progress(
    contract: Contract,
    actor: Optional[ContractActor],
    new_progress: ProgressStatus,
) -> TransitionResult:
    if actor != ContractActor.STUDENT:
        return _forbidden("Only the student can update progress on this contract.")
    if contract.status != ContractStatus.ACTIVE:
        return _invalid(
            f"Progress can only be updated on an ACTIVE contract "
            f"(current: '{contract.status.value}')."
        )
    if new_progress == ProgressStatus.COMPLETED:
        return _invalid(
            "Set mark_as_completed to complete the contract; progress status "
            "COMPLETED cannot be reported on its own."
        )
    if new_progress not in PROGRESS_TRANSITIONS[contract.progress_status]:
        return _invalid(
            f"Invalid progress transition: '{contract.progress_status.value}' -> "
            f"'{new_progress.value}'."
        )
    return _OK


def check_can_complete(contract: Contract, actor: Optional[ContractActor]) -> TransitionResult:
    if actor != ContractActor.STUDENT:
        return _forbidden("Only the student can mark this contract as completed.")
    if contract.status == ContractStatus.COMPLETED:
        return _invalid("Contract has already been completed.")
    if ContractStatus.COMPLETED not in STATUS_TRANSITIONS[contract.status]:
        return _invalid(
            f"Contract must be ACTIVE to be completed (current: '{contract.status.value}')."
        )
    if contract.payment_status != PaymentStatus.PAID:
        return _invalid("Contract must be paid before it can be completed.")
    return _OK


# ---------------------------------------------------------------------------
# Dispute settlement
# ---------------------------------------------------------------------------

# Contract outcome of a ruling -> the payment status it implies
SETTLEMENT_OUTCOMES: dict[ContractStatus, PaymentStatus] = {
    ContractStatus.COMPLETED: PaymentStatus.RELEASED,
    ContractStatus.CANCELLED: PaymentStatus.REFUNDED,
}


def check_can_settle(contract: Contract, outcome: ContractStatus) -> TransitionResult:
    """Whether an admin ruling may close ``contract`` with ``outcome``."""
    payment_target = SETTLEMENT_OUTCOMES.get(outcome)
    if payment_target is None:
        return _invalid(f"'{outcome.value}' is not a dispute outcome for a contract.")
    if outcome not in STATUS_TRANSITIONS[contract.status]:
        return _invalid(
            f"Contract in '{contract.status.value}' status cannot be settled "
            f"as '{outcome.value}'."
        )
    if payment_target not in PAYMENT_TRANSITIONS[contract.payment_status]:
        return _invalid(
            f"Contract payment is '{contract.payment_status.value}'; only a paid "
            f"contract can be settled."
        )
    return _OK
