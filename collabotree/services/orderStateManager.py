"""
Order State Manager
===================

Finite state machine governing order status transitions. Every status
change MUST go through ``validate_transition`` before being persisted.

State machine overview::

    PENDING --> PAID --> IN_PROGRESS --> DELIVERED --> COMPLETED

    PENDING / PAID / IN_PROGRESS / DELIVERED --> CANCELLED
    PAID / IN_PROGRESS / DELIVERED --> DISPUTED   (raising a dispute only)
    DISPUTED --> COMPLETED | CANCELLED            (admin ruling)

COMPLETED and CANCELLED are terminal.

Guards enforce which party may request a target status:

    PAID                    buyer
    IN_PROGRESS, DELIVERED  student
    COMPLETED, CANCELLED    buyer

Admins and the system (contract synchronisation) may perform any
structurally valid transition.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from collabotree.models.order import Order, OrderStatus


# ---------------------------------------------------------------------------
# Actor types for guard enforcement
# ---------------------------------------------------------------------------

class OrderActor(str, enum.Enum):
    BUYER = "buyer"
    STUDENT = "student"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition validation attempt."""
    allowed: bool
    reason: str | None = None
    forbidden: bool = False


# ---------------------------------------------------------------------------
# Transition definitions
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.PAID,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PAID: {
        OrderStatus.IN_PROGRESS,
        OrderStatus.CANCELLED,
    },
    OrderStatus.IN_PROGRESS: {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.DELIVERED: {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.DISPUTED: {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    # Terminal states
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

# Contract events drive the linked order along a shorter path. Only the
# system actor uses these edges.
CONTRACT_SYNC_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.PAID},
    OrderStatus.PAID: {OrderStatus.COMPLETED},
    OrderStatus.IN_PROGRESS: {OrderStatus.COMPLETED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED},
}

_STUDENT_TARGETS: frozenset[OrderStatus] = frozenset({
    OrderStatus.IN_PROGRESS,
    OrderStatus.DELIVERED,
})

_BUYER_TARGETS: frozenset[OrderStatus] = frozenset({
    OrderStatus.PAID,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
})

DISPUTABLE_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.PAID,
    OrderStatus.IN_PROGRESS,
    OrderStatus.DELIVERED,
})


def resolve_actor(
    order: Order,
    user_id: uuid.UUID,
    *,
    is_admin: bool = False,
) -> Optional[OrderActor]:
    """Map a user to their relation with ``order``, or ``None`` for outsiders."""
    if user_id == order.buyer_id:
        return OrderActor.BUYER
    if user_id == order.student_id:
        return OrderActor.STUDENT
    if is_admin:
        return OrderActor.ADMIN
    return None


# ---------------------------------------------------------------------------
# Guard functions
# ---------------------------------------------------------------------------

def _guard_actor(new_status: OrderStatus, actor: OrderActor) -> TransitionResult:
    if actor in (OrderActor.ADMIN, OrderActor.SYSTEM):
        return TransitionResult(allowed=True)
    if actor == OrderActor.STUDENT and new_status in _STUDENT_TARGETS:
        return TransitionResult(allowed=True)
    if actor == OrderActor.BUYER and new_status in _BUYER_TARGETS:
        return TransitionResult(allowed=True)

    owner = "student" if new_status in _STUDENT_TARGETS else "buyer"
    return TransitionResult(
        allowed=False,
        reason=f"Only the {owner} can move an order to '{new_status.value}'.",
        forbidden=True,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_transition(
    current_status: OrderStatus,
    new_status: OrderStatus,
    actor: OrderActor = OrderActor.SYSTEM,
) -> TransitionResult:
    """Validate whether an order status transition is allowed.

    Checks two layers:
    1. Is the transition structurally valid per the state machine?
    2. Does the actor have permission for this specific target (guards)?

    Returns a ``TransitionResult`` with ``allowed=True`` if the transition
    is permitted, or ``allowed=False`` with a human-readable ``reason``.
    """
    allowed_targets = VALID_TRANSITIONS.get(current_status, set())
    if new_status not in allowed_targets:
        return TransitionResult(
            allowed=False,
            reason=(
                f"Invalid transition: '{current_status.value}' -> '{new_status.value}'. "
                f"Allowed transitions from '{current_status.value}': "
                f"{', '.join(s.value for s in sorted(allowed_targets, key=lambda s: s.value)) or 'none'}."
            ),
        )

    return _guard_actor(new_status, actor)


def validate_contract_sync(
    current_status: OrderStatus,
    new_status: OrderStatus,
) -> TransitionResult:
    """Validate an order transition triggered by its contract."""
    if new_status in CONTRACT_SYNC_TRANSITIONS.get(current_status, set()):
        return TransitionResult(allowed=True)
    return TransitionResult(
        allowed=False,
        reason=(
            f"Linked order is '{current_status.value}' and cannot follow the "
            f"contract to '{new_status.value}'."
        ),
    )


def validate_dispute_opening(
    current_status: OrderStatus,
    actor: Optional[OrderActor],
) -> TransitionResult:
    """Validate moving an order into DISPUTED because a party raised a dispute.

    The status endpoint never leads into DISPUTED; this is the only way in.
    """
    if actor not in (OrderActor.BUYER, OrderActor.STUDENT):
        return TransitionResult(
            allowed=False,
            reason="Only the buyer or the student of this order can raise a dispute.",
            forbidden=True,
        )
    if current_status not in DISPUTABLE_STATUSES:
        return TransitionResult(
            allowed=False,
            reason=(
                f"Disputes can only be raised on paid orders that are not yet "
                f"closed (current: '{current_status.value}')."
            ),
        )
    return TransitionResult(allowed=True)
