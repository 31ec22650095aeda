"""
Hire Request State Manager
==========================

Finite state machine for hire request negotiation. Every status change
goes through ``validate_transition`` before being persisted.

State machine overview::

    PENDING --> ACCEPTED    (student only)
    PENDING --> REJECTED    (student only)
    PENDING --> CANCELLED   (buyer, student or admin)

ACCEPTED, REJECTED and CANCELLED are terminal: a request is never re-opened.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from collabotree.models.hire_request import HireRequest, HireRequestStatus


# ---------------------------------------------------------------------------
# Actor types for guard enforcement
# ---------------------------------------------------------------------------

class HireActor(str, enum.Enum):
    """The acting user's relation to a particular hire request."""
    BUYER = "buyer"
    STUDENT = "student"
    ADMIN = "admin"


@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition validation attempt.

    ``forbidden`` distinguishes "wrong actor" from "wrong state" when the
    transition is rejected.
    """
    allowed: bool
    reason: str | None = None
    forbidden: bool = False


# ---------------------------------------------------------------------------
# Transition definitions
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[HireRequestStatus, set[HireRequestStatus]] = {
    HireRequestStatus.PENDING: {
        HireRequestStatus.ACCEPTED,
        HireRequestStatus.REJECTED,
        HireRequestStatus.CANCELLED,
    },
    # Terminal states
    HireRequestStatus.ACCEPTED: set(),
    HireRequestStatus.REJECTED: set(),
    HireRequestStatus.CANCELLED: set(),
}

# Who may drive each target status
_ALLOWED_ACTORS: dict[HireRequestStatus, frozenset[HireActor]] = {
    HireRequestStatus.ACCEPTED: frozenset({HireActor.STUDENT}),
    HireRequestStatus.REJECTED: frozenset({HireActor.STUDENT}),
    HireRequestStatus.CANCELLED: frozenset({
        HireActor.BUYER,
        HireActor.STUDENT,
        HireActor.ADMIN,
    }),
}

_ACTION_VERBS: dict[HireRequestStatus, str] = {
    HireRequestStatus.ACCEPTED: "accept",
    HireRequestStatus.REJECTED: "reject",
    HireRequestStatus.CANCELLED: "cancel",
}


def resolve_actor(
    hire: HireRequest,
    user_id: uuid.UUID,
    *,
    is_admin: bool = False,
) -> Optional[HireActor]:
    """Map a user to their relation with ``hire``, or ``None`` for outsiders."""
    if user_id == hire.student_id:
        return HireActor.STUDENT
    if user_id == hire.buyer_id:
        return HireActor.BUYER
    if is_admin:
        return HireActor.ADMIN
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_transition(
    current_status: HireRequestStatus,
    new_status: HireRequestStatus,
    actor: Optional[HireActor],
) -> TransitionResult:
    """Validate whether a hire request status transition is allowed.

    The actor guard is checked first so outsiders never learn the state of
    a request, then the structural check against ``VALID_TRANSITIONS``.
    """
    verb = _ACTION_VERBS.get(new_status, new_status.value.lower())

    allowed_actors = _ALLOWED_ACTORS.get(new_status, frozenset())
    if actor is None or actor not in allowed_actors:
        who = " or ".join(sorted(a.value for a in allowed_actors)) or "nobody"
        return TransitionResult(
            allowed=False,
            reason=f"Only the {who} can {verb} this hire request.",
            forbidden=True,
        )

    allowed_targets = VALID_TRANSITIONS.get(current_status, set())
    if new_status not in allowed_targets:
        return TransitionResult(
            allowed=False,
            reason=(
                f"Cannot {verb} a hire request in '{current_status.value}' status. "
                f"Only PENDING hire requests can be {new_status.value.lower()}."
            ),
        )

    return TransitionResult(allowed=True)
