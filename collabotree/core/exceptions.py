"""
Domain error taxonomy shared by every service.

Services raise these; ``collabotree.api.errors`` turns them into the JSON
error envelope with the matching HTTP status. A rejected state transition
attaches the entity's unchanged state as ``current`` so the client can
retry once the precondition is met.
"""

from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base class for all business-rule failures."""

    kind: str = "Error"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[list[dict[str, Any]]] = None,
        current: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or []
        self.current = current
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed or missing input."""

    kind = "ValidationError"
    status_code = 400


class NotFoundError(DomainError):
    """Referenced entity does not exist (or is not visible to the caller)."""

    kind = "NotFound"
    status_code = 404


class ForbiddenError(DomainError):
    """Actor lacks the role or ownership for this action."""

    kind = "Forbidden"
    status_code = 403


class InvalidOperationError(DomainError):
    """Right actor, wrong state."""

    kind = "InvalidOperation"
    status_code = 400


class ConflictError(DomainError):
    """Uniqueness or duplication violation."""

    kind = "Conflict"
    status_code = 409


class InternalError(DomainError):
    kind = "Internal"
    status_code = 500


def transition_error(
    reason: str,
    *,
    forbidden: bool = False,
    current: Optional[dict[str, Any]] = None,
) -> DomainError:
    """Build the error for a rejected state transition.

    Wrong-actor rejections become ``ForbiddenError``, wrong-state
    rejections ``InvalidOperationError``. Both carry the unchanged entity
    as ``current``; callers leave it out when the actor is an outsider.
    """
    if forbidden:
        return ForbiddenError(reason, current=current)
    return InvalidOperationError(reason, current=current)
