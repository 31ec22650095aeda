"""
Marketplace Event Emission
==========================

Structured events for hire, contract, order and ledger state changes. Each
emitter logs the event and returns the payload dict so callers and tests
can inspect what was published. In-app notifications are handled
separately by ``services.notificationService``.

Events emitted:
  - hire.created / hire.status_changed
  - order.created / order.status_changed
  - contract.created / contract.signed / contract.activated
  - contract.paid / contract.progress_updated / contract.completed
  - contract.settled
  - dispute.opened / dispute.status_changed
  - wallet.credited
  - review.created
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


def _build_event(
    event_type: str,
    entity_id: uuid.UUID,
    *,
    data: dict[str, Any] | None = None,
    actor_id: uuid.UUID | None = None,
) -> dict[str, Any]:
    """Construct a standardised event payload."""
    return {
        "event_type": event_type,
        "entity_id": str(entity_id),
        "actor_id": str(actor_id) if actor_id else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data or {},
    }


def _emit(
    event_type: str,
    entity_id: uuid.UUID,
    *,
    data: dict[str, Any] | None = None,
    actor_id: uuid.UUID | None = None,
) -> dict[str, Any]:
    event = _build_event(event_type, entity_id, data=data, actor_id=actor_id)
    logger.info("Event emitted: %s for %s", event_type, entity_id)
    return event


# ---------------------------------------------------------------------------
# Hire requests
# ---------------------------------------------------------------------------

def emit_hire_created(
    hire_id: uuid.UUID,
    buyer_id: uuid.UUID,
    service_id: uuid.UUID,
    price_cents: int | None,
) -> dict[str, Any]:
    """Emit event when a buyer opens a hire request."""
    return _emit(
        "hire.created",
        hire_id,
        actor_id=buyer_id,
        data={"service_id": str(service_id), "price_cents": price_cents},
    )


def emit_hire_status_changed(
    hire_id: uuid.UUID,
    old_status: str,
    new_status: str,
    actor_id: uuid.UUID | None = None,
) -> dict[str, Any]:
    """Emit event when a hire request is accepted, rejected or cancelled."""
    event = _build_event(
        "hire.status_changed",
        hire_id,
        actor_id=actor_id,
        data={"old_status": old_status, "new_status": new_status},
    )
    logger.info(
        "Event emitted: %s for hire %s (%s -> %s)",
        event["event_type"],
        hire_id,
        old_status,
        new_status,
    )
    return event


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def emit_order_created(
    order_id: uuid.UUID,
    buyer_id: uuid.UUID,
    service_id: uuid.UUID,
    price_cents: int,
) -> dict[str, Any]:
    return _emit(
        "order.created",
        order_id,
        actor_id=buyer_id,
        data={"service_id": str(service_id), "price_cents": price_cents},
    )


def emit_order_status_changed(
    order_id: uuid.UUID,
    old_status: str,
    new_status: str,
    actor_id: uuid.UUID | None = None,
) -> dict[str, Any]:
    """Emit event when an order transitions between states."""
    event = _build_event(
        "order.status_changed",
        order_id,
        actor_id=actor_id,
        data={"old_status": old_status, "new_status": new_status},
    )
    logger.info(
        "Event emitted: %s for order %s (%s -> %s)",
        event["event_type"],
        order_id,
        old_status,
        new_status,
    )
    return event


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

def emit_contract_created(
    contract_id: uuid.UUID,
    student_id: uuid.UUID,
    order_id: uuid.UUID,
    price_cents: int,
    platform_fee_cents: int,
) -> dict[str, Any]:
    return _emit(
        "contract.created",
        contract_id,
        actor_id=student_id,
        data={
            "order_id": str(order_id),
            "price_cents": price_cents,
            "platform_fee_cents": platform_fee_cents,
        },
    )


def emit_contract_signed(
    contract_id: uuid.UUID,
    signer_id: uuid.UUID,
    fully_signed: bool,
) -> dict[str, Any]:
    return _emit(
        "contract.activated" if fully_signed else "contract.signed",
        contract_id,
        actor_id=signer_id,
        data={"fully_signed": fully_signed},
    )


def emit_contract_paid(
    contract_id: uuid.UUID,
    buyer_id: uuid.UUID,
    payment_reference: str,
    amount_cents: int,
) -> dict[str, Any]:
    return _emit(
        "contract.paid",
        contract_id,
        actor_id=buyer_id,
        data={"payment_reference": payment_reference, "amount_cents": amount_cents},
    )


def emit_contract_progress_updated(
    contract_id: uuid.UUID,
    student_id: uuid.UUID,
    progress_status: str,
) -> dict[str, Any]:
    return _emit(
        "contract.progress_updated",
        contract_id,
        actor_id=student_id,
        data={"progress_status": progress_status},
    )


def emit_contract_completed(
    contract_id: uuid.UUID,
    student_id: uuid.UUID,
    payout_cents: int,
) -> dict[str, Any]:
    """Emit event when a contract completes and its payout is released."""
    return _emit(
        "contract.completed",
        contract_id,
        actor_id=student_id,
        data={"payout_cents": payout_cents},
    )


def emit_contract_settled(
    contract_id: uuid.UUID,
    admin_id: uuid.UUID,
    status: str,
    payment_status: str,
) -> dict[str, Any]:
    """Emit event when a dispute ruling closes a contract."""
    return _emit(
        "contract.settled",
        contract_id,
        actor_id=admin_id,
        data={"status": status, "payment_status": payment_status},
    )


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------

def emit_dispute_opened(
    dispute_id: uuid.UUID,
    raised_by_id: uuid.UUID,
    order_id: uuid.UUID,
) -> dict[str, Any]:
    return _emit(
        "dispute.opened",
        dispute_id,
        actor_id=raised_by_id,
        data={"order_id": str(order_id)},
    )


def emit_dispute_status_changed(
    dispute_id: uuid.UUID,
    old_status: str,
    new_status: str,
    admin_id: uuid.UUID,
    order_outcome: str | None = None,
) -> dict[str, Any]:
    return _emit(
        "dispute.status_changed",
        dispute_id,
        actor_id=admin_id,
        data={
            "old_status": old_status,
            "new_status": new_status,
            "order_outcome": order_outcome,
        },
    )


# ---------------------------------------------------------------------------
# Ledger & reviews
# ---------------------------------------------------------------------------

def emit_wallet_credited(
    entry_id: uuid.UUID,
    user_id: uuid.UUID,
    amount_cents: int,
) -> dict[str, Any]:
    return _emit(
        "wallet.credited",
        entry_id,
        data={"user_id": str(user_id), "amount_cents": amount_cents},
    )


def emit_review_created(
    review_id: uuid.UUID,
    reviewer_id: uuid.UUID,
    order_id: uuid.UUID,
    rating: int,
) -> dict[str, Any]:
    return _emit(
        "review.created",
        review_id,
        actor_id=reviewer_id,
        data={"order_id": str(order_id), "rating": rating},
    )
