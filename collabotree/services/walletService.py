"""
Wallet Service
==============

Append-only earnings ledger. Entries are inserted by the completion paths
(contract completion, direct order completion) and never modified.

A source (contract or order) credits at most once: the pre-insert lookup
rejects sequential retries, and the unique ``contract_id`` / ``order_id``
columns reject concurrent ones.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from collabotree.core.exceptions import ConflictError
from collabotree.events.marketplaceEvents import emit_wallet_credited
from collabotree.models.wallet import WalletEntry
from collabotree.services.pagination import PaginatedResult, paginate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletBalance:
    user_id: uuid.UUID
    balance_cents: int
    entry_count: int


async def credit(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    amount_cents: int,
    reason: str,
    contract_id: Optional[uuid.UUID] = None,
    order_id: Optional[uuid.UUID] = None,
) -> Optional[WalletEntry]:
    """Append a credit entry for ``user_id``.

    A zero amount writes nothing and returns ``None``.

    Args:
        db: Async database session (the caller's transaction).
        user_id: The earner.
        amount_cents: Credited amount, never negative.
        reason: Human-readable description shown in the ledger.
        contract_id: Contract whose payout this is, if any.
        order_id: Order whose price this is, if any.

    Returns:
        The newly-created WalletEntry, or ``None`` for a zero amount.

    Raises:
        ConflictError: If the contract or order has already been credited.
    """
    if amount_cents < 0:
        raise ValueError(f"Wallet credits cannot be negative, got {amount_cents}")
    if amount_cents == 0:
        logger.info(
            "Skipping zero wallet credit: user=%s contract=%s order=%s",
            user_id,
            contract_id,
            order_id,
        )
        return None

    source_filter = []
    if contract_id is not None:
        source_filter.append(WalletEntry.contract_id == contract_id)
    if order_id is not None:
        source_filter.append(WalletEntry.order_id == order_id)

    for clause in source_filter:
        existing = (
            await db.execute(select(WalletEntry).where(clause))
        ).scalar_one_or_none()
        if existing is not None:
            raise ConflictError(
                "This payout has already been credited.",
                current=existing.as_dict(),
            )

    entry = WalletEntry(
        user_id=user_id,
        amount_cents=amount_cents,
        reason=reason,
        contract_id=contract_id,
        order_id=order_id,
    )
    db.add(entry)
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.warning(
            "Duplicate wallet credit rejected (contract=%s, order=%s)",
            contract_id,
            order_id,
        )
        raise ConflictError("This payout has already been credited.") from exc

    emit_wallet_credited(entry.id, user_id, amount_cents)
    logger.info(
        "Wallet credited: user=%s amount_cents=%d contract=%s order=%s",
        user_id,
        amount_cents,
        contract_id,
        order_id,
    )
    return entry


async def get_balance(db: AsyncSession, user_id: uuid.UUID) -> WalletBalance:
    result = await db.execute(
        select(
            func.coalesce(func.sum(WalletEntry.amount_cents), 0),
            func.count(WalletEntry.id),
        ).where(WalletEntry.user_id == user_id)
    )
    total, count = result.one()
    return WalletBalance(user_id=user_id, balance_cents=int(total), entry_count=count)


async def list_entries(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    page: int = 1,
    page_size: int = 20,
) -> PaginatedResult:
    """Return the user's ledger entries, newest first."""
    stmt = (
        select(WalletEntry)
        .where(WalletEntry.user_id == user_id)
        .order_by(WalletEntry.created_at.desc(), WalletEntry.id)
    )
    return await paginate(db, stmt, page=page, page_size=page_size)
