"""
Notification Service
====================

In-app notifications for every marketplace state change.

Business services call ``notify`` / ``notify_many`` while their transaction
is still open. Those calls only queue the notification on the session; the
rows are written by ``dispatch_pending`` after the business transaction has
committed, in a transaction of their own. Consequences:

  - a failed business transaction never leaves notifications behind
    (``discard_pending`` drops the queue on rollback);
  - a failed notification write is logged and swallowed, it never undoes
    the state change that triggered it.

Also provides the inbox operations behind ``/notifications``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from collabotree.core.exceptions import NotFoundError
from collabotree.models.notification import Notification, NotificationType
from collabotree.services.pagination import PaginatedResult, paginate

logger = logging.getLogger(__name__)

# Key under ``AsyncSession.info`` holding the queued notifications
OUTBOX_KEY = "pending_notifications"


@dataclass(frozen=True)
class PendingNotification:
    user_id: uuid.UUID
    notification_type: NotificationType
    title: str
    body: str


def format_price(amount_cents: int) -> str:
    """Format a price in cents to a human-readable dollar string.

    Args:
        amount_cents: Price in cents (e.g. 1550 for $15.50).

    Returns:
        Formatted string like "$15.50".
    """
    dollars = amount_cents / 100
    return f"${dollars:,.2f}"


# ---------------------------------------------------------------------------
# Outbox
# ---------------------------------------------------------------------------

def notify(
    db: AsyncSession,
    user_id: uuid.UUID,
    notification_type: NotificationType,
    title: str,
    body: str,
) -> None:
    """Queue a notification for delivery once ``db`` commits."""
    db.info.setdefault(OUTBOX_KEY, []).append(
        PendingNotification(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            body=body,
        )
    )


def notify_many(
    db: AsyncSession,
    user_ids: Iterable[uuid.UUID],
    notification_type: NotificationType,
    title: str,
    body: str,
) -> None:
    """Queue the same notification for several users (deduplicated)."""
    seen: set[uuid.UUID] = set()
    for user_id in user_ids:
        if user_id in seen:
            continue
        seen.add(user_id)
        notify(db, user_id, notification_type, title, body)


def pending(db: AsyncSession) -> list[PendingNotification]:
    """Notifications queued on ``db`` and not yet dispatched."""
    return list(db.info.get(OUTBOX_KEY, []))


def discard_pending(db: AsyncSession) -> int:
    """Drop queued notifications after a rollback. Returns how many."""
    dropped = db.info.pop(OUTBOX_KEY, [])
    if dropped:
        logger.debug("Discarded %d queued notifications after rollback", len(dropped))
    return len(dropped)


async def dispatch_pending(db: AsyncSession) -> int:
    """Persist queued notifications in their own transaction.

    Must be called after the business transaction committed. Never raises:
    failures are logged and the queue is dropped.

    Returns:
        Number of notifications written.
    """
    queued: list[PendingNotification] = db.info.pop(OUTBOX_KEY, [])
    if not queued:
        return 0

    try:
        for item in queued:
            db.add(
                Notification(
                    user_id=item.user_id,
                    notification_type=item.notification_type,
                    title=item.title,
                    body=item.body,
                    read=False,
                )
            )
        await db.commit()
    except Exception:
        logger.exception("Failed to deliver %d notifications", len(queued))
        try:
            await db.rollback()
        except Exception:
            logger.exception("Rollback after notification failure also failed")
        return 0

    logger.info("Delivered %d notifications", len(queued))
    return len(queued)


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------

async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    unread_only: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> PaginatedResult:
    """Return a user's notifications, unread first, then newest first."""
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    stmt = stmt.order_by(Notification.read.asc(), Notification.created_at.desc())
    return await paginate(db, stmt, page=page, page_size=page_size)


async def mark_read(
    db: AsyncSession,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Notification:
    """Mark one of the user's notifications as read.

    Raises:
        NotFoundError: If the notification does not exist or belongs to
            another user.
    """
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError(f"Notification with id '{notification_id}' not found.")

    if not notification.read:
        notification.read = True
        await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.flush()

    logger.info("Marked %d notifications as read for user %s", result.rowcount, user_id)
    return result.rowcount


async def unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
    )
    return result.scalar_one()
