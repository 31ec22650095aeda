"""
Review Service
==============

Buyers rate a COMPLETED order exactly once (1-5 stars, optional comment).
The student being reviewed is notified. Listing returns a user's received
reviews together with their average rating.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from collabotree.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    ValidationError,
)
from collabotree.events.marketplaceEvents import emit_review_created
from collabotree.models import NotificationType, OrderStatus, Review, User
from collabotree.services import notificationService, orderService
from collabotree.services.pagination import PaginatedResult, paginate

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class RatingSummary:
    user_id: uuid.UUID
    average_rating: Optional[float]
    review_count: int


async def create_review(
    db: AsyncSession,
    *,
    order_id: uuid.UUID,
    actor: User,
    rating: int,
    comment: Optional[str] = None,
) -> Review:
    """Submit the buyer's review for a completed order.

    Raises:
        ValidationError: Rating outside 1-5.
        NotFoundError: The order does not exist.
        ForbiddenError: The actor is not the order's buyer.
        InvalidOperationError: The order is not COMPLETED.
        ConflictError: The actor already reviewed this order.
    """
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            "Invalid rating",
            details=[{
                "field": "rating",
                "message": f"Must be between {MIN_RATING} and {MAX_RATING}",
            }],
        )

    order = await orderService.get_order(db, order_id)
    if order.buyer_id != actor.id:
        raise ForbiddenError("Only the buyer of this order can review it.")
    if order.status != OrderStatus.COMPLETED:
        raise InvalidOperationError(
            f"Only COMPLETED orders can be reviewed (current: '{order.status.value}').",
            current=order.as_dict(),
        )

    existing = (
        await db.execute(
            select(Review).where(
                Review.order_id == order.id,
                Review.reviewer_id == actor.id,
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError(
            "You have already reviewed this order.",
            current=existing.as_dict(),
        )

    review = Review(
        order_id=order.id,
        reviewer_id=actor.id,
        reviewee_id=order.student_id,
        rating=rating,
        comment=comment,
    )
    snapshot = order.as_dict()
    db.add(review)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            "You have already reviewed this order.", current=snapshot
        ) from exc

    emit_review_created(review.id, actor.id, order.id, rating)
    logger.info("Review %s created for order %s: rating=%d", review.id, order.id, rating)

    notificationService.notify(
        db,
        order.student_id,
        NotificationType.REVIEW_RECEIVED,
        "New review",
        f"{actor.name} left you a {rating}-star review.",
    )
    return review


async def get_rating_summary(db: AsyncSession, user_id: uuid.UUID) -> RatingSummary:
    result = await db.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.reviewee_id == user_id
        )
    )
    average, count = result.one()
    return RatingSummary(
        user_id=user_id,
        average_rating=round(float(average), 2) if average is not None else None,
        review_count=count,
    )


async def list_reviews_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    page: int = 1,
    page_size: int = 20,
) -> tuple[PaginatedResult, RatingSummary]:
    """Reviews received by ``user_id``, newest first, plus their summary."""
    stmt = (
        select(Review)
        .where(Review.reviewee_id == user_id)
        .order_by(Review.created_at.desc(), Review.id)
    )
    page_result = await paginate(db, stmt, page=page, page_size=page_size)
    return page_result, await get_rating_summary(db, user_id)
