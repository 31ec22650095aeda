"""
Review API Routes
=================

  POST /api/v1/reviews                  -- Buyer reviews a completed order
  GET  /api/v1/reviews/user/{user_id}   -- Reviews received by a user + average
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from collabotree.api.deps import CurrentUser, DBSession, Pagination
from collabotree.api.schemas.common import ApiResponse, PaginationMeta
from collabotree.api.schemas.review import CreateReviewRequest, ReviewListOut, ReviewOut
from collabotree.services import reviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post(
    "",
    response_model=ApiResponse[ReviewOut],
    status_code=status.HTTP_201_CREATED,
    summary="Review a completed order",
)
async def create_review(
    body: CreateReviewRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[ReviewOut]:
    review = await reviewService.create_review(
        db,
        order_id=body.order_id,
        actor=current_user,
        rating=body.rating,
        comment=body.comment,
    )
    return ApiResponse[ReviewOut](
        message="Review submitted",
        data=ReviewOut.model_validate(review),
    )


@router.get(
    "/user/{user_id}",
    response_model=ReviewListOut,
    summary="List reviews received by a user",
)
async def list_reviews_for_user(
    user_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
) -> ReviewListOut:
    result, summary = await reviewService.list_reviews_for_user(
        db, user_id, page=pagination.page, page_size=pagination.page_size
    )
    return ReviewListOut(
        data=[ReviewOut.model_validate(r) for r in result.items],
        meta=PaginationMeta.from_result(result),
        average_rating=summary.average_rating,
        review_count=summary.review_count,
    )
