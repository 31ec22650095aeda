"""
Dispute API Routes
==================

  POST  /api/v1/disputes               -- A party raises a dispute on a paid order
  GET   /api/v1/disputes               -- Disputes on my orders (all, for admins)
  GET   /api/v1/disputes/{id}          -- Single dispute (parties / admin)
  PATCH /api/v1/disputes/{id}/status   -- Admin review and ruling
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from collabotree.api.deps import CurrentUser, DBSession, Pagination
from collabotree.api.schemas.common import ApiResponse, PaginatedResponse, PaginationMeta
from collabotree.api.schemas.dispute import (
    CreateDisputeRequest,
    DisputeOut,
    UpdateDisputeStatusRequest,
)
from collabotree.models.dispute import DisputeStatus
from collabotree.services import disputeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/disputes", tags=["Disputes"])


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ApiResponse[DisputeOut],
    status_code=status.HTTP_201_CREATED,
    summary="Raise a dispute on an order",
)
async def raise_dispute(
    body: CreateDisputeRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[DisputeOut]:
    dispute = await disputeService.raise_dispute(
        db,
        order_id=body.order_id,
        actor=current_user,
        title=body.title,
        description=body.description,
    )
    return ApiResponse[DisputeOut](
        message="Dispute raised",
        data=DisputeOut.model_validate(dispute),
    )


@router.get(
    "",
    response_model=PaginatedResponse[DisputeOut],
    summary="List disputes",
)
async def list_disputes(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
    status_filter: Optional[DisputeStatus] = Query(default=None, alias="status"),
) -> PaginatedResponse[DisputeOut]:
    result = await disputeService.list_disputes_for_user(
        db,
        current_user,
        status=status_filter,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedResponse[DisputeOut](
        data=[DisputeOut.model_validate(d) for d in result.items],
        meta=PaginationMeta.from_result(result),
    )


@router.get(
    "/{dispute_id}",
    response_model=ApiResponse[DisputeOut],
    summary="Get a dispute",
)
async def get_dispute(
    dispute_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[DisputeOut]:
    dispute = await disputeService.get_dispute_for_user(db, dispute_id, current_user)
    return ApiResponse[DisputeOut](data=DisputeOut.model_validate(dispute))


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

@router.patch(
    "/{dispute_id}/status",
    response_model=ApiResponse[DisputeOut],
    summary="Review or rule on a dispute (admin)",
    description=(
        "RESOLVED and REJECTED close the dispute and settle the order as "
        "COMPLETED (student paid once) or CANCELLED (escrow refunded)."
    ),
)
async def update_dispute_status(
    dispute_id: uuid.UUID,
    body: UpdateDisputeStatusRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[DisputeOut]:
    dispute = await disputeService.update_dispute_status(
        db,
        dispute_id=dispute_id,
        actor=current_user,
        new_status=body.status,
        resolution=body.resolution,
        order_outcome=body.order_outcome,
    )
    return ApiResponse[DisputeOut](
        message=f"Dispute {dispute.status.value.lower()}",
        data=DisputeOut.model_validate(dispute),
    )
