"""
Hire Request API Routes
=======================

Negotiation between a buyer and a student before any contract exists.

  POST  /api/v1/hires                    -- Buyer requests to hire a student
  GET   /api/v1/hires/mine               -- Requests sent or received by me
  GET   /api/v1/hires/{id}               -- Single request (parties / admin)
  PATCH /api/v1/hires/{id}/accept        -- Student accepts (opens chat + order)
  PATCH /api/v1/hires/{id}/reject        -- Student declines
  PATCH /api/v1/hires/{id}/cancel        -- Either party (or admin) withdraws
  GET   /api/v1/hires/{id}/chat-access   -- Whether chat is open for me
"""

from __future__ import annotations

import logging
import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Query, status

from collabotree.api.deps import CurrentUser, DBSession, Pagination
from collabotree.api.schemas.common import ApiResponse, PaginatedResponse, PaginationMeta
from collabotree.api.schemas.hire import (
    AcceptHireOut,
    ChatAccessOut,
    CreateHireRequest,
    HireRequestOut,
)
from collabotree.api.schemas.order import OrderOut
from collabotree.models.hire_request import HireRequestStatus
from collabotree.services import chatService, hireService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hires", tags=["Hire Requests"])


# ---------------------------------------------------------------------------
# POST /hires
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ApiResponse[HireRequestOut],
    status_code=status.HTTP_201_CREATED,
    summary="Request to hire a student",
    description=(
        "Buyer opens a PENDING hire request for a service. The price defaults "
        "to the service price unless overridden. Fails with 409 when the "
        "buyer already has an open request for this service or this student."
    ),
)
async def create_hire_request(
    body: CreateHireRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[HireRequestOut]:
    hire = await hireService.create_hire_request(
        db,
        buyer=current_user,
        service_id=body.service_id,
        message=body.message,
        price_cents=body.price_cents,
    )
    return ApiResponse[HireRequestOut](
        message="Hire request sent",
        data=HireRequestOut.model_validate(hire),
    )


# ---------------------------------------------------------------------------
# GET /hires/mine
# ---------------------------------------------------------------------------

@router.get(
    "/mine",
    response_model=PaginatedResponse[HireRequestOut],
    summary="List my hire requests",
)
async def list_my_hire_requests(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
    role: Optional[Literal["buyer", "student"]] = Query(
        default=None,
        description="Only requests where I am the buyer or the student",
    ),
    status_filter: Optional[HireRequestStatus] = Query(default=None, alias="status"),
) -> PaginatedResponse[HireRequestOut]:
    result = await hireService.list_hire_requests_for_user(
        db,
        current_user.id,
        as_role=role,
        status=status_filter,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedResponse[HireRequestOut](
        data=[HireRequestOut.model_validate(h) for h in result.items],
        meta=PaginationMeta.from_result(result),
    )


# ---------------------------------------------------------------------------
# GET /hires/{hire_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{hire_id}",
    response_model=ApiResponse[HireRequestOut],
    summary="Get a hire request",
)
async def get_hire_request(
    hire_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[HireRequestOut]:
    hire = await hireService.get_hire_request_for_user(db, hire_id, current_user)
    return ApiResponse[HireRequestOut](data=HireRequestOut.model_validate(hire))


# ---------------------------------------------------------------------------
# PATCH /hires/{hire_id}/accept | reject | cancel
# ---------------------------------------------------------------------------

@router.patch(
    "/{hire_id}/accept",
    response_model=ApiResponse[AcceptHireOut],
    summary="Accept a hire request",
    description=(
        "Student accepts a PENDING request. In the same transaction a chat "
        "room is opened and a PENDING order is created for the buyer."
    ),
)
async def accept_hire_request(
    hire_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[AcceptHireOut]:
    accepted = await hireService.accept_hire_request(
        db, hire_request_id=hire_id, actor=current_user
    )
    return ApiResponse[AcceptHireOut](
        message="Hire request accepted",
        data=AcceptHireOut(
            hire_request=HireRequestOut.model_validate(accepted.hire_request),
            order=OrderOut.model_validate(accepted.order),
            chat_room_id=accepted.chat_room.id,
        ),
    )


@router.patch(
    "/{hire_id}/reject",
    response_model=ApiResponse[HireRequestOut],
    summary="Reject a hire request",
)
async def reject_hire_request(
    hire_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[HireRequestOut]:
    hire = await hireService.reject_hire_request(
        db, hire_request_id=hire_id, actor=current_user
    )
    return ApiResponse[HireRequestOut](
        message="Hire request rejected",
        data=HireRequestOut.model_validate(hire),
    )


@router.patch(
    "/{hire_id}/cancel",
    response_model=ApiResponse[HireRequestOut],
    summary="Cancel a hire request",
)
async def cancel_hire_request(
    hire_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[HireRequestOut]:
    hire = await hireService.cancel_hire_request(
        db, hire_request_id=hire_id, actor=current_user
    )
    return ApiResponse[HireRequestOut](
        message="Hire request cancelled",
        data=HireRequestOut.model_validate(hire),
    )


# ---------------------------------------------------------------------------
# GET /hires/{hire_id}/chat-access
# ---------------------------------------------------------------------------

@router.get(
    "/{hire_id}/chat-access",
    response_model=ApiResponse[ChatAccessOut],
    summary="Check whether chat is open for this hire request",
    description=(
        "Chat requires an ACCEPTED hire request with a contract signed by "
        "both parties."
    ),
)
async def get_chat_access(
    hire_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[ChatAccessOut]:
    access = await chatService.check_chat_access(db, hire_id, current_user)
    return ApiResponse[ChatAccessOut](data=ChatAccessOut.model_validate(access))
