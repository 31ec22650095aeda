"""
Order API Routes
================

  POST  /api/v1/orders               -- Buyer places the order for an accepted hire
  GET   /api/v1/orders/mine          -- Orders I bought or sold
  GET   /api/v1/orders/{id}          -- Single order (parties / admin)
  PATCH /api/v1/orders/{id}/status   -- Move a direct order
  PATCH /api/v1/orders/{id}/pay      -- Simulated payment of a direct order

Orders that came from a hire request are driven through the contract
endpoints; the status and pay endpoints only serve direct orders.
"""

from __future__ import annotations

import logging
import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Query, status

from collabotree.api.deps import CurrentUser, DBSession, Pagination
from collabotree.api.schemas.common import ApiResponse, PaginatedResponse, PaginationMeta
from collabotree.api.schemas.order import (
    CreateOrderRequest,
    OrderOut,
    UpdateOrderStatusRequest,
)
from collabotree.models.order import OrderStatus
from collabotree.services import orderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    response_model=ApiResponse[OrderOut],
    status_code=status.HTTP_201_CREATED,
    summary="Place the order for an accepted hire request",
)
async def create_order(
    body: CreateOrderRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[OrderOut]:
    order = await orderService.create_order_from_hire(
        db, hire_request_id=body.hire_request_id, actor=current_user
    )
    return ApiResponse[OrderOut](
        message="Order created",
        data=OrderOut.model_validate(order),
    )


@router.get(
    "/mine",
    response_model=PaginatedResponse[OrderOut],
    summary="List my orders",
)
async def list_my_orders(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
    role: Optional[Literal["buyer", "student"]] = Query(default=None),
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
) -> PaginatedResponse[OrderOut]:
    result = await orderService.list_orders_for_user(
        db,
        current_user.id,
        as_role=role,
        status=status_filter,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedResponse[OrderOut](
        data=[OrderOut.model_validate(o) for o in result.items],
        meta=PaginationMeta.from_result(result),
    )


@router.get(
    "/{order_id}",
    response_model=ApiResponse[OrderOut],
    summary="Get an order",
)
async def get_order(
    order_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[OrderOut]:
    order = await orderService.get_order_for_user(db, order_id, current_user)
    return ApiResponse[OrderOut](data=OrderOut.model_validate(order))


@router.patch(
    "/{order_id}/status",
    response_model=ApiResponse[OrderOut],
    summary="Change an order's status",
    description=(
        "Students move orders to IN_PROGRESS and DELIVERED; buyers pay, "
        "complete or cancel. Completing credits the student's wallet."
    ),
)
async def update_order_status(
    order_id: uuid.UUID,
    body: UpdateOrderStatusRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[OrderOut]:
    order = await orderService.update_order_status(
        db, order_id=order_id, actor=current_user, new_status=body.status
    )
    return ApiResponse[OrderOut](
        message=f"Order status updated to {order.status.value}",
        data=OrderOut.model_validate(order),
    )


@router.patch(
    "/{order_id}/pay",
    response_model=ApiResponse[OrderOut],
    summary="Pay for an order",
)
async def pay_order(
    order_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[OrderOut]:
    order = await orderService.pay_order(db, order_id=order_id, actor=current_user)
    return ApiResponse[OrderOut](
        message="Payment processed",
        data=OrderOut.model_validate(order),
    )
