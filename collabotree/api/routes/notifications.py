"""
Notification API Routes
=======================

In-app inbox for the authenticated user.

  GET   /api/v1/notifications                -- My notifications (unread first)
  GET   /api/v1/notifications/unread-count   -- Number of unread notifications
  PATCH /api/v1/notifications/read-all       -- Mark all as read
  PATCH /api/v1/notifications/{id}/read      -- Mark one as read
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from collabotree.api.deps import CurrentUser, DBSession, Pagination
from collabotree.api.schemas.common import ApiResponse, PaginatedResponse, PaginationMeta
from collabotree.api.schemas.notification import (
    MarkedReadOut,
    NotificationOut,
    UnreadCountOut,
)
from collabotree.services import notificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=PaginatedResponse[NotificationOut],
    summary="List my notifications",
)
async def list_notifications(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
    unread_only: bool = Query(default=False),
) -> PaginatedResponse[NotificationOut]:
    result = await notificationService.list_notifications(
        db,
        current_user.id,
        unread_only=unread_only,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedResponse[NotificationOut](
        data=[NotificationOut.model_validate(n) for n in result.items],
        meta=PaginationMeta.from_result(result),
    )


@router.get(
    "/unread-count",
    response_model=ApiResponse[UnreadCountOut],
    summary="Count my unread notifications",
)
async def get_unread_count(
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[UnreadCountOut]:
    count = await notificationService.unread_count(db, current_user.id)
    return ApiResponse[UnreadCountOut](data=UnreadCountOut(unread_count=count))


# Registered before /{notification_id}/read so "read-all" is not parsed as an id
@router.patch(
    "/read-all",
    response_model=ApiResponse[MarkedReadOut],
    summary="Mark all my notifications as read",
)
async def mark_all_read(
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[MarkedReadOut]:
    updated = await notificationService.mark_all_read(db, current_user.id)
    return ApiResponse[MarkedReadOut](data=MarkedReadOut(updated_count=updated))


@router.patch(
    "/{notification_id}/read",
    response_model=ApiResponse[NotificationOut],
    summary="Mark a notification as read",
)
async def mark_read(
    notification_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[NotificationOut]:
    notification = await notificationService.mark_read(
        db, notification_id, current_user.id
    )
    return ApiResponse[NotificationOut](
        data=NotificationOut.model_validate(notification)
    )
