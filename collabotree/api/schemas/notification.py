"""
Pydantic v2 schemas for the Notifications API.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from collabotree.models.notification import NotificationType


class NotificationOut(BaseModel):
    """Single notification in the user's inbox."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    notification_type: NotificationType
    title: str
    body: str
    read: bool
    created_at: datetime


class UnreadCountOut(BaseModel):
    unread_count: int


class MarkedReadOut(BaseModel):
    updated_count: int
