"""
Pydantic v2 schemas for the Hire Requests API.

Covers:
- Create hire request (buyer -> student, optional price override)
- Hire request output and the accept result (hire + order + chat room)
- Chat access gate result
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from collabotree.api.schemas.order import OrderOut
from collabotree.models.hire_request import HireRequestStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class CreateHireRequest(BaseModel):
    """Request body for hiring a student for one of their services."""

    service_id: uuid.UUID = Field(description="UUID of the service to hire for")
    message: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="Optional note to the student",
    )
    price_cents: Optional[int] = Field(
        default=None,
        gt=0,
        description="Optional price override in cents; defaults to the service price",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class HireRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    buyer_id: uuid.UUID
    student_id: uuid.UUID
    service_id: uuid.UUID
    message: Optional[str] = None
    price_cents: Optional[int] = None
    status: HireRequestStatus
    created_at: datetime
    updated_at: datetime


class AcceptHireOut(BaseModel):
    """Everything created by accepting a hire request."""

    hire_request: HireRequestOut
    order: OrderOut
    chat_room_id: uuid.UUID


class ChatAccessOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hire_request_id: uuid.UUID
    allowed: bool
    reason: Optional[str] = None
    chat_room_id: Optional[uuid.UUID] = None
    contract_id: Optional[uuid.UUID] = None
