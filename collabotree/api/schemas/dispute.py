"""
Pydantic v2 schemas for the Disputes API.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from collabotree.models.dispute import DisputeStatus
from collabotree.models.order import OrderStatus


class CreateDisputeRequest(BaseModel):
    order_id: uuid.UUID = Field(description="UUID of the disputed order")
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=10, max_length=2000)


class UpdateDisputeStatusRequest(BaseModel):
    """Admin review. A ruling (RESOLVED or REJECTED) must settle the order."""

    status: DisputeStatus = Field(description="UNDER_REVIEW, RESOLVED or REJECTED")
    resolution: Optional[str] = Field(default=None, max_length=2000)
    order_outcome: Optional[OrderStatus] = Field(
        default=None,
        description="COMPLETED or CANCELLED; required with RESOLVED or REJECTED",
    )


class DisputeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    raised_by_id: uuid.UUID
    title: str
    description: str
    status: DisputeStatus
    resolution: Optional[str] = None
    order_outcome: Optional[OrderStatus] = None
    resolved_by_id: Optional[uuid.UUID] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
