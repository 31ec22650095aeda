"""
Pydantic v2 schemas for the Orders API.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from collabotree.models.order import OrderStatus


class CreateOrderRequest(BaseModel):
    """Place the order for an accepted hire request."""

    hire_request_id: uuid.UUID = Field(description="UUID of the ACCEPTED hire request")


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus = Field(description="Target order status")


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    buyer_id: uuid.UUID
    student_id: uuid.UUID
    service_id: uuid.UUID
    hire_request_id: Optional[uuid.UUID] = None
    price_cents: int
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
