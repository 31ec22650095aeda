"""
Pydantic v2 schemas for the Reviews API.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from collabotree.api.schemas.common import PaginatedResponse


class CreateReviewRequest(BaseModel):
    """Request body for reviewing a completed order (buyer only)."""

    order_id: uuid.UUID = Field(description="UUID of the COMPLETED order")
    rating: int = Field(ge=1, le=5, description="Star rating from 1 to 5")
    comment: Optional[str] = Field(default=None, max_length=2000)


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    reviewer_id: uuid.UUID
    reviewee_id: uuid.UUID
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class ReviewListOut(PaginatedResponse[ReviewOut]):
    average_rating: Optional[float] = None
    review_count: int = 0
