"""
Pydantic v2 schemas for authentication API endpoints.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from collabotree.models.user import UserRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    email: str = Field(
        min_length=3,
        max_length=320,
        pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$",
        description="Account email",
    )
    password: str = Field(
        min_length=8, max_length=128, description="Password (min 8 characters)"
    )
    name: str = Field(min_length=1, max_length=100, description="Display name")
    role: str = Field(
        default="BUYER",
        pattern=r"^(BUYER|STUDENT)$",
        description="Account role: BUYER or STUDENT",
    )


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320, description="Account email")
    password: str = Field(min_length=1, max_length=128, description="Account password")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserOut(BaseModel):
    """Public profile of the authenticated user."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    name: str
    role: UserRole
    is_verified: bool
    created_at: datetime


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserOut
