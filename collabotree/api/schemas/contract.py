"""
Pydantic v2 schemas for the Contracts API.

Covers:
- Contract creation from an accepted hire request
- Signing, progress updates, completion
- Contract output, with signatures and progress log on the detail view
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from collabotree.models.contract import ContractStatus, PaymentStatus, ProgressStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class CreateContractRequest(BaseModel):
    """Request body for drafting a contract (student only)."""

    hire_request_id: uuid.UUID = Field(description="UUID of the ACCEPTED hire request")
    deliverables: list[str] = Field(
        min_length=1,
        max_length=50,
        description="Ordered list of deliverables",
    )
    timeline_days: int = Field(gt=0, le=365, description="Delivery timeline in days")
    additional_terms: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("deliverables")
    @classmethod
    def validate_deliverables(cls, v: list[str]) -> list[str]:
        cleaned = [item.strip() for item in v]
        if any(not item for item in cleaned):
            raise ValueError("Deliverables must not be empty")
        return cleaned


class SignContractRequest(BaseModel):
    signature: str = Field(
        min_length=1,
        max_length=100_000,
        description="Signature payload (typed name or encoded drawing)",
    )


class UpdateProgressRequest(BaseModel):
    status: ProgressStatus = Field(
        default=ProgressStatus.IN_PROGRESS,
        description="Reported progress status",
    )
    notes: Optional[str] = Field(default=None, max_length=5000)
    mark_as_completed: bool = Field(
        default=False,
        description="Complete the contract and release the payout",
    )


class CompleteContractRequest(BaseModel):
    completion_notes: Optional[str] = Field(default=None, max_length=5000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ContractOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    hire_request_id: uuid.UUID
    order_id: uuid.UUID
    buyer_id: uuid.UUID
    student_id: uuid.UUID
    service_id: uuid.UUID
    title: str
    price_cents: int
    platform_fee_cents: int
    student_payout_cents: int
    deliverables: list[str]
    timeline_days: int
    additional_terms: Optional[str] = None
    status: ContractStatus
    is_signed_by_buyer: bool
    is_signed_by_student: bool
    signed_at: Optional[datetime] = None
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    progress_status: ProgressStatus
    progress_notes: Optional[str] = None
    completion_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SignatureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    signed_at: datetime
    ip_address: Optional[str] = None


class ProgressUpdateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    author_id: uuid.UUID
    status: ProgressStatus
    notes: Optional[str] = None
    created_at: datetime


class ContractDetailOut(ContractOut):
    signatures: list[SignatureOut] = []
    progress_updates: list[ProgressUpdateOut] = []
