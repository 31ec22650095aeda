"""
Contract API Routes
===================

Formal agreement for an accepted hire request, from drafting through
signatures, escrow payment, progress and completion.

  POST /api/v1/contracts                 -- Student drafts a contract
  GET  /api/v1/contracts/mine            -- Contracts I am a party to
  GET  /api/v1/contracts/{id}            -- Contract with signatures + progress
  POST /api/v1/contracts/{id}/sign       -- Party signs
  POST /api/v1/contracts/{id}/payment    -- Buyer pays into escrow (simulated)
  POST /api/v1/contracts/{id}/progress   -- Student reports progress
  POST /api/v1/contracts/{id}/complete   -- Student completes; payout released
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from collabotree.api.deps import ClientIP, CurrentUser, DBSession, Pagination, UserAgent
from collabotree.api.schemas.common import ApiResponse, PaginatedResponse, PaginationMeta
from collabotree.api.schemas.contract import (
    CompleteContractRequest,
    ContractDetailOut,
    ContractOut,
    CreateContractRequest,
    ProgressUpdateOut,
    SignatureOut,
    SignContractRequest,
    UpdateProgressRequest,
)
from collabotree.models.contract import ContractStatus
from collabotree.services import contractService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contracts", tags=["Contracts"])


# ---------------------------------------------------------------------------
# POST /contracts
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ApiResponse[ContractOut],
    status_code=status.HTTP_201_CREATED,
    summary="Draft a contract for an accepted hire request",
    description=(
        "Only the student of an ACCEPTED hire request may draft its contract. "
        "The platform fee and student payout are fixed at creation."
    ),
)
async def create_contract(
    body: CreateContractRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[ContractOut]:
    contract = await contractService.create_contract(
        db,
        hire_request_id=body.hire_request_id,
        actor=current_user,
        deliverables=body.deliverables,
        timeline_days=body.timeline_days,
        additional_terms=body.additional_terms,
    )
    return ApiResponse[ContractOut](
        message="Contract created",
        data=ContractOut.model_validate(contract),
    )


# ---------------------------------------------------------------------------
# GET /contracts/mine
# ---------------------------------------------------------------------------

@router.get(
    "/mine",
    response_model=PaginatedResponse[ContractOut],
    summary="List my contracts",
)
async def list_my_contracts(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
    status_filter: Optional[ContractStatus] = Query(default=None, alias="status"),
) -> PaginatedResponse[ContractOut]:
    result = await contractService.list_contracts_for_user(
        db,
        current_user.id,
        status=status_filter,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return PaginatedResponse[ContractOut](
        data=[ContractOut.model_validate(c) for c in result.items],
        meta=PaginationMeta.from_result(result),
    )


# ---------------------------------------------------------------------------
# GET /contracts/{contract_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{contract_id}",
    response_model=ApiResponse[ContractDetailOut],
    summary="Get a contract with its signatures and progress log",
)
async def get_contract(
    contract_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[ContractDetailOut]:
    detail = await contractService.get_contract_detail(db, contract_id, current_user)
    base = ContractOut.model_validate(detail.contract)
    return ApiResponse[ContractDetailOut](
        data=ContractDetailOut(
            **base.model_dump(),
            signatures=[SignatureOut.model_validate(s) for s in detail.signatures],
            progress_updates=[
                ProgressUpdateOut.model_validate(p) for p in detail.progress_updates
            ],
        ),
    )


# ---------------------------------------------------------------------------
# POST /contracts/{contract_id}/sign
# ---------------------------------------------------------------------------

@router.post(
    "/{contract_id}/sign",
    response_model=ApiResponse[ContractOut],
    summary="Sign a contract",
    description=(
        "Records the caller's signature with request metadata. The contract "
        "becomes ACTIVE once both parties have signed."
    ),
)
async def sign_contract(
    contract_id: uuid.UUID,
    body: SignContractRequest,
    db: DBSession,
    current_user: CurrentUser,
    client_ip: ClientIP,
    user_agent: UserAgent,
) -> ApiResponse[ContractOut]:
    contract = await contractService.sign_contract(
        db,
        contract_id=contract_id,
        actor=current_user,
        signature=body.signature,
        ip_address=client_ip,
        user_agent=user_agent,
    )
    message = (
        "Contract signed by both parties"
        if contract.status == ContractStatus.ACTIVE
        else "Contract signed"
    )
    return ApiResponse[ContractOut](
        message=message,
        data=ContractOut.model_validate(contract),
    )


# ---------------------------------------------------------------------------
# POST /contracts/{contract_id}/payment
# ---------------------------------------------------------------------------

@router.post(
    "/{contract_id}/payment",
    response_model=ApiResponse[ContractOut],
    summary="Pay for a fully signed contract",
    description=(
        "Buyer pays the contract price into escrow. No external processor "
        "is called; a synthetic payment reference is recorded."
    ),
)
async def process_payment(
    contract_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[ContractOut]:
    contract = await contractService.process_payment(
        db, contract_id=contract_id, actor=current_user
    )
    return ApiResponse[ContractOut](
        message="Payment processed",
        data=ContractOut.model_validate(contract),
    )


# ---------------------------------------------------------------------------
# POST /contracts/{contract_id}/progress
# ---------------------------------------------------------------------------

@router.post(
    "/{contract_id}/progress",
    response_model=ApiResponse[ContractOut],
    summary="Report progress on a paid contract",
)
async def update_progress(
    contract_id: uuid.UUID,
    body: UpdateProgressRequest,
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[ContractOut]:
    contract = await contractService.update_progress(
        db,
        contract_id=contract_id,
        actor=current_user,
        progress_status=body.status,
        notes=body.notes,
        mark_as_completed=body.mark_as_completed,
    )
    return ApiResponse[ContractOut](
        message="Progress updated",
        data=ContractOut.model_validate(contract),
    )


# ---------------------------------------------------------------------------
# POST /contracts/{contract_id}/complete
# ---------------------------------------------------------------------------

@router.post(
    "/{contract_id}/complete",
    response_model=ApiResponse[ContractOut],
    summary="Complete a contract and release the payout",
    description=(
        "Student marks a paid contract completed. The linked order becomes "
        "COMPLETED and the student payout is credited to their wallet."
    ),
)
async def complete_contract(
    contract_id: uuid.UUID,
    db: DBSession,
    current_user: CurrentUser,
    body: Optional[CompleteContractRequest] = None,
) -> ApiResponse[ContractOut]:
    contract = await contractService.mark_completed(
        db,
        contract_id=contract_id,
        actor=current_user,
        completion_notes=body.completion_notes if body else None,
    )
    return ApiResponse[ContractOut](
        message="Contract completed",
        data=ContractOut.model_validate(contract),
    )
