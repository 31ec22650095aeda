"""
Wallet API Routes
=================

  GET /api/v1/wallet/balance   -- Sum of my ledger entries
  GET /api/v1/wallet/entries   -- My ledger entries, newest first
"""

from __future__ import annotations

from fastapi import APIRouter

from collabotree.api.deps import CurrentUser, DBSession, Pagination
from collabotree.api.schemas.common import ApiResponse, PaginatedResponse, PaginationMeta
from collabotree.api.schemas.wallet import WalletBalanceOut, WalletEntryOut
from collabotree.services import walletService

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get(
    "/balance",
    response_model=ApiResponse[WalletBalanceOut],
    summary="Get my wallet balance",
)
async def get_balance(
    db: DBSession,
    current_user: CurrentUser,
) -> ApiResponse[WalletBalanceOut]:
    balance = await walletService.get_balance(db, current_user.id)
    return ApiResponse[WalletBalanceOut](data=WalletBalanceOut.model_validate(balance))


@router.get(
    "/entries",
    response_model=PaginatedResponse[WalletEntryOut],
    summary="List my wallet entries",
)
async def list_entries(
    db: DBSession,
    current_user: CurrentUser,
    pagination: Pagination,
) -> PaginatedResponse[WalletEntryOut]:
    result = await walletService.list_entries(
        db, current_user.id, page=pagination.page, page_size=pagination.page_size
    )
    return PaginatedResponse[WalletEntryOut](
        data=[WalletEntryOut.model_validate(e) for e in result.items],
        meta=PaginationMeta.from_result(result),
    )
