"""
Pydantic v2 schemas for the Wallet API.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class WalletBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    balance_cents: int
    entry_count: int


class WalletEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    amount_cents: int
    reason: str
    contract_id: Optional[uuid.UUID] = None
    order_id: Optional[uuid.UUID] = None
    created_at: datetime
