"""
Chat Service
============

Access gate for the chat collaborator. Message transport is external; this
module only decides whether a user may use the room of a hire request.

Chat is open when:
  - the user is the buyer or the student of the hire request (or an admin),
  - the hire request is ACCEPTED,
  - a contract exists for it,
  - and both parties have signed that contract.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from collabotree.models import ChatRoom, HireRequestStatus, User
from collabotree.services import contractService, hireService


@dataclass(frozen=True)
class ChatAccess:
    hire_request_id: uuid.UUID
    allowed: bool
    reason: Optional[str] = None
    chat_room_id: Optional[uuid.UUID] = None
    contract_id: Optional[uuid.UUID] = None


async def check_chat_access(
    db: AsyncSession,
    hire_request_id: uuid.UUID,
    user: User,
) -> ChatAccess:
    """Evaluate the chat gate for ``user``.

    Raises:
        NotFoundError: The hire request does not exist.
        ForbiddenError: The user is neither a party nor an admin.
    """
    hire = await hireService.get_hire_request_for_user(db, hire_request_id, user)

    if hire.status != HireRequestStatus.ACCEPTED:
        return ChatAccess(
            hire_request_id=hire.id,
            allowed=False,
            reason=f"Hire request must be ACCEPTED (current: '{hire.status.value}').",
        )

    room = (
        await db.execute(select(ChatRoom).where(ChatRoom.hire_request_id == hire.id))
    ).scalar_one_or_none()
    room_id = room.id if room is not None else None

    contract = await contractService.get_contract_for_hire(db, hire.id)
    if contract is None:
        return ChatAccess(
            hire_request_id=hire.id,
            allowed=False,
            reason="A contract has not been created for this hire request yet.",
            chat_room_id=room_id,
        )

    if not contract.is_fully_signed:
        return ChatAccess(
            hire_request_id=hire.id,
            allowed=False,
            reason="The contract must be signed by both parties before chatting.",
            chat_room_id=room_id,
            contract_id=contract.id,
        )

    return ChatAccess(
        hire_request_id=hire.id,
        allowed=True,
        chat_room_id=room_id,
        contract_id=contract.id,
    )
