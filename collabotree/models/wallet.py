"""
SQLAlchemy model for wallet_entries: the append-only earnings ledger.

Rows are only ever inserted and amounts are never negative. A completed
contract credits its payout once and a directly completed order credits its
price once; the unique
``contract_id`` and ``order_id`` columns make a second credit fail at the
storage layer.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDPrimaryKeyMixin, utcnow


class WalletEntry(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "wallet_entries"

    # The earner
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        unique=True,
        nullable=True,
    )
    contract_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contracts.id", ondelete="RESTRICT"),
        unique=True,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_wallet_entries_non_negative"),
        Index("ix_wallet_entries_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<WalletEntry(id={self.id}, user_id={self.user_id}, "
            f"amount_cents={self.amount_cents})>"
        )
