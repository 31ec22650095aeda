"""
SQLAlchemy model for disputes raised by a party on a paid order.

Raising a dispute moves the order to DISPUTED; an admin reviews it and
closes it as RESOLVED or REJECTED, settling the order as COMPLETED or
CANCELLED. A user raises at most one dispute per order.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from .order import OrderStatus


class DisputeStatus(str, enum.Enum):
    OPEN = "OPEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"


class Dispute(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "disputes"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
    )
    raised_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[DisputeStatus] = mapped_column(
        Enum(DisputeStatus, name="dispute_status"),
        nullable=False,
        default=DisputeStatus.OPEN,
        server_default="OPEN",
    )

    # Filled in by the admin ruling
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_outcome: Mapped[Optional[OrderStatus]] = mapped_column(
        Enum(OrderStatus, name="order_status"),
        nullable=True,
    )
    resolved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("order_id", "raised_by_id", name="uq_disputes_order_raised_by"),
        Index("ix_disputes_status", "status"),
    )

    @property
    def is_closed(self) -> bool:
        return self.status in (DisputeStatus.RESOLVED, DisputeStatus.REJECTED)

    def __repr__(self) -> str:
        return (
            f"<Dispute(id={self.id}, order_id={self.order_id}, "
            f"status={self.status})>"
        )
