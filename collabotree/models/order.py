"""
SQLAlchemy model for orders: the purchase record of one service by one
buyer.

``(buyer_id, service_id)`` is unique. A buyer purchases a given service at
most once, and the constraint is what settles races between concurrent
creators.
"""

import enum
import uuid
from typing import Optional

from sqlalchemy import BigInteger, Enum, ForeignKey, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


class Order(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "orders"

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
    )
    hire_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("hire_requests.id", ondelete="SET NULL"),
        nullable=True,
    )

    price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
        server_default="PENDING",
    )

    __table_args__ = (
        UniqueConstraint("buyer_id", "service_id", name="uq_orders_buyer_service"),
        Index("ix_orders_student_id", "student_id"),
        Index("ix_orders_hire_request_id", "hire_request_id"),
    )

    def is_party(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.buyer_id, self.student_id)

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, buyer_id={self.buyer_id}, "
            f"service_id={self.service_id}, status={self.status})>"
        )
