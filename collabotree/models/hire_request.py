"""
SQLAlchemy model for hire_requests: a buyer's request to engage a student
for one of their services.

At most one open (PENDING or ACCEPTED) request may exist per
(buyer, service) and per (buyer, student). Both rules are backed by partial
unique indexes so concurrent creators cannot both succeed.
"""

import enum
import uuid
from typing import Optional

from sqlalchemy import BigInteger, Enum, ForeignKey, Index, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class HireRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


OPEN_HIRE_STATUSES: frozenset[HireRequestStatus] = frozenset({
    HireRequestStatus.PENDING,
    HireRequestStatus.ACCEPTED,
})

_OPEN_PREDICATE = "status IN ('PENDING', 'ACCEPTED')"


class HireRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "hire_requests"

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    # Owner of the service at request time
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

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Buyer's price override; NULL means "use the service price"
    price_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    status: Mapped[HireRequestStatus] = mapped_column(
        Enum(HireRequestStatus, name="hire_request_status"),
        nullable=False,
        default=HireRequestStatus.PENDING,
        server_default="PENDING",
    )

    __table_args__ = (
        Index("ix_hire_requests_buyer_id", "buyer_id"),
        Index("ix_hire_requests_student_id", "student_id"),
        Index(
            "uq_hire_requests_open_buyer_service",
            "buyer_id",
            "service_id",
            unique=True,
            postgresql_where=text(_OPEN_PREDICATE),
            sqlite_where=text(_OPEN_PREDICATE),
        ),
        Index(
            "uq_hire_requests_open_buyer_student",
            "buyer_id",
            "student_id",
            unique=True,
            postgresql_where=text(_OPEN_PREDICATE),
            sqlite_where=text(_OPEN_PREDICATE),
        ),
    )

    def is_party(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.buyer_id, self.student_id)

    def __repr__(self) -> str:
        return (
            f"<HireRequest(id={self.id}, buyer_id={self.buyer_id}, "
            f"student_id={self.student_id}, status={self.status})>"
        )
