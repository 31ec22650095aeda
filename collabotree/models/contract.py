"""
SQLAlchemy models for contracts, contract_signatures and
contract_progress_updates.

A contract is drafted by the student from an accepted hire request, becomes
ACTIVE once both parties have signed, is paid into escrow by the buyer and
is completed by the student, which releases the payout. An admin ruling on
a dispute may instead cancel it and refund the escrow.

Money invariant: ``platform_fee_cents + student_payout_cents == price_cents``.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class ContractStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_SIGNATURES = "PENDING_SIGNATURES"  # one party has signed
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"  # closed by an admin dispute ruling


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"          # captured into escrow
    RELEASED = "RELEASED"  # paid out to the student's wallet
    REFUNDED = "REFUNDED"  # returned to the buyer after a dispute


class ProgressStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Contract(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "contracts"

    # One contract per hire request
    hire_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("hire_requests.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )
    # Linked at creation, inside the same transaction that locates the order
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )

    # Parties
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

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    # Money snapshot
    price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    platform_fee_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    student_payout_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Terms
    deliverables: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    timeline_days: Mapped[int] = mapped_column(Integer, nullable=False)
    additional_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Lifecycle
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus, name="contract_status"),
        nullable=False,
        default=ContractStatus.DRAFT,
        server_default="DRAFT",
    )
    is_signed_by_buyer: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_signed_by_student: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    signed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="contract_payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
        server_default="PENDING",
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    released_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Progress
    progress_status: Mapped[ProgressStatus] = mapped_column(
        Enum(ProgressStatus, name="contract_progress_status"),
        nullable=False,
        default=ProgressStatus.NOT_STARTED,
        server_default="NOT_STARTED",
    )
    progress_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completion_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "platform_fee_cents + student_payout_cents = price_cents",
            name="ck_contracts_fee_split",
        ),
        CheckConstraint("timeline_days > 0", name="ck_contracts_timeline_positive"),
        Index("ix_contracts_buyer_id", "buyer_id"),
        Index("ix_contracts_student_id", "student_id"),
    )

    def is_party(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.buyer_id, self.student_id)

    @property
    def is_fully_signed(self) -> bool:
        return self.is_signed_by_buyer and self.is_signed_by_student

    def __repr__(self) -> str:
        return (
            f"<Contract(id={self.id}, status={self.status}, "
            f"payment={self.payment_status}, progress={self.progress_status})>"
        )


class ContractSignature(UUIDPrimaryKeyMixin, Base):
    """One row per signer per contract. Never updated."""

    __tablename__ = "contract_signatures"

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    signature: Mapped[str] = mapped_column(Text, nullable=False)

    # Request metadata captured at signing time
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    signed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("contract_id", "user_id", name="uq_contract_signatures_contract_user"),
    )

    def __repr__(self) -> str:
        return (
            f"<ContractSignature(contract_id={self.contract_id}, "
            f"user_id={self.user_id}, signed_at={self.signed_at})>"
        )


class ContractProgressUpdate(UUIDPrimaryKeyMixin, Base):
    """Append-only log of the student's progress reports."""

    __tablename__ = "contract_progress_updates"

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[ProgressStatus] = mapped_column(
        Enum(ProgressStatus, name="contract_progress_status"),
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_contract_progress_updates_contract", "contract_id", "created_at"),
    )
