"""
SQLAlchemy model for in-app notifications.

Rows are written after the owning business transaction commits (see
``services.notificationService``), so a failure here never undoes a state
change.
"""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, Text, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class NotificationType(str, enum.Enum):
    """Closed set of notification tags emitted by the marketplace core."""
    HIRE_REQUESTED = "HIRE_REQUESTED"
    HIRE_ACCEPTED = "HIRE_ACCEPTED"
    HIRE_REJECTED = "HIRE_REJECTED"
    HIRE_CANCELLED = "HIRE_CANCELLED"
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    CONTRACT_CREATED = "CONTRACT_CREATED"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"
    CONTRACT_ACTIVATED = "CONTRACT_ACTIVATED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PROGRESS_UPDATED = "PROGRESS_UPDATED"
    CONTRACT_COMPLETED = "CONTRACT_COMPLETED"
    REVIEW_RECEIVED = "REVIEW_RECEIVED"
    DISPUTE_RAISED = "DISPUTE_RAISED"
    DISPUTE_UPDATED = "DISPUTE_UPDATED"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"


class Notification(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    __table_args__ = (
        Index("ix_notifications_user_unread", "user_id", "read"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, user_id={self.user_id}, "
            f"type={self.notification_type}, read={self.read})>"
        )
