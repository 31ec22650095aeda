"""
SQLAlchemy model for chat_rooms.

A room is opened when a hire request is accepted, one per request. Message
transport lives outside this service; only the room record and its access
gate are managed here.
"""

import uuid

from sqlalchemy import ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ChatRoom(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "chat_rooms"

    hire_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("hire_requests.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ChatRoom(id={self.id}, hire_request_id={self.hire_request_id})>"
