"""
CollaboTree SQLAlchemy Models
=============================

Central import point for all ORM models. Import ``Base`` from here for
Alembic auto-generation and for the ``create_all`` convenience in tests.

Usage::

    from collabotree.models import Base, User, HireRequest, Contract
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Accounts & listings --
from .user import User, UserRole
from .service import Service

# -- Hire negotiation --
from .hire_request import OPEN_HIRE_STATUSES, HireRequest, HireRequestStatus
from .chat import ChatRoom

# -- Orders & ledger --
from .order import Order, OrderStatus
from .wallet import WalletEntry

# -- Contracts --
from .contract import (
    Contract,
    ContractProgressUpdate,
    ContractSignature,
    ContractStatus,
    PaymentStatus,
    ProgressStatus,
)

# -- Disputes, reviews & notifications --
from .dispute import Dispute, DisputeStatus
from .review import Review
from .notification import Notification, NotificationType

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
    "UserRole",
    "Service",
    "OPEN_HIRE_STATUSES",
    "HireRequest",
    "HireRequestStatus",
    "ChatRoom",
    "Order",
    "OrderStatus",
    "WalletEntry",
    "Contract",
    "ContractProgressUpdate",
    "ContractSignature",
    "ContractStatus",
    "PaymentStatus",
    "ProgressStatus",
    "Dispute",
    "DisputeStatus",
    "Review",
    "Notification",
    "NotificationType",
]
