from __future__ import annotations

from enum import Enum


class TransactionKind(str, Enum):
    """Kind of quantity-affecting ledger operation."""
    ADD = "ADD"
    TRANSFER = "TRANSFER"
    REPAIR_OUT = "REPAIR_OUT"
    REPAIR_IN = "REPAIR_IN"
    DISPOSE = "DISPOSE"


class TransactionStatus(str, Enum):
    """Workflow status of a transaction. approved/rejected are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DisposalReason(str, Enum):
    BROKEN = "Broken"
    EXPIRED = "Expired"
    OBSOLETE = "Obsolete"


class ItemStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class RepairStatus(str, Enum):
    SENT = "sent"
    RETURNED = "returned"
    LOST = "lost"


class StockStatus(str, Enum):
    LOW = "low"
    SUFFICIENT = "sufficient"
