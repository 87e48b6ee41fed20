"""
Typed failures raised by the ledger core.

Every error carries a machine-readable ``code`` and a ``details`` dict of
JSON-safe values so request handlers can map failures without parsing
messages. Storage driver errors are never exposed; they are translated to
DependencyUnavailable at the repository boundary.

    LedgerError
    +-- NotFound
    |   +-- UnknownItem
    |   +-- UnknownLocation
    |   +-- AlreadyProcessed
    +-- InsufficientStock
    +-- InvalidArgument
    +-- Conflict
    +-- ConcurrentModification
    +-- DependencyUnavailable

AlreadyProcessed is a NotFound: a workflow entity that is no longer pending is
reported the same way as a missing one, while still keeping its own code.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID


class LedgerError(Exception):
    """Base class for all ledger failures."""

    code: str = "ledger_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFound(LedgerError):
    code = "not_found"


class UnknownItem(NotFound):
    code = "unknown_item"

    def __init__(self, item_id: UUID) -> None:
        super().__init__(f"Item {item_id} not found", {"item_id": str(item_id)})
        self.item_id = item_id


class UnknownLocation(NotFound):
    code = "unknown_location"

    def __init__(self, location_id: UUID) -> None:
        super().__init__(f"Location {location_id} not found", {"location_id": str(location_id)})
        self.location_id = location_id


class AlreadyProcessed(NotFound):
    code = "already_processed"

    def __init__(self, entity_id: UUID, status: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"{entity_id} was already processed (status={status})",
            {"id": str(entity_id), "status": status},
        )
        self.entity_id = entity_id
        self.status = status


class InsufficientStock(LedgerError):
    code = "insufficient_stock"

    def __init__(self, item_id: UUID, location_id: UUID, requested: int, available: int) -> None:
        super().__init__(
            "Insufficient stock at location",
            {
                "item_id": str(item_id),
                "location_id": str(location_id),
                "requested": requested,
                "available": available,
            },
        )
        self.requested = requested
        self.available = available


class InvalidArgument(LedgerError):
    code = "invalid_argument"


class Conflict(LedgerError):
    code = "conflict"


class ConcurrentModification(LedgerError):
    code = "concurrent_modification"


class DependencyUnavailable(LedgerError):
    code = "dependency_unavailable"
