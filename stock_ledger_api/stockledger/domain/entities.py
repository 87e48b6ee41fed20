"""
Domain entities for the stock ledger.

These pydantic models are what services validate and mutate; repositories
translate them to and from storage rows. Transactions are frozen: the only
change a transaction ever sees is the pending -> approved|rejected decision,
which produces a new copy through Transaction.decide().
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .enums import (
    DisposalReason,
    ItemStatus,
    RepairStatus,
    StockStatus,
    TransactionKind,
    TransactionStatus,
)
from .errors import AlreadyProcessed, InsufficientStock


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Read a naive datetime as UTC; convert an aware one to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LocationEntry(BaseModel):
    """One (location, quantity) pair inside an item's location map."""
    location_id: UUID = Field(..., description="Location holding the stock")
    quantity: int = Field(0, ge=0, description="Units held at the location")

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)


class Location(BaseModel):
    """Named physical or logical place quantities are keyed against."""
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    is_active: bool = True
    created_by: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(from_attributes=True)


class Item(BaseModel):
    """
    Catalog item with its per-location stock.

    Entries keep insertion order and there is at most one entry per location.
    ``version`` mirrors the stored row version and is used to detect
    concurrent writers.
    """
    id: UUID = Field(default_factory=uuid4)
    sku: str = Field(..., min_length=1)
    barcode: Optional[str] = None
    name: str = Field(..., min_length=1)
    unit: str = Field(..., min_length=1)
    threshold: int = Field(0, ge=0)
    status: ItemStatus = ItemStatus.ACTIVE
    image_ref: Optional[str] = None
    locations: List[LocationEntry] = Field(default_factory=list)
    created_by: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 1

    model_config = ConfigDict(from_attributes=True)

    def entry_for(self, location_id: UUID) -> Optional[LocationEntry]:
        for entry in self.locations:
            if entry.location_id == location_id:
                return entry
        return None

    def quantity_at(self, location_id: UUID) -> int:
        entry = self.entry_for(location_id)
        return entry.quantity if entry else 0

    @property
    def total_stock(self) -> int:
        return sum(entry.quantity for entry in self.locations)

    @property
    def stock_status(self) -> StockStatus:
        return StockStatus.LOW if self.total_stock <= self.threshold else StockStatus.SUFFICIENT

    def ensure_available(self, location_id: UUID, quantity: int) -> LocationEntry:
        """Return the location's entry, or raise InsufficientStock unless it holds at least ``quantity``."""
        entry = self.entry_for(location_id)
        available = entry.quantity if entry else 0
        if entry is None or available < quantity:
            raise InsufficientStock(self.id, location_id, requested=quantity, available=available)
        return entry

    def credit(self, location_id: UUID, quantity: int) -> None:
        entry = self.entry_for(location_id)
        if entry is None:
            self.locations.append(LocationEntry(location_id=location_id, quantity=quantity))
        else:
            entry.quantity += quantity

    def debit(self, location_id: UUID, quantity: int) -> None:
        entry = self.ensure_available(location_id, quantity)
        entry.quantity -= quantity


class OperationMetadata(BaseModel):
    """Caller-supplied context attached to a ledger operation."""
    actor_id: Optional[UUID] = Field(None, description="User performing the operation")
    note: Optional[str] = Field(None, description="Free-form note")
    photo_ref: Optional[str] = Field(None, description="Reference to an attached photo blob")


# Transaction detail: one variant per kind, each with only its own fields.


class AddDetail(BaseModel):
    kind: Literal[TransactionKind.ADD] = TransactionKind.ADD
    to_location_id: UUID
    note: Optional[str] = None
    photo_ref: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class TransferDetail(BaseModel):
    kind: Literal[TransactionKind.TRANSFER] = TransactionKind.TRANSFER
    from_location_id: UUID
    to_location_id: UUID
    note: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class RepairOutDetail(BaseModel):
    kind: Literal[TransactionKind.REPAIR_OUT] = TransactionKind.REPAIR_OUT
    from_location_id: UUID
    vendor: str
    serial: Optional[str] = None
    note: Optional[str] = None
    photo_ref: Optional[str] = None
    repair_ticket_id: Optional[UUID] = None

    model_config = ConfigDict(frozen=True)


class RepairInDetail(BaseModel):
    kind: Literal[TransactionKind.REPAIR_IN] = TransactionKind.REPAIR_IN
    to_location_id: UUID
    note: Optional[str] = None
    repair_ticket_id: Optional[UUID] = None

    model_config = ConfigDict(frozen=True)


class DisposeDetail(BaseModel):
    kind: Literal[TransactionKind.DISPOSE] = TransactionKind.DISPOSE
    from_location_id: UUID
    reason: DisposalReason
    note: Optional[str] = None
    photo_ref: Optional[str] = None

    model_config = ConfigDict(frozen=True)


TransactionDetail = Annotated[
    Union[AddDetail, TransferDetail, RepairOutDetail, RepairInDetail, DisposeDetail],
    Field(discriminator="kind"),
]


class Transaction(BaseModel):
    """Immutable record of one ledger operation."""
    id: UUID = Field(default_factory=uuid4)
    item_id: UUID
    quantity: int = Field(..., gt=0)
    detail: TransactionDetail
    status: TransactionStatus = TransactionStatus.APPROVED
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    created_by: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @computed_field  # type: ignore[misc]
    @property
    def kind(self) -> TransactionKind:
        return self.detail.kind

    @property
    def from_location_id(self) -> Optional[UUID]:
        return getattr(self.detail, "from_location_id", None)

    @property
    def to_location_id(self) -> Optional[UUID]:
        return getattr(self.detail, "to_location_id", None)

    @property
    def is_pending(self) -> bool:
        return self.status is TransactionStatus.PENDING

    @property
    def effective_at(self) -> datetime:
        """Moment the quantity effect took place."""
        return self.approved_at or self.created_at

    def decide(
        self,
        approve: bool,
        approver_id: Optional[UUID],
        at: datetime,
        note: Optional[str] = None,
    ) -> "Transaction":
        """
        Return the approved or rejected copy of a pending transaction.

        Raises:
            AlreadyProcessed: the transaction is already in a terminal state.
        """
        if not self.is_pending:
            raise AlreadyProcessed(self.id, self.status.value)
        detail = self.detail
        if note and hasattr(detail, "note"):
            detail = detail.model_copy(update={"note": note})
        return self.model_copy(
            update={
                "status": TransactionStatus.APPROVED if approve else TransactionStatus.REJECTED,
                "approved_by": approver_id,
                "approved_at": at,
                "detail": detail,
            }
        )


class RepairTicket(BaseModel):
    """Quantity removed from a location while it is with a repair vendor."""
    id: UUID = Field(default_factory=uuid4)
    item_id: UUID
    location_id: UUID
    quantity: int = Field(..., ge=1)
    vendor: str = Field(..., min_length=1)
    serial: Optional[str] = None
    note: Optional[str] = None
    photo_ref: Optional[str] = None
    status: RepairStatus = RepairStatus.SENT
    sent_at: datetime = Field(default_factory=utcnow)
    returned_at: Optional[datetime] = None
    return_location_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(from_attributes=True)
