from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from stockledger.domain.entities import Transaction
from stockledger.domain.enums import DisposalReason, RepairStatus, TransactionKind, TransactionStatus
from .catalog import ItemRead


class AddStockRequest(BaseModel):
    """Add stock at a location."""
    item_id: UUID = Field(..., description="Item to credit")
    location_id: UUID = Field(..., description="Receiving location")
    quantity: int = Field(..., gt=0, description="Units to add")
    note: Optional[str] = Field(None, description="Free-form note")
    photo_ref: Optional[str] = Field(None, description="Reference to an uploaded photo")


class TransferStockRequest(BaseModel):
    """Move stock between locations. Applied at once for privileged users, otherwise queued."""
    item_id: UUID = Field(..., description="Item to move")
    from_location_id: UUID = Field(..., description="Source location")
    to_location_id: UUID = Field(..., description="Destination location")
    quantity: int = Field(..., gt=0, description="Units to move")
    note: Optional[str] = Field(None, description="Free-form note")


class ReviewRequest(BaseModel):
    """Decision on a pending transfer."""
    approve: bool = Field(..., description="True to approve, false to reject")
    note: Optional[str] = Field(None, description="Reviewer note")


class DisposalDecisionRequest(BaseModel):
    """Decision on a pending disposal."""
    approve: bool = Field(..., description="True to approve, false to reject")


class DisposalRequest(BaseModel):
    """Request disposal of stock. Always requires approval."""
    item_id: UUID = Field(..., description="Item to dispose")
    location_id: UUID = Field(..., description="Location holding the stock")
    quantity: int = Field(..., gt=0, description="Units to dispose")
    reason: DisposalReason = Field(..., description="Broken, Expired or Obsolete")
    note: Optional[str] = Field(None, description="Free-form note")
    photo_ref: Optional[str] = Field(None, description="Reference to an uploaded photo")


class RepairSendRequest(BaseModel):
    """Send stock to a repair vendor."""
    item_id: UUID = Field(..., description="Item sent")
    location_id: UUID = Field(..., description="Location the stock leaves")
    quantity: int = Field(..., gt=0, description="Units sent")
    vendor: str = Field(..., min_length=1, description="Repair vendor")
    serial: Optional[str] = Field(None, description="Serial number, if tracked")
    note: Optional[str] = Field(None, description="Free-form note")
    photo_ref: Optional[str] = Field(None, description="Reference to an uploaded photo")


class RepairReturnRequest(BaseModel):
    """Bring repaired stock back."""
    location_id: UUID = Field(..., description="Location receiving the stock")
    note: Optional[str] = Field(None, description="Free-form note")


class TransactionRead(BaseModel):
    """Flat read model of a ledger transaction; fields not used by a kind are null."""
    id: UUID = Field(..., description="Transaction ID")
    kind: TransactionKind = Field(..., description="ADD, TRANSFER, REPAIR_OUT, REPAIR_IN or DISPOSE")
    item_id: UUID = Field(..., description="Item")
    quantity: int = Field(..., description="Units")
    status: TransactionStatus = Field(..., description="pending, approved or rejected")
    from_location_id: Optional[UUID] = Field(None, description="Source location")
    to_location_id: Optional[UUID] = Field(None, description="Destination location")
    note: Optional[str] = Field(None)
    photo_ref: Optional[str] = Field(None)
    vendor: Optional[str] = Field(None, description="Repair vendor (REPAIR_OUT)")
    serial: Optional[str] = Field(None, description="Serial number (REPAIR_OUT)")
    reason: Optional[DisposalReason] = Field(None, description="Disposal reason (DISPOSE)")
    repair_ticket_id: Optional[UUID] = Field(None, description="Paired repair ticket")
    approved_by: Optional[UUID] = Field(None, description="Approver or rejecter")
    approved_at: Optional[datetime] = Field(None, description="Decision timestamp")
    created_by: Optional[UUID] = Field(None, description="Requesting user")
    created_at: datetime = Field(..., description="Created timestamp")

    @classmethod
    def from_transaction(cls, txn: Transaction) -> "TransactionRead":
        fields: Dict[str, Any] = txn.model_dump(exclude={"detail"})
        fields.update(txn.detail.model_dump(exclude={"kind"}))
        return cls(**fields)


class TransactionPageRead(BaseModel):
    items: List[TransactionRead] = Field(default_factory=list)
    total: int = Field(..., description="Matching transactions")
    page: int = Field(..., description="1-based page number")
    limit: int = Field(..., description="Page size")
    pages: int = Field(..., description="Number of pages")


class RepairTicketRead(BaseModel):
    """Read model for a repair ticket."""
    id: UUID = Field(..., description="Ticket ID")
    item_id: UUID = Field(..., description="Item")
    location_id: UUID = Field(..., description="Location the stock left")
    quantity: int = Field(..., description="Units with the vendor")
    vendor: str = Field(..., description="Repair vendor")
    serial: Optional[str] = Field(None)
    note: Optional[str] = Field(None)
    photo_ref: Optional[str] = Field(None)
    status: RepairStatus = Field(..., description="sent, returned or lost")
    sent_at: datetime = Field(..., description="When the stock left")
    returned_at: Optional[datetime] = Field(None, description="When it came back")
    return_location_id: Optional[UUID] = Field(None, description="Where it came back to")
    created_by: Optional[UUID] = Field(None)
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)

    class Config:
        from_attributes = True


class DashboardSummaryRead(BaseModel):
    total_items: int = Field(..., description="Active items")
    total_stock: int = Field(..., description="Units across all active items")
    low_stock_count: int = Field(..., description="Active items at or below threshold")
    pending_repairs: int = Field(..., description="Tickets still with a vendor")
    pending_disposals: int = Field(..., description="Disposals awaiting approval")
    pending_transfers: int = Field(..., description="Transfers awaiting approval")


class DashboardRead(BaseModel):
    summary: DashboardSummaryRead
    low_stock_items: List[ItemRead] = Field(default_factory=list)
    recent_transactions: List[TransactionRead] = Field(default_factory=list)


class LocationDrift(BaseModel):
    location_id: UUID
    stored: int
    replayed: int


class ItemAuditRead(BaseModel):
    """Stored quantities compared with the replayed transaction log."""
    item_id: UUID
    consistent: bool
    transactions: int = Field(..., description="Transactions recorded for the item")
    drift: List[LocationDrift] = Field(default_factory=list)
