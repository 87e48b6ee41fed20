from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from stockledger.domain.entities import Item
from stockledger.domain.enums import ItemStatus, StockStatus


class LocationCreate(BaseModel):
    """Payload to create a location."""
    name: str = Field(..., min_length=1, description="Unique location name")
    address: Optional[str] = Field(None, description="Street address or description")


class LocationUpdate(BaseModel):
    """Partial location update."""
    name: Optional[str] = Field(None, min_length=1, description="New unique name")
    address: Optional[str] = Field(None, description="New address")
    is_active: Optional[bool] = Field(None, description="Reactivate or deactivate")


class LocationRead(BaseModel):
    """Read model for a Location."""
    id: UUID = Field(..., description="Location ID")
    name: str = Field(..., description="Location name")
    address: Optional[str] = Field(None, description="Address")
    is_active: bool = Field(..., description="False once deactivated")
    created_by: Optional[UUID] = Field(None, description="Creating user")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")

    class Config:
        from_attributes = True


class ItemCreate(BaseModel):
    """Payload to register an item. Items start with no stock."""
    name: str = Field(..., min_length=1, description="Display name")
    sku: str = Field(..., min_length=1, description="Unique stock keeping unit")
    unit: str = Field(..., min_length=1, description="Unit label (pcs, kg, box)")
    threshold: int = Field(0, ge=0, description="Low-stock threshold on total stock")
    barcode: Optional[str] = Field(None, description="Optional unique barcode")
    image_ref: Optional[str] = Field(None, description="Reference to a stored image")


class ItemUpdate(BaseModel):
    """Partial item update. Quantities are changed only through stock operations."""
    name: Optional[str] = Field(None, min_length=1)
    unit: Optional[str] = Field(None, min_length=1)
    threshold: Optional[int] = Field(None, ge=0)
    status: Optional[ItemStatus] = Field(None, description="Set inactive to soft-delete")
    image_ref: Optional[str] = Field(None)


class BarcodeAssignRequest(BaseModel):
    """Assign a barcode; omit it to generate one."""
    barcode: Optional[str] = Field(None, min_length=1, description="Barcode to assign")
    overwrite: bool = Field(False, description="Replace an existing barcode")


class LocationEntryRead(BaseModel):
    location_id: UUID = Field(..., description="Location ID")
    quantity: int = Field(..., description="Units held there")

    class Config:
        from_attributes = True


class ItemRead(BaseModel):
    """Read model for an item with its per-location stock."""
    id: UUID = Field(..., description="Item ID")
    sku: str = Field(..., description="SKU")
    barcode: Optional[str] = Field(None, description="Barcode")
    name: str = Field(..., description="Name")
    unit: str = Field(..., description="Unit label")
    threshold: int = Field(..., description="Low-stock threshold")
    status: ItemStatus = Field(..., description="active or inactive")
    image_ref: Optional[str] = Field(None, description="Image reference")
    locations: List[LocationEntryRead] = Field(default_factory=list, description="Stock per location")
    total_stock: int = Field(..., description="Sum over all locations")
    stock_status: StockStatus = Field(..., description="low when total_stock <= threshold")
    created_by: Optional[UUID] = Field(None, description="Creating user")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    class Config:
        from_attributes = True

    @classmethod
    def from_item(cls, item: Item) -> "ItemRead":
        return cls.model_validate(item)


class LocationStockRow(BaseModel):
    """One item stocked at a location."""
    item_id: UUID
    name: str
    sku: str
    unit: str
    quantity: int = Field(..., description="Units at this location")
    total_stock: int = Field(..., description="Units across all locations")


class LocationStock(BaseModel):
    location: LocationRead
    items: List[LocationStockRow] = Field(default_factory=list)
