from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.db.base import Base, CreatedByMixin, TimestampMixin, UUIDPkMixin


class Location(UUIDPkMixin, CreatedByMixin, TimestampMixin, Base):
    """Storage location (warehouse, room, vehicle). Deactivated, never deleted."""
    __tablename__ = "locations"

    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Item(UUIDPkMixin, CreatedByMixin, TimestampMixin, Base):
    """Catalog item. Per-location stock lives in item_locations."""
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("threshold >= 0", name="threshold_non_negative"),
    )

    sku: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    barcode: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active", server_default="active")
    image_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    locations: Mapped[List["ItemLocation"]] = relationship(
        "ItemLocation",
        order_by="ItemLocation.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # Every UPDATE checks and bumps the version; a stale writer gets StaleDataError.
    __mapper_args__ = {"version_id_col": version}


class ItemLocation(UUIDPkMixin, Base):
    """Quantity of one item held at one location."""
    __tablename__ = "item_locations"
    __table_args__ = (
        UniqueConstraint("item_id", "location_id", name="uq_item_locations_item_location"),
        CheckConstraint("quantity >= 0", name="quantity_non_negative"),
    )

    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
