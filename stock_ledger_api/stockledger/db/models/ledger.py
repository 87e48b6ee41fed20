from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base, CreatedByMixin, TimestampMixin, UTCDateTime, UUIDPkMixin


class StockTransaction(UUIDPkMixin, CreatedByMixin, TimestampMixin, Base):
    """
    Stored form of a ledger transaction.

    Kind-specific fields are flat nullable columns here; the repository maps
    them to the per-kind detail variant of the domain model.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="quantity_positive"),
        Index("ix_stock_transactions_kind_status", "kind", "status"),
    )

    kind: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    from_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True
    )
    to_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photo_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    vendor: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # REPAIR_OUT
    serial: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # REPAIR_OUT
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # DISPOSE
    repair_ticket_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="approved")
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
