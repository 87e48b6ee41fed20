from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base, CreatedByMixin, TimestampMixin, UTCDateTime, UUIDPkMixin


class RepairTicket(UUIDPkMixin, CreatedByMixin, TimestampMixin, Base):
    """Quantity of an item currently (or formerly) with a repair vendor."""
    __tablename__ = "repair_tickets"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="quantity_positive"),
    )

    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    vendor: Mapped[str] = mapped_column(Text, nullable=False)
    serial: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photo_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="sent", index=True)
    sent_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    returned_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    return_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True
    )
