from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.db.models.repairs import RepairTicket as RepairTicketRow
from stockledger.domain.entities import RepairTicket
from stockledger.domain.enums import RepairStatus
from stockledger.domain.errors import NotFound
from .base import BaseRepository


class RepairTicketRepository(BaseRepository):
    """Repository for repair tickets."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get(self, ticket_id: UUID) -> Optional[RepairTicket]:
        row = await self.get_row(RepairTicketRow, ticket_id)
        return RepairTicket.model_validate(row) if row is not None else None

    async def add(self, ticket: RepairTicket) -> None:
        self.session.add(
            RepairTicketRow(
                id=ticket.id,
                item_id=ticket.item_id,
                location_id=ticket.location_id,
                quantity=ticket.quantity,
                vendor=ticket.vendor,
                serial=ticket.serial,
                note=ticket.note,
                photo_ref=ticket.photo_ref,
                status=ticket.status.value,
                sent_at=ticket.sent_at,
                returned_at=ticket.returned_at,
                return_location_id=ticket.return_location_id,
                created_by=ticket.created_by,
                created_at=ticket.created_at,
                updated_at=ticket.updated_at,
            )
        )

    async def save(self, ticket: RepairTicket) -> None:
        row = await self.get_row(RepairTicketRow, ticket.id)
        if row is None:
            raise NotFound("Repair ticket not found", {"ticket_id": str(ticket.id)})
        row.status = ticket.status.value
        row.returned_at = ticket.returned_at
        row.return_location_id = ticket.return_location_id
        row.note = ticket.note
        row.updated_at = ticket.updated_at

    async def list(self, *, status: Optional[RepairStatus] = None) -> List[RepairTicket]:
        """Tickets, newest first, optionally filtered by status."""
        stmt = select(RepairTicketRow)
        if status is not None:
            stmt = stmt.where(RepairTicketRow.status == status.value)
        stmt = stmt.order_by(RepairTicketRow.sent_at.desc())
        return [RepairTicket.model_validate(r) for r in await self.scalars(stmt)]

    async def count(self, *, status: Optional[RepairStatus] = None) -> int:
        stmt = select(func.count()).select_from(RepairTicketRow)
        if status is not None:
            stmt = stmt.where(RepairTicketRow.status == status.value)
        return int(await self.scalar_one(stmt))
