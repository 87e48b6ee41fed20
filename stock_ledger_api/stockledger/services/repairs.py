"""
Repair tracking on top of the ledger.

Sending stock to a vendor debits it at once and opens a ``sent`` ticket
paired with a REPAIR_OUT transaction. Returning it credits the chosen
location and closes the ticket with a REPAIR_IN transaction. A ticket can
also be written off as ``lost``, which changes no quantity.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from stockledger.domain.effects import apply_effects
from stockledger.domain.entities import (
    Item,
    OperationMetadata,
    RepairInDetail,
    RepairOutDetail,
    RepairTicket,
    Transaction,
)
from stockledger.domain.enums import RepairStatus, TransactionStatus
from stockledger.domain.errors import AlreadyProcessed, InvalidArgument, NotFound
from stockledger.repositories.unit_of_work import UnitOfWork
from .base import BaseService
from .ledger import StockLedger, check_quantity, require_item, require_location
from .notifications import Audience

logger = logging.getLogger(__name__)


async def _require_open_ticket(uow: UnitOfWork, ticket_id: UUID) -> RepairTicket:
    ticket = await uow.repairs.get(ticket_id)
    if ticket is None:
        raise NotFound("Repair ticket not found or already processed", {"ticket_id": str(ticket_id)})
    if ticket.status is not RepairStatus.SENT:
        raise AlreadyProcessed(
            ticket.id, ticket.status.value, "Repair ticket not found or already processed"
        )
    return ticket


class RepairService(BaseService):
    """Two-phase repair flow. Shares the ledger's store, item locks and notifier."""

    def __init__(self, ledger: StockLedger) -> None:
        super().__init__(ledger.uow_factory, locks=ledger.locks, max_retries=ledger.max_retries)
        self.ledger = ledger

    # PUBLIC_INTERFACE
    async def send_for_repair(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: int,
        vendor: str,
        serial: Optional[str] = None,
        metadata: Optional[OperationMetadata] = None,
    ) -> RepairTicket:
        """
        Debit ``quantity`` at ``location_id`` and open a repair ticket.

        Raises:
            InvalidArgument: bad quantity or empty vendor.
            UnknownItem / UnknownLocation: a reference does not resolve.
            InsufficientStock: the location holds less than ``quantity``.
        """
        check_quantity(quantity)
        if not vendor or not vendor.strip():
            raise InvalidArgument("Vendor is required")
        meta = metadata or OperationMetadata()

        async def unit(uow: UnitOfWork) -> Tuple[Item, RepairTicket]:
            item = await require_item(uow, item_id, for_update=True)
            await require_location(uow, location_id)
            now = self.ledger.clock()
            ticket = RepairTicket(
                item_id=item_id,
                location_id=location_id,
                quantity=quantity,
                vendor=vendor.strip(),
                serial=serial,
                note=meta.note,
                photo_ref=meta.photo_ref,
                sent_at=now,
                created_by=meta.actor_id,
                created_at=now,
                updated_at=now,
            )
            txn = Transaction(
                item_id=item_id,
                quantity=quantity,
                detail=RepairOutDetail(
                    from_location_id=location_id,
                    vendor=ticket.vendor,
                    serial=serial,
                    note=meta.note,
                    photo_ref=meta.photo_ref,
                    repair_ticket_id=ticket.id,
                ),
                status=TransactionStatus.APPROVED,
                created_by=meta.actor_id,
                created_at=now,
            )
            apply_effects(item, txn)
            await uow.items.save(item)
            await uow.repairs.add(ticket)
            await uow.transactions.add(txn)
            return item, ticket

        item, ticket = await self.run_exclusive(item_id, unit)
        logger.info("Sent %d of item %s to %s (ticket=%s)", quantity, item_id, ticket.vendor, ticket.id)
        await self.ledger.notifier.notify(
            Audience.all_users(),
            "Item Sent for Repair",
            f"{quantity} {item.unit} of {item.name} were sent to {ticket.vendor}.",
            {"item_id": str(item.id), "repair_ticket_id": str(ticket.id)},
        )
        await self.ledger.check_low_stock(item)
        return ticket

    # PUBLIC_INTERFACE
    async def return_from_repair(
        self,
        ticket_id: UUID,
        location_id: UUID,
        metadata: Optional[OperationMetadata] = None,
    ) -> RepairTicket:
        """
        Credit a ticket's quantity at ``location_id`` and mark it returned.

        Raises:
            NotFound: the ticket does not exist or is no longer ``sent``.
            UnknownLocation: ``location_id`` does not resolve.
        """
        meta = metadata or OperationMetadata()
        peek = await self.read(lambda uow: _require_open_ticket(uow, ticket_id))

        async def unit(uow: UnitOfWork) -> Tuple[Item, RepairTicket]:
            item = await require_item(uow, peek.item_id, for_update=True)
            ticket = await _require_open_ticket(uow, ticket_id)
            await require_location(uow, location_id)
            now = self.ledger.clock()
            txn = Transaction(
                item_id=ticket.item_id,
                quantity=ticket.quantity,
                detail=RepairInDetail(
                    to_location_id=location_id, note=meta.note, repair_ticket_id=ticket.id
                ),
                status=TransactionStatus.APPROVED,
                created_by=meta.actor_id,
                created_at=now,
            )
            apply_effects(item, txn)
            ticket.status = RepairStatus.RETURNED
            ticket.returned_at = now
            ticket.return_location_id = location_id
            ticket.updated_at = now
            if meta.note:
                ticket.note = meta.note
            await uow.items.save(item)
            await uow.repairs.save(ticket)
            await uow.transactions.add(txn)
            return item, ticket

        item, ticket = await self.run_exclusive(peek.item_id, unit)
        logger.info("Repair ticket %s returned to %s", ticket.id, location_id)
        await self.ledger.notifier.notify(
            Audience.all_users(),
            "Repair Completed",
            f"{ticket.quantity} {item.unit} of {item.name} returned from repair.",
            {"item_id": str(item.id), "repair_ticket_id": str(ticket.id)},
        )
        return ticket

    # PUBLIC_INTERFACE
    async def mark_lost(self, ticket_id: UUID, actor_id: Optional[UUID] = None) -> RepairTicket:
        """Close a ``sent`` ticket as lost. The debited stock stays written off."""
        peek = await self.read(lambda uow: _require_open_ticket(uow, ticket_id))

        async def unit(uow: UnitOfWork) -> RepairTicket:
            ticket = await _require_open_ticket(uow, ticket_id)
            ticket.status = RepairStatus.LOST
            ticket.updated_at = self.ledger.clock()
            await uow.repairs.save(ticket)
            return ticket

        ticket = await self.run_exclusive(peek.item_id, unit)
        logger.info("Repair ticket %s marked lost by %s", ticket.id, actor_id)
        return ticket

    # PUBLIC_INTERFACE
    async def get_ticket(self, ticket_id: UUID) -> RepairTicket:
        async def unit(uow: UnitOfWork) -> RepairTicket:
            ticket = await uow.repairs.get(ticket_id)
            if ticket is None:
                raise NotFound("Repair ticket not found", {"ticket_id": str(ticket_id)})
            return ticket

        return await self.read(unit)

    # PUBLIC_INTERFACE
    async def list_tickets(self, status: Optional[RepairStatus] = None) -> List[RepairTicket]:
        """Repair tickets, newest first."""
        return await self.read(lambda uow: uow.repairs.list(status=status))
