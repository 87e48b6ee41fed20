from __future__ import annotations

from uuid import uuid4

import pytest

from conftest import run, seed_widget
from stockledger.domain.entities import OperationMetadata
from stockledger.domain.enums import RepairStatus, TransactionKind, TransactionStatus
from stockledger.domain.errors import AlreadyProcessed, InsufficientStock, InvalidArgument, NotFound


def test_send_and_return_moves_stock_through_the_vendor(services, store, recorder):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=10)
        ticket = await services.repairs.send_for_repair(widget.id, loc_a.id, 3, vendor="Acme", serial="SN-1")
        while_away = await services.catalog.get_item(widget.id)
        returned = await services.repairs.return_from_repair(
            ticket.id, loc_b.id, OperationMetadata(note="fixed")
        )
        final = await services.catalog.get_item(widget.id)
        return ticket, while_away, returned, final, loc_a, loc_b

    ticket, while_away, returned, final, loc_a, loc_b = run(scenario())
    assert ticket.status is RepairStatus.SENT
    assert ticket.vendor == "Acme"
    assert while_away.quantity_at(loc_a.id) == 7
    assert while_away.entry_for(loc_b.id) is None

    assert returned.status is RepairStatus.RETURNED
    assert returned.returned_at is not None
    assert returned.return_location_id == loc_b.id
    assert returned.note == "fixed"
    assert (final.quantity_at(loc_a.id), final.quantity_at(loc_b.id)) == (7, 3)

    repair_txns = [t for t in store.transactions.values() if t.detail.kind is not TransactionKind.ADD]
    assert sorted(t.kind.value for t in repair_txns) == ["REPAIR_IN", "REPAIR_OUT"]
    assert all(t.status is TransactionStatus.APPROVED for t in repair_txns)
    assert all(t.detail.repair_ticket_id == ticket.id for t in repair_txns)
    assert "Item Sent for Repair" in recorder.titles()
    assert "Repair Completed" in recorder.titles()


def test_send_requires_stock_and_vendor(services, store):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=2)
        with pytest.raises(InsufficientStock):
            await services.repairs.send_for_repair(widget.id, loc_a.id, 3, vendor="Acme")
        with pytest.raises(InvalidArgument):
            await services.repairs.send_for_repair(widget.id, loc_a.id, 1, vendor="  ")

    run(scenario())
    assert store.repairs == {}


def test_return_of_closed_or_unknown_ticket_is_not_found(services):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=5)
        ticket = await services.repairs.send_for_repair(widget.id, loc_a.id, 1, vendor="Acme")
        await services.repairs.return_from_repair(ticket.id, loc_a.id)
        with pytest.raises(AlreadyProcessed):
            await services.repairs.return_from_repair(ticket.id, loc_a.id)
        with pytest.raises(NotFound):
            await services.repairs.return_from_repair(uuid4(), loc_a.id)
        return await services.catalog.get_item(widget.id), loc_a

    item, loc_a = run(scenario())
    assert item.quantity_at(loc_a.id) == 5


def test_lost_ticket_keeps_stock_written_off(services, store):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=5)
        ticket = await services.repairs.send_for_repair(widget.id, loc_a.id, 2, vendor="Acme")
        lost = await services.repairs.mark_lost(ticket.id, actor_id=uuid4())
        with pytest.raises(NotFound):
            await services.repairs.return_from_repair(ticket.id, loc_a.id)
        open_tickets = await services.repairs.list_tickets(status=RepairStatus.SENT)
        return lost, open_tickets, await services.catalog.get_item(widget.id), loc_a

    lost, open_tickets, item, loc_a = run(scenario())
    assert lost.status is RepairStatus.LOST
    assert open_tickets == []
    assert item.quantity_at(loc_a.id) == 3
    assert len(store.transactions) == 2


def test_tickets_listed_newest_first(services):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=5)
        first = await services.repairs.send_for_repair(widget.id, loc_a.id, 1, vendor="Acme")
        second = await services.repairs.send_for_repair(widget.id, loc_a.id, 1, vendor="Bolt")
        fetched = await services.repairs.get_ticket(first.id)
        return first, second, fetched, await services.repairs.list_tickets()

    first, second, fetched, tickets = run(scenario())
    assert fetched.vendor == "Acme"
    assert [t.id for t in tickets] == [second.id, first.id]
