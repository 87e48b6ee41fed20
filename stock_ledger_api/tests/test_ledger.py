from __future__ import annotations

from uuid import uuid4

import pytest

from conftest import run, seed_widget
from stockledger.domain.entities import Item, LocationEntry, OperationMetadata
from stockledger.domain.enums import TransactionKind, TransactionStatus
from stockledger.domain.errors import InsufficientStock, InvalidArgument, UnknownItem, UnknownLocation


def test_add_credits_location_and_records_approved_transaction(services, recorder):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=10)
        actor = uuid4()
        txn = await services.ledger.apply_add(
            widget.id, loc_a.id, 5, OperationMetadata(actor_id=actor, note="delivery")
        )
        item = await services.catalog.get_item(widget.id)
        return txn, item, actor

    txn, item, actor = run(scenario())
    assert txn.kind is TransactionKind.ADD
    assert txn.status is TransactionStatus.APPROVED
    assert txn.created_by == actor
    assert txn.detail.note == "delivery"
    assert item.quantity_at(txn.to_location_id) == 15
    assert "Stock Added" in recorder.titles()


def test_add_creates_entry_for_new_location_in_insertion_order(services):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=2)
        await services.ledger.apply_add(widget.id, loc_b.id, 7)
        await services.ledger.apply_add(widget.id, loc_a.id, 1)
        return await services.catalog.get_item(widget.id), loc_a, loc_b

    item, loc_a, loc_b = run(scenario())
    assert [(e.location_id, e.quantity) for e in item.locations] == [(loc_a.id, 3), (loc_b.id, 7)]
    assert item.total_stock == 10


@pytest.mark.parametrize("quantity", [0, -3, 2.5, True, "4"])
def test_add_rejects_non_positive_or_non_integer_quantity(services, store, quantity):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=0)
        before = len(store.transactions)
        with pytest.raises(InvalidArgument):
            await services.ledger.apply_add(widget.id, loc_a.id, quantity)
        return before

    before = run(scenario())
    assert len(store.transactions) == before


def test_add_with_unknown_references_fails_without_side_effects(services, store):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=0)
        with pytest.raises(UnknownItem):
            await services.ledger.apply_add(uuid4(), loc_a.id, 1)
        with pytest.raises(UnknownLocation):
            await services.ledger.apply_add(widget.id, uuid4(), 1)

    run(scenario())
    assert store.transactions == {}


def test_dispose_more_than_available_fails_immediately(services, store):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=10)
        with pytest.raises(InsufficientStock) as excinfo:
            await services.ledger.apply_dispose(widget.id, loc_a.id, 100, "Broken")
        return excinfo.value, await services.catalog.get_item(widget.id), loc_a

    exc, item, loc_a = run(scenario())
    assert exc.details["requested"] == 100
    assert exc.details["available"] == 10
    assert item.quantity_at(loc_a.id) == 10
    assert [t.kind for t in store.transactions.values()] == [TransactionKind.ADD]


def test_dispose_at_location_without_entry_reports_zero_available(services):
    async def scenario():
        widget, _, loc_b = await seed_widget(services, quantity_at_a=10)
        with pytest.raises(InsufficientStock) as excinfo:
            await services.ledger.apply_dispose(widget.id, loc_b.id, 1, "Expired")
        return excinfo.value

    assert run(scenario()).available == 0


def test_dispose_rejects_unknown_reason(services):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=10)
        with pytest.raises(InvalidArgument) as excinfo:
            await services.ledger.apply_dispose(widget.id, loc_a.id, 1, "Stolen")
        return excinfo.value

    exc = run(scenario())
    assert exc.details["allowed"] == ["Broken", "Expired", "Obsolete"]


def test_privileged_transfer_applies_immediately(services, recorder):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=10)
        admin = uuid4()
        txn = await services.ledger.apply_transfer(
            widget.id, loc_a.id, loc_b.id, 4, requester_is_privileged=True,
            metadata=OperationMetadata(actor_id=admin),
        )
        return txn, admin, await services.catalog.get_item(widget.id), loc_a, loc_b

    txn, admin, item, loc_a, loc_b = run(scenario())
    assert txn.status is TransactionStatus.APPROVED
    assert txn.approved_by == admin
    assert txn.approved_at is not None
    assert (item.quantity_at(loc_a.id), item.quantity_at(loc_b.id)) == (6, 4)
    assert "Stock Transfer Completed" in recorder.titles()


def test_transfer_to_same_location_is_invalid(services):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=10)
        with pytest.raises(InvalidArgument):
            await services.ledger.apply_transfer(widget.id, loc_a.id, loc_a.id, 1, requester_is_privileged=True)

    run(scenario())


def test_transfer_checks_source_balance_at_request_time(services, store):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=3)
        with pytest.raises(InsufficientStock):
            await services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 4, requester_is_privileged=False)

    run(scenario())
    assert all(t.kind is TransactionKind.ADD for t in store.transactions.values())


def test_stock_above_threshold_sends_no_alert(services, recorder):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=10, threshold=8)
        await services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 2, requester_is_privileged=True)
        await services.ledger.apply_add(widget.id, loc_a.id, 1)

    run(scenario())
    assert "Low Stock Alert" not in recorder.titles()


def test_low_stock_alert_when_total_reaches_threshold(services, recorder):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=5, threshold=5)
        return widget

    widget = run(scenario())
    alerts = [n for n in recorder.sent if n.title == "Low Stock Alert"]
    assert len(alerts) == 1
    assert alerts[0].audience.roles == ("admin",)
    assert alerts[0].data["item_id"] == str(widget.id)
    assert alerts[0].email is not None


def test_item_debit_checks_the_entry_it_reduces():
    stocked, empty = uuid4(), uuid4()
    item = Item(sku="BOLT-1", name="Bolt", unit="pcs", locations=[LocationEntry(location_id=stocked, quantity=4)])

    item.debit(stocked, 3)
    assert item.quantity_at(stocked) == 1

    with pytest.raises(InsufficientStock) as exc:
        item.debit(empty, 1)
    assert exc.value.details["available"] == 0
    with pytest.raises(InsufficientStock) as exc:
        item.debit(stocked, 2)
    assert exc.value.details["available"] == 1
    assert item.quantity_at(stocked) == 1
    assert [e.location_id for e in item.locations] == [stocked]
