from __future__ import annotations

import re
from uuid import uuid4

import pytest

from conftest import run, seed_widget
from stockledger.domain.enums import ItemStatus, StockStatus
from stockledger.domain.errors import Conflict, InvalidArgument, NotFound, UnknownItem, UnknownLocation


def test_register_item_starts_empty_and_low(services):
    async def scenario():
        return await services.catalog.register_item("Bolt", "BOLT-1", "pcs", threshold=0)

    item = run(scenario())
    assert item.locations == []
    assert item.total_stock == 0
    assert item.stock_status is StockStatus.LOW
    assert item.status is ItemStatus.ACTIVE


def test_register_item_rejects_duplicates_and_bad_fields(services):
    async def scenario():
        await services.catalog.register_item("Bolt", "BOLT-1", "pcs", barcode="B1")
        with pytest.raises(Conflict):
            await services.catalog.register_item("Other", "BOLT-1", "pcs")
        with pytest.raises(Conflict):
            await services.catalog.register_item("Other", "BOLT-2", "pcs", barcode="B1")
        with pytest.raises(InvalidArgument):
            await services.catalog.register_item("", "BOLT-3", "pcs")
        with pytest.raises(InvalidArgument):
            await services.catalog.register_item("Nut", "NUT-1", "pcs", threshold=-1)
        return await services.catalog.list_items()

    items = run(scenario())
    assert [i.sku for i in items] == ["BOLT-1"]


def test_update_item_never_touches_quantities(services):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=4)
        updated = await services.catalog.update_item(widget.id, name="Widget XL", threshold=5)
        with pytest.raises(UnknownItem):
            await services.catalog.update_item(uuid4(), name="ghost")
        return updated, loc_a

    updated, loc_a = run(scenario())
    assert updated.name == "Widget XL"
    assert updated.quantity_at(loc_a.id) == 4
    assert updated.stock_status is StockStatus.LOW


def test_inactive_items_are_hidden_from_default_listing(services):
    async def scenario():
        widget, _, _ = await seed_widget(services, quantity_at_a=1)
        await services.catalog.register_item("Anvil", "ANV-1", "pcs")
        await services.catalog.update_item(widget.id, status="inactive")
        return (
            await services.catalog.list_items(),
            await services.catalog.list_items(include_inactive=True),
        )

    active, everything = run(scenario())
    assert [i.name for i in active] == ["Anvil"]
    assert [i.name for i in everything] == ["Anvil", "Widget"]


def test_assign_barcode_generates_and_guards_existing(services):
    async def scenario():
        widget, _, _ = await seed_widget(services, quantity_at_a=0)
        other = await services.catalog.register_item("Anvil", "ANV-1", "pcs", barcode="TAKEN")
        generated = await services.catalog.assign_barcode(widget.id)
        with pytest.raises(Conflict):
            await services.catalog.assign_barcode(widget.id, "NEWCODE")
        with pytest.raises(Conflict):
            await services.catalog.assign_barcode(widget.id, "TAKEN", overwrite=True)
        replaced = await services.catalog.assign_barcode(widget.id, "NEWCODE", overwrite=True)
        found = await services.catalog.get_item_by_barcode("NEWCODE")
        with pytest.raises(NotFound):
            await services.catalog.get_item_by_barcode(generated.barcode)
        return generated, replaced, found, other

    generated, replaced, found, other = run(scenario())
    assert re.fullmatch(r"[0-9A-F]{8}", generated.barcode)
    assert replaced.barcode == "NEWCODE"
    assert found.id == replaced.id
    assert other.barcode == "TAKEN"


def test_stock_at_location_lists_active_items_held_there(services):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=6)
        anvil = await services.catalog.register_item("Anvil", "ANV-1", "pcs")
        await services.ledger.apply_add(anvil.id, loc_b.id, 2)
        at_a = await services.catalog.stock_at_location(loc_a.id)
        at_b = await services.catalog.stock_at_location(loc_b.id)
        with pytest.raises(UnknownLocation):
            await services.catalog.stock_at_location(uuid4())
        return at_a, at_b

    (loc_a, rows_a), (_, rows_b) = run(scenario())
    assert loc_a.name == "A"
    assert [(i.name, q) for i, q in rows_a] == [("Widget", 6)]
    assert [(i.name, q) for i, q in rows_b] == [("Anvil", 2)]


def test_locations_are_unique_and_soft_deleted(services):
    async def scenario():
        main = await services.catalog.create_location("Main", address="1 Road")
        await services.catalog.create_location("Yard")
        with pytest.raises(Conflict):
            await services.catalog.create_location("Main")
        with pytest.raises(Conflict):
            await services.catalog.update_location(main.id, name="Yard")
        renamed = await services.catalog.update_location(main.id, name="Main Store")
        await services.catalog.deactivate_location(main.id)
        return (
            renamed,
            await services.catalog.list_locations(),
            await services.catalog.list_locations(include_inactive=True),
            await services.catalog.get_location(main.id),
        )

    renamed, active, everything, fetched = run(scenario())
    assert renamed.name == "Main Store"
    assert renamed.address == "1 Road"
    assert [loc.name for loc in active] == ["Yard"]
    assert [loc.name for loc in everything] == ["Main Store", "Yard"]
    assert fetched.is_active is False
