from __future__ import annotations

import logging

from conftest import run, seed_widget
from stockledger.core.logging import LedgerContextFilter, actor_id_var, item_id_var, item_context


def _record() -> logging.LogRecord:
    return logging.LogRecord("stockledger.test", logging.INFO, __file__, 1, "moved stock", None, None)


def test_filter_fills_placeholders_outside_any_context():
    record = _record()
    assert LedgerContextFilter().filter(record)
    assert (record.correlation_id, record.actor_id, record.item_id) == ("-", "-", "-")


def test_item_context_tags_records_and_resets():
    token = actor_id_var.set("user-7")
    try:
        with item_context("item-1"):
            inside = _record()
            LedgerContextFilter().filter(inside)
        outside = _record()
        LedgerContextFilter().filter(outside)
    finally:
        actor_id_var.reset(token)

    assert (inside.actor_id, inside.item_id) == ("user-7", "item-1")
    assert outside.item_id == "-"


def test_stock_changes_run_under_the_items_log_context(services):
    seen = []

    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=2)

        async def unit(uow):
            seen.append(item_id_var.get())
            return await uow.items.get(widget.id)

        await services.ledger.run_exclusive(widget.id, unit)
        return widget

    widget = run(scenario())
    assert seen == [str(widget.id)]
    assert item_id_var.get() is None
