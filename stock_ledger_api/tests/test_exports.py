from __future__ import annotations

import asyncio
from uuid import uuid4

import pandas as pd

from conftest import run, seed_widget
from stockledger.api.routes import reports as report_routes
from stockledger.api.routes.reports import export_dataframe
from stockledger.core.deps import Actor
from stockledger.services.exports import stock_levels_frame, transactions_frame


async def _read_body(response) -> bytes:
    chunks = []
    async for chunk in response.body_iterator:
        chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
    return b"".join(chunks)


def test_stock_levels_frame_has_one_row_per_entry(services):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=6, threshold=2)
        await services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 2, requester_is_privileged=True)
        await services.catalog.register_item("Anvil", "ANV-1", "pcs")
        return await services.catalog.list_items(), await services.catalog.list_locations()

    items, locations = run(scenario())
    df = stock_levels_frame(items, locations)
    assert df["sku"].tolist() == ["ANV-1", "WID-1", "WID-1"]
    # An item with no stock gets one row with an empty location.
    assert pd.isna(df["location"].iloc[0])
    assert df["location"].iloc[1:].tolist() == ["A", "B"]
    assert df["quantity"].tolist() == [0, 4, 2]
    assert df["stock_status"].tolist() == ["low", "sufficient", "sufficient"]


def test_transactions_frame_resolves_names(services):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=6)
        await services.ledger.apply_dispose(widget.id, loc_a.id, 1, "Obsolete")
        txns = await services.reporting.all_transactions()
        return txns, await services.catalog.list_items(), await services.catalog.list_locations()

    txns, items, locations = run(scenario())
    df = transactions_frame(txns, items, locations)
    assert df["kind"].tolist() == ["DISPOSE", "ADD"]
    assert df["status"].tolist() == ["pending", "approved"]
    assert df["from_location"].tolist()[0] == "A"
    assert df["reason"].tolist()[0] == "Obsolete"
    assert set(df["item_name"]) == {"Widget"}


def test_csv_export_streams_attachment(services):
    admin = Actor(id=uuid4(), role="admin", is_privileged=True)

    async def scenario():
        await seed_widget(services, quantity_at_a=3)
        response = await report_routes.transactions_report(
            format="csv", kind=None, status=None, item_id=None, start=None, end=None,
            _=admin, services=services,
        )
        return response, await _read_body(response)

    response, body = run(scenario())
    assert response.media_type == "text/csv"
    assert response.headers["content-disposition"] == 'attachment; filename="ledger_history.csv"'
    lines = body.decode("utf-8").splitlines()
    assert lines[0].startswith("id,created_at,kind,status")
    assert len(lines) == 2


def test_unknown_format_falls_back_to_csv():
    response = export_dataframe(pd.DataFrame({"a": [1]}), "sample", "pdf")
    body = asyncio.run(_read_body(response))
    assert response.media_type == "text/csv"
    assert body.decode("utf-8").splitlines() == ["a", "1"]
