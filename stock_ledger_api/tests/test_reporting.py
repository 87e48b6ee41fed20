from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from conftest import run, seed_widget
from stockledger.domain.enums import TransactionKind, TransactionStatus
from stockledger.domain.errors import InvalidArgument, NotFound


def test_transactions_are_paginated_newest_first(services):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=1)
        for _ in range(4):
            await services.ledger.apply_add(widget.id, loc_a.id, 1)
        first = await services.reporting.list_transactions(page=1, limit=2)
        last = await services.reporting.list_transactions(page=3, limit=2)
        return first, last

    first, last = run(scenario())
    assert first.total == 5
    assert first.pages == 3
    assert len(first.items) == 2
    assert first.items[0].created_at > first.items[1].created_at
    assert len(last.items) == 1


def test_transactions_filter_by_kind_status_and_time(services, clock):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=10)
        cutoff = clock()
        await services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 1, requester_is_privileged=False)
        await services.ledger.apply_dispose(widget.id, loc_a.id, 1, "Broken")
        pending = await services.reporting.list_transactions(status=TransactionStatus.PENDING)
        transfers = await services.reporting.list_transactions(kind=TransactionKind.TRANSFER)
        before = await services.reporting.list_transactions(end=cutoff)
        for_item = await services.reporting.list_transactions(item_id=widget.id, start=cutoff)
        return pending, transfers, before, for_item

    pending, transfers, before, for_item = run(scenario())
    assert pending.total == 2
    assert [t.kind for t in transfers.items] == [TransactionKind.TRANSFER]
    assert [t.kind for t in before.items] == [TransactionKind.ADD]
    assert for_item.total == 2


def test_list_transactions_validates_arguments(services):
    start = datetime(2024, 2, 1, tzinfo=timezone.utc)
    end = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with pytest.raises(InvalidArgument):
        run(services.reporting.list_transactions(page=0))
    with pytest.raises(InvalidArgument):
        run(services.reporting.list_transactions(limit=501))
    with pytest.raises(InvalidArgument):
        run(services.reporting.list_transactions(start=start, end=end))
    with pytest.raises(NotFound):
        run(services.reporting.get_transaction(uuid4()))


def test_dashboard_summary_counts_stock_and_open_work(services):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=10, threshold=3)
        empty = await services.catalog.register_item("Anvil", "ANV-1", "pcs", threshold=1)
        await services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 2, requester_is_privileged=False)
        await services.ledger.apply_dispose(widget.id, loc_a.id, 1, "Expired")
        await services.repairs.send_for_repair(widget.id, loc_a.id, 1, vendor="Acme")
        return await services.reporting.dashboard_summary(), empty

    summary, empty = run(scenario())
    assert summary.total_items == 2
    assert summary.total_stock == 9
    assert [i.id for i in summary.low_stock_items] == [empty.id]
    assert summary.pending_transfers == 1
    assert summary.pending_disposals == 1
    assert summary.pending_repairs == 1
    assert summary.recent_transactions[0].kind is TransactionKind.REPAIR_OUT


def test_naive_time_bounds_are_read_as_utc(services):
    # The ticking clock starts at 2024-01-01T00:00:00Z.
    async def scenario():
        await seed_widget(services, quantity_at_a=5)
        around = await services.reporting.list_transactions(
            start=datetime(2023, 12, 31), end=datetime(2024, 1, 2, tzinfo=timezone.utc)
        )
        after = await services.reporting.list_transactions(start=datetime(2024, 1, 2))
        exported_before = await services.reporting.all_transactions(end=datetime(2023, 12, 31))
        exported_all = await services.reporting.all_transactions(
            start=datetime(2023, 12, 31, tzinfo=timezone.utc), end=datetime(2024, 1, 2)
        )
        return around, after, exported_before, exported_all

    around, after, exported_before, exported_all = run(scenario())
    assert around.total == 1
    assert after.total == 0
    assert exported_before == []
    assert [t.kind for t in exported_all] == [TransactionKind.ADD]


def test_naive_start_after_aware_end_is_rejected(services):
    with pytest.raises(InvalidArgument):
        run(
            services.reporting.list_transactions(
                start=datetime(2024, 2, 1), end=datetime(2024, 1, 1, tzinfo=timezone.utc)
            )
        )
    with pytest.raises(InvalidArgument):
        run(services.reporting.all_transactions(start=datetime(2024, 2, 1, tzinfo=timezone.utc), end=datetime(2024, 1, 1)))
