from __future__ import annotations

import asyncio

from conftest import RecordingDispatcher, run, seed_widget
from stockledger.domain.enums import TransactionKind, TransactionStatus
from stockledger.domain.errors import InsufficientStock
from stockledger.services.container import build_services


def test_concurrent_withdrawals_never_overdraw(services, store):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=5)
        results = await asyncio.gather(
            *[
                services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 3, requester_is_privileged=True)
                for _ in range(4)
            ],
            return_exceptions=True,
        )
        return results, await services.catalog.get_item(widget.id), loc_a, loc_b

    results, item, loc_a, loc_b = run(scenario())
    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert len(failed) == 3
    assert all(isinstance(r, InsufficientStock) for r in failed)
    assert (item.quantity_at(loc_a.id), item.quantity_at(loc_b.id)) == (2, 3)
    transfers = [t for t in store.transactions.values() if t.kind is TransactionKind.TRANSFER]
    assert len(transfers) == 1


def test_concurrent_adds_and_disposal_approvals_sum_exactly(services):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=10)
        disposals = [await services.ledger.apply_dispose(widget.id, loc_a.id, 4, "Broken") for _ in range(3)]
        results = await asyncio.gather(
            *[services.ledger.apply_add(widget.id, loc_a.id, 1) for _ in range(5)],
            *[services.ledger.approve_disposal(d.id, True, None) for d in disposals],
            return_exceptions=True,
        )
        return results, await services.catalog.get_item(widget.id), loc_a

    results, item, loc_a = run(scenario())
    approved = [r for r in results if not isinstance(r, Exception) and r.kind is TransactionKind.DISPOSE]
    rejected = [r for r in results if isinstance(r, InsufficientStock)]
    assert all(r.status is TransactionStatus.APPROVED for r in approved)
    assert len(approved) + len(rejected) == 3
    assert item.quantity_at(loc_a.id) == 10 + 5 - 4 * len(approved)
    assert item.quantity_at(loc_a.id) >= 0


def test_writers_without_shared_locks_retry_on_version_conflict(store, clock):
    first = build_services(store.unit_of_work, RecordingDispatcher(), max_retries=10, clock=clock)
    second = build_services(store.unit_of_work, RecordingDispatcher(), max_retries=10, clock=clock)

    async def scenario():
        widget, loc_a, _ = await seed_widget(first, quantity_at_a=0)
        await asyncio.gather(
            *[first.ledger.apply_add(widget.id, loc_a.id, 2) for _ in range(3)],
            *[second.ledger.apply_add(widget.id, loc_a.id, 5) for _ in range(3)],
        )
        return await second.catalog.get_item(widget.id), loc_a

    item, loc_a = run(scenario())
    assert item.quantity_at(loc_a.id) == 21
    assert len(store.transactions) == 6


def test_same_transfer_approved_twice_concurrently_applies_once(services):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=10)
        txn = await services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 6, requester_is_privileged=False)
        results = await asyncio.gather(
            services.ledger.review_transfer(txn.id, True, None),
            services.ledger.review_transfer(txn.id, True, None),
            return_exceptions=True,
        )
        return results, await services.catalog.get_item(widget.id), loc_a, loc_b

    results, item, loc_a, loc_b = run(scenario())
    assert sum(1 for r in results if isinstance(r, Exception)) == 1
    assert (item.quantity_at(loc_a.id), item.quantity_at(loc_b.id)) == (4, 6)
