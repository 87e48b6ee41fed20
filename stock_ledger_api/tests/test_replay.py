from __future__ import annotations

from uuid import uuid4

from conftest import run, seed_widget
from stockledger.domain.effects import quantity_effects, replay
from stockledger.domain.entities import AddDetail, DisposeDetail, Transaction, TransferDetail
from stockledger.domain.enums import DisposalReason, TransactionStatus


def test_replaying_the_log_reproduces_stored_quantities(services, store):
    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=20)
        loc_c = await services.catalog.create_location("C")
        await services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 5, requester_is_privileged=True)
        pending = await services.ledger.apply_transfer(
            widget.id, loc_b.id, loc_c.id, 2, requester_is_privileged=False
        )
        rejected = await services.ledger.apply_transfer(
            widget.id, loc_a.id, loc_c.id, 9, requester_is_privileged=False
        )
        disposal = await services.ledger.apply_dispose(widget.id, loc_a.id, 3, "Broken")
        ticket = await services.repairs.send_for_repair(widget.id, loc_b.id, 1, vendor="Acme")
        await services.ledger.review_transfer(pending.id, True, uuid4())
        await services.ledger.review_transfer(rejected.id, False, uuid4())
        await services.ledger.approve_disposal(disposal.id, True, uuid4())
        await services.repairs.return_from_repair(ticket.id, loc_c.id)
        return (
            await services.catalog.get_item(widget.id),
            await services.reporting.verify_item(widget.id),
        )

    item, audit = run(scenario())
    stored = {e.location_id: e.quantity for e in item.locations}
    assert replay(store.transactions.values()) == stored
    assert audit.consistent
    assert audit.drift == {}
    assert audit.transactions == 7
    assert item.total_stock == 17


def test_audit_reports_drift_against_stored_quantities(services, store):
    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=10)
        return widget, loc_a

    widget, loc_a = run(scenario())
    store.items[widget.id].locations[0].quantity = 7

    audit = run(services.reporting.verify_item(widget.id))
    assert not audit.consistent
    assert audit.drift == {loc_a.id: -3}
    assert audit.replayed == {loc_a.id: 10}


def test_replay_ignores_pending_and_rejected_and_orders_by_effect_time():
    item_id, a, b = uuid4(), uuid4(), uuid4()
    add = Transaction(item_id=item_id, quantity=5, detail=AddDetail(to_location_id=a))
    pending = Transaction(
        item_id=item_id,
        quantity=5,
        detail=DisposeDetail(from_location_id=a, reason=DisposalReason.BROKEN),
        status=TransactionStatus.PENDING,
    )
    rejected = Transaction(
        item_id=item_id,
        quantity=2,
        detail=TransferDetail(from_location_id=a, to_location_id=b),
        status=TransactionStatus.REJECTED,
    )
    moved = Transaction(item_id=item_id, quantity=2, detail=TransferDetail(from_location_id=a, to_location_id=b))

    assert replay([moved, pending, rejected, add]) == {a: 3, b: 2}
    assert quantity_effects(moved) == [(a, -2), (b, 2)]
