from __future__ import annotations

import asyncio
import logging

from starlette.websockets import WebSocketState

from conftest import run, seed_widget
from stockledger.domain.enums import TransactionStatus
from stockledger.services.container import build_services
from stockledger.services.notifications import Audience, BestEffortNotifier, EmailRendering
from stockledger.services.realtime import BroadcastManager


class FailingDispatcher:
    def __init__(self) -> None:
        self.calls = 0

    async def notify(self, audience, title, message, data, email=None) -> None:
        self.calls += 1
        raise ConnectionError("mail relay unreachable")


class SlowDispatcher:
    async def notify(self, audience, title, message, data, email=None) -> None:
        await asyncio.sleep(10)


class FakeWebSocket:
    application_state = WebSocketState.CONNECTED
    client_state = WebSocketState.CONNECTED

    def __init__(self) -> None:
        self.messages = []

    async def send_json(self, message) -> None:
        self.messages.append(message)


def test_failing_dispatcher_never_fails_the_ledger(store, clock, caplog):
    dispatcher = FailingDispatcher()
    services = build_services(store.unit_of_work, dispatcher, clock=clock)

    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=10)
        txn = await services.ledger.apply_transfer(widget.id, loc_a.id, loc_b.id, 3, requester_is_privileged=True)
        return txn, await services.catalog.get_item(widget.id), loc_b

    with caplog.at_level(logging.ERROR, logger="stockledger.services.notifications"):
        txn, item, loc_b = run(scenario())

    assert txn.status is TransactionStatus.APPROVED
    assert item.quantity_at(loc_b.id) == 3
    assert dispatcher.calls >= 2
    assert "could not be dispatched" in caplog.text


def test_slow_dispatcher_is_cut_off_by_timeout():
    notifier = BestEffortNotifier(SlowDispatcher(), timeout_seconds=0.01)
    delivered = run(notifier.notify(Audience.all_users(), "Stock Added", "x"))
    assert delivered is False


def test_broadcast_routes_by_audience():
    manager = BroadcastManager()
    staff, admin = FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await manager.connect(staff, "staff")
        await manager.connect(admin, "admin")
        await manager.notify(Audience.all_users(), "Stock Added", "added", {"item_id": "1"})
        await manager.notify(
            Audience.for_roles("admin"),
            "Disposal Approval Needed",
            "approve me",
            {},
            EmailRendering(subject="Action Required", html="<p>approve</p>"),
        )
        await manager.disconnect(staff, "staff")

    run(scenario())
    assert [m["payload"]["title"] for m in staff.messages] == ["Stock Added"]
    assert [m["payload"]["title"] for m in admin.messages] == ["Stock Added", "Disposal Approval Needed"]
    assert admin.messages[1]["channel"] == "notifications:role:admin"
    assert admin.messages[1]["payload"]["email_subject"] == "Action Required"
    assert manager.subscriber_count(manager.all_topic()) == 1
    assert manager.subscriber_count(manager.role_topic("staff")) == 0
