from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

from stockledger.domain.entities import Item, Location  # noqa: E402
from stockledger.repositories.memory import InMemoryStore  # noqa: E402
from stockledger.services.container import ServiceContainer, build_services  # noqa: E402
from stockledger.services.notifications import Audience, EmailRendering  # noqa: E402


@dataclass
class SentNotification:
    audience: Audience
    title: str
    message: str
    data: Dict[str, Any]
    email: Optional[EmailRendering]


class RecordingDispatcher:
    """Dispatcher that keeps every notification it is handed."""

    def __init__(self) -> None:
        self.sent: List[SentNotification] = []

    async def notify(self, audience, title, message, data, email=None) -> None:
        self.sent.append(SentNotification(audience, title, message, data, email))

    def titles(self) -> List[str]:
        return [n.title for n in self.sent]


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def recorder() -> RecordingDispatcher:
    return RecordingDispatcher()


class TickingClock:
    """Clock that advances one second per reading, so ordering by time is deterministic."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture()
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture()
def services(store, recorder, clock) -> ServiceContainer:
    return build_services(
        store.unit_of_work,
        recorder,
        privileged_roles=("admin",),
        notify_timeout_seconds=0.5,
        clock=clock,
    )


async def seed_widget(
    services: ServiceContainer, quantity_at_a: int = 10, threshold: int = 0
) -> Tuple[Item, Location, Location]:
    """Widget with ``quantity_at_a`` units at location A and none at B."""
    loc_a = await services.catalog.create_location("A")
    loc_b = await services.catalog.create_location("B")
    widget = await services.catalog.register_item("Widget", "WID-1", "pcs", threshold=threshold)
    if quantity_at_a:
        await services.ledger.apply_add(widget.id, loc_a.id, quantity_at_a)
    widget = await services.catalog.get_item(widget.id)
    return widget, loc_a, loc_b


def run(coro):
    return asyncio.run(coro)
