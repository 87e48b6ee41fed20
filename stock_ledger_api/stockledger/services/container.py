from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from stockledger.domain.entities import utcnow
from stockledger.repositories.unit_of_work import UnitOfWorkFactory
from .catalog import CatalogService
from .ledger import StockLedger
from .locks import ItemLockRegistry
from .notifications import BestEffortNotifier, NotificationDispatcher
from .repairs import RepairService
from .reporting import ReportingService


@dataclass
class ServiceContainer:
    catalog: CatalogService
    ledger: StockLedger
    repairs: RepairService
    reporting: ReportingService


# PUBLIC_INTERFACE
def build_services(
    uow_factory: UnitOfWorkFactory,
    dispatcher: NotificationDispatcher,
    *,
    privileged_roles: Sequence[str] = ("admin",),
    notify_timeout_seconds: float = 5.0,
    max_retries: int = 3,
    clock: Callable[[], datetime] = utcnow,
) -> ServiceContainer:
    """Wire all services over one store, one item lock registry and one notifier."""
    locks = ItemLockRegistry()
    notifier = BestEffortNotifier(dispatcher, timeout_seconds=notify_timeout_seconds)
    ledger = StockLedger(
        uow_factory,
        notifier,
        locks=locks,
        privileged_roles=privileged_roles,
        max_retries=max_retries,
        clock=clock,
    )
    return ServiceContainer(
        catalog=CatalogService(uow_factory, locks=locks, max_retries=max_retries, clock=ledger.clock),
        ledger=ledger,
        repairs=RepairService(ledger),
        reporting=ReportingService(uow_factory, locks=locks),
    )
