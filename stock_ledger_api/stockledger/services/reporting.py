from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from stockledger.domain.effects import replay
from stockledger.domain.entities import Item, Transaction, as_utc
from stockledger.domain.enums import RepairStatus, TransactionKind, TransactionStatus
from stockledger.domain.errors import InvalidArgument, NotFound, UnknownItem
from stockledger.repositories.unit_of_work import UnitOfWork
from .base import BaseService

MAX_PAGE_SIZE = 500
RECENT_TRANSACTIONS = 10


@dataclass
class TransactionPage:
    items: List[Transaction]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


@dataclass
class DashboardSummary:
    total_items: int
    total_stock: int
    low_stock_items: List[Item]
    pending_repairs: int
    pending_disposals: int
    pending_transfers: int
    recent_transactions: List[Transaction] = field(default_factory=list)


@dataclass
class ItemAudit:
    """Stored location map of an item next to the one rebuilt from its approved transactions."""

    item_id: UUID
    stored: Dict[UUID, int]
    replayed: Dict[UUID, int]
    transactions: int

    @property
    def drift(self) -> Dict[UUID, int]:
        """stored - replayed for every location where they disagree."""
        out: Dict[UUID, int] = {}
        for location_id in list(self.stored) + [k for k in self.replayed if k not in self.stored]:
            delta = self.stored.get(location_id, 0) - self.replayed.get(location_id, 0)
            if delta:
                out[location_id] = delta
        return out

    @property
    def consistent(self) -> bool:
        return not self.drift


class ReportingService(BaseService):
    """Read-only views over the ledger."""

    # PUBLIC_INTERFACE
    async def list_transactions(
        self,
        *,
        kind: Optional[TransactionKind] = None,
        status: Optional[TransactionStatus] = None,
        item_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
    ) -> TransactionPage:
        """Transactions newest first, filtered on kind, status, item and creation time."""
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise InvalidArgument(
                "Invalid pagination", {"page": page, "limit": limit, "max_limit": MAX_PAGE_SIZE}
            )
        start, end = as_utc(start), as_utc(end)
        if start is not None and end is not None and start > end:
            raise InvalidArgument("start must not be after end")

        async def unit(uow: UnitOfWork) -> TransactionPage:
            rows, total = await uow.transactions.list(
                kind=kind,
                status=status,
                item_id=item_id,
                start=start,
                end=end,
                offset=(page - 1) * limit,
                limit=limit,
            )
            return TransactionPage(items=rows, total=total, page=page, limit=limit)

        return await self.read(unit)

    # PUBLIC_INTERFACE
    async def all_transactions(
        self,
        *,
        kind: Optional[TransactionKind] = None,
        status: Optional[TransactionStatus] = None,
        item_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Transaction]:
        """Every matching transaction, newest first. Used by exports."""
        start, end = as_utc(start), as_utc(end)
        if start is not None and end is not None and start > end:
            raise InvalidArgument("start must not be after end")

        async def unit(uow: UnitOfWork) -> List[Transaction]:
            rows, _ = await uow.transactions.list(kind=kind, status=status, item_id=item_id, start=start, end=end)
            return rows

        return await self.read(unit)

    # PUBLIC_INTERFACE
    async def get_transaction(self, transaction_id: UUID) -> Transaction:
        async def unit(uow: UnitOfWork) -> Transaction:
            txn = await uow.transactions.get(transaction_id)
            if txn is None:
                raise NotFound("Transaction not found", {"transaction_id": str(transaction_id)})
            return txn

        return await self.read(unit)

    # PUBLIC_INTERFACE
    async def pending_transfers(self) -> List[Transaction]:
        return await self.read(lambda uow: uow.transactions.pending(TransactionKind.TRANSFER))

    # PUBLIC_INTERFACE
    async def pending_disposals(self) -> List[Transaction]:
        return await self.read(lambda uow: uow.transactions.pending(TransactionKind.DISPOSE))

    # PUBLIC_INTERFACE
    async def dashboard_summary(self) -> DashboardSummary:
        async def unit(uow: UnitOfWork) -> DashboardSummary:
            items = await uow.items.list()
            recent, _ = await uow.transactions.list(limit=RECENT_TRANSACTIONS)
            return DashboardSummary(
                total_items=len(items),
                total_stock=sum(i.total_stock for i in items),
                low_stock_items=[i for i in items if i.total_stock <= i.threshold],
                pending_repairs=await uow.repairs.count(status=RepairStatus.SENT),
                pending_disposals=await uow.transactions.count(
                    kind=TransactionKind.DISPOSE, status=TransactionStatus.PENDING
                ),
                pending_transfers=await uow.transactions.count(
                    kind=TransactionKind.TRANSFER, status=TransactionStatus.PENDING
                ),
                recent_transactions=recent,
            )

        return await self.read(unit)

    # PUBLIC_INTERFACE
    async def verify_item(self, item_id: UUID) -> ItemAudit:
        """Replay an item's approved transactions and compare with its stored quantities."""

        async def unit(uow: UnitOfWork) -> ItemAudit:
            item = await uow.items.get(item_id)
            if item is None:
                raise UnknownItem(item_id)
            txns, total = await uow.transactions.list(item_id=item_id)
            return ItemAudit(
                item_id=item_id,
                stored={e.location_id: e.quantity for e in item.locations},
                replayed=replay(txns),
                transactions=total,
            )

        return await self.read(unit)
