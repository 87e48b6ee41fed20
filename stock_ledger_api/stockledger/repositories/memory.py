"""
In-memory ledger store.

Used by the test suite and for running the service without a database. It
follows the same contract as the SQLAlchemy store: reads hand out copies,
writes are staged per unit of work and merged on commit, and an item saved
from a stale read fails the commit with ConcurrentModification.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Dict, Generic, Iterable, List, Optional, Set, Tuple, TypeVar
from uuid import UUID

from pydantic import BaseModel

from stockledger.domain.entities import Item, Location, RepairTicket, Transaction
from stockledger.domain.enums import ItemStatus, RepairStatus, TransactionKind, TransactionStatus
from stockledger.domain.errors import ConcurrentModification, Conflict, NotFound, UnknownItem, UnknownLocation

M = TypeVar("M", bound=BaseModel)


class InMemoryStore:
    """Committed state shared by every InMemoryUnitOfWork created over it."""

    def __init__(self) -> None:
        self.items: Dict[UUID, Item] = {}
        self.locations: Dict[UUID, Location] = {}
        self.transactions: Dict[UUID, Transaction] = {}
        self.repairs: Dict[UUID, RepairTicket] = {}

    def unit_of_work(self) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self)


class _StagedTable(Generic[M]):
    """Committed rows plus this unit's pending writes."""

    def __init__(self, committed: Dict[UUID, M]) -> None:
        self.committed = committed
        self.staged: Dict[UUID, M] = {}
        self.inserted: Set[UUID] = set()

    def current(self, key: UUID) -> Optional[M]:
        if key in self.staged:
            return self.staged[key]
        return self.committed.get(key)

    def rows(self) -> Iterable[M]:
        merged = dict(self.committed)
        merged.update(self.staged)
        return merged.values()

    def stage(self, row: M, *, insert: bool = False) -> None:
        self.staged[row.id] = row.model_copy(deep=True)  # type: ignore[attr-defined]
        if insert:
            self.inserted.add(row.id)  # type: ignore[attr-defined]

    def clear(self) -> None:
        self.staged.clear()
        self.inserted.clear()


def _copy(row: Optional[M]) -> Optional[M]:
    return row.model_copy(deep=True) if row is not None else None


class _ItemRepository:
    def __init__(self, table: _StagedTable[Item]) -> None:
        self._table = table

    async def get(self, item_id: UUID, *, for_update: bool = False) -> Optional[Item]:
        # Yield like a real driver round trip so concurrent units interleave.
        await asyncio.sleep(0)
        return _copy(self._table.current(item_id))

    async def get_by_sku(self, sku: str) -> Optional[Item]:
        return _copy(next((i for i in self._table.rows() if i.sku == sku), None))

    async def get_by_barcode(self, barcode: str) -> Optional[Item]:
        return _copy(next((i for i in self._table.rows() if i.barcode == barcode), None))

    async def add(self, item: Item) -> None:
        self._table.stage(item, insert=True)

    async def save(self, item: Item) -> None:
        if self._table.current(item.id) is None:
            raise UnknownItem(item.id)
        self._table.stage(item)

    async def list(self, *, include_inactive: bool = False) -> List[Item]:
        rows = [i for i in self._table.rows() if include_inactive or i.status is ItemStatus.ACTIVE]
        return [i.model_copy(deep=True) for i in sorted(rows, key=lambda i: i.name)]

    async def list_at_location(self, location_id: UUID) -> List[Item]:
        rows = [
            i
            for i in self._table.rows()
            if i.status is ItemStatus.ACTIVE and i.entry_for(location_id) is not None
        ]
        return [i.model_copy(deep=True) for i in sorted(rows, key=lambda i: i.name)]


class _LocationRepository:
    def __init__(self, table: _StagedTable[Location]) -> None:
        self._table = table

    async def get(self, location_id: UUID) -> Optional[Location]:
        return _copy(self._table.current(location_id))

    async def get_by_name(self, name: str) -> Optional[Location]:
        return _copy(next((loc for loc in self._table.rows() if loc.name == name), None))

    async def add(self, location: Location) -> None:
        self._table.stage(location, insert=True)

    async def save(self, location: Location) -> None:
        if self._table.current(location.id) is None:
            raise UnknownLocation(location.id)
        self._table.stage(location)

    async def list(self, *, include_inactive: bool = False) -> List[Location]:
        rows = [loc for loc in self._table.rows() if include_inactive or loc.is_active]
        return [loc.model_copy(deep=True) for loc in sorted(rows, key=lambda loc: loc.name)]


class _TransactionRepository:
    def __init__(self, table: _StagedTable[Transaction]) -> None:
        self._table = table

    async def get(self, transaction_id: UUID) -> Optional[Transaction]:
        await asyncio.sleep(0)
        return self._table.current(transaction_id)

    async def add(self, txn: Transaction) -> None:
        self._table.stage(txn, insert=True)

    async def save(self, txn: Transaction) -> None:
        if self._table.current(txn.id) is None:
            raise NotFound(f"Transaction {txn.id} not found", {"transaction_id": str(txn.id)})
        self._table.stage(txn)

    async def list(
        self,
        *,
        kind: Optional[TransactionKind] = None,
        status: Optional[TransactionStatus] = None,
        item_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Transaction], int]:
        rows = [
            t
            for t in self._table.rows()
            if (kind is None or t.kind is kind)
            and (status is None or t.status is status)
            and (item_id is None or t.item_id == item_id)
            and (start is None or t.created_at >= start)
            and (end is None or t.created_at <= end)
        ]
        rows.sort(key=lambda t: t.created_at, reverse=True)
        page = rows[offset:] if limit is None else rows[offset:offset + limit]
        return page, len(rows)

    async def pending(self, kind: TransactionKind) -> List[Transaction]:
        rows, _ = await self.list(kind=kind, status=TransactionStatus.PENDING)
        return rows

    async def count(
        self, *, kind: Optional[TransactionKind] = None, status: Optional[TransactionStatus] = None
    ) -> int:
        _, total = await self.list(kind=kind, status=status, limit=0)
        return total


class _RepairTicketRepository:
    def __init__(self, table: _StagedTable[RepairTicket]) -> None:
        self._table = table

    async def get(self, ticket_id: UUID) -> Optional[RepairTicket]:
        await asyncio.sleep(0)
        return _copy(self._table.current(ticket_id))

    async def add(self, ticket: RepairTicket) -> None:
        self._table.stage(ticket, insert=True)

    async def save(self, ticket: RepairTicket) -> None:
        if self._table.current(ticket.id) is None:
            raise NotFound("Repair ticket not found", {"ticket_id": str(ticket.id)})
        self._table.stage(ticket)

    async def list(self, *, status: Optional[RepairStatus] = None) -> List[RepairTicket]:
        rows = [r for r in self._table.rows() if status is None or r.status is status]
        rows.sort(key=lambda r: r.sent_at, reverse=True)
        return [r.model_copy(deep=True) for r in rows]

    async def count(self, *, status: Optional[RepairStatus] = None) -> int:
        return len(await self.list(status=status))


class InMemoryUnitOfWork:
    """UnitOfWork over an InMemoryStore. Commit validates then merges without yielding."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self._items = _StagedTable(store.items)
        self._locations = _StagedTable(store.locations)
        self._transactions = _StagedTable(store.transactions)
        self._repairs = _StagedTable(store.repairs)
        self.items = _ItemRepository(self._items)
        self.locations = _LocationRepository(self._locations)
        self.transactions = _TransactionRepository(self._transactions)
        self.repairs = _RepairTicketRepository(self._repairs)

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        await self.rollback()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.rollback()

    async def commit(self) -> None:
        """
        Merge staged writes into the store.

        Raises:
            ConcurrentModification: a saved item's version no longer matches the store.
            Conflict: a write collides with an existing unique sku, barcode or location name.
        """
        try:
            self._check_items()
            self._check_locations()
            for item_id, item in self._items.staged.items():
                if item_id in self._items.inserted:
                    item.version = 1
                else:
                    item.version = self.store.items[item_id].version + 1
                self.store.items[item_id] = item
            self.store.locations.update(self._locations.staged)
            self.store.transactions.update(self._transactions.staged)
            self.store.repairs.update(self._repairs.staged)
        finally:
            await self.rollback()

    async def rollback(self) -> None:
        for table in (self._items, self._locations, self._transactions, self._repairs):
            table.clear()

    def _check_items(self) -> None:
        for item_id, item in self._items.staged.items():
            if item_id in self._items.inserted:
                if item_id in self.store.items:
                    raise Conflict("Item already exists", {"item_id": str(item_id)})
            else:
                committed = self.store.items.get(item_id)
                if committed is None:
                    raise UnknownItem(item_id)
                if committed.version != item.version:
                    raise ConcurrentModification(
                        "Item was modified concurrently",
                        {
                            "item_id": str(item_id),
                            "expected_version": item.version,
                            "found_version": committed.version,
                        },
                    )
            for other in self._items.rows():
                if other.id == item_id:
                    continue
                if other.sku == item.sku:
                    raise Conflict("SKU already in use", {"sku": item.sku})
                if item.barcode is not None and other.barcode == item.barcode:
                    raise Conflict("Barcode already in use", {"barcode": item.barcode})

    def _check_locations(self) -> None:
        for location_id, location in self._locations.staged.items():
            for other in self._locations.rows():
                if other.id != location_id and other.name == location.name:
                    raise Conflict("Location name already in use", {"name": location.name})
