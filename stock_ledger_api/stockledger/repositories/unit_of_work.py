"""
Unit of work over the ledger store.

A unit groups the item, location, transaction and repair-ticket repositories
behind one transaction: everything staged inside ``async with uow:`` becomes
visible together on ``commit()`` or not at all. Leaving the block without a
commit rolls back.

Two stores implement the same protocol: the SQLAlchemy one here and the
in-memory one in ``stockledger.repositories.memory``.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from stockledger.domain.entities import Item, Location, RepairTicket, Transaction
from stockledger.domain.enums import RepairStatus, TransactionKind, TransactionStatus
from stockledger.domain.errors import ConcurrentModification, Conflict, DependencyUnavailable
from .catalog import ItemRepository, LocationRepository
from .ledger import TransactionRepository
from .repairs import RepairTicketRepository

logger = logging.getLogger(__name__)


class ItemStore(Protocol):
    async def get(self, item_id: UUID, *, for_update: bool = False) -> Optional[Item]:
        ...

    async def get_by_sku(self, sku: str) -> Optional[Item]:
        ...

    async def get_by_barcode(self, barcode: str) -> Optional[Item]:
        ...

    async def add(self, item: Item) -> None:
        ...

    async def save(self, item: Item) -> None:
        ...

    async def list(self, *, include_inactive: bool = False) -> List[Item]:
        ...

    async def list_at_location(self, location_id: UUID) -> List[Item]:
        ...


class LocationStore(Protocol):
    async def get(self, location_id: UUID) -> Optional[Location]:
        ...

    async def get_by_name(self, name: str) -> Optional[Location]:
        ...

    async def add(self, location: Location) -> None:
        ...

    async def save(self, location: Location) -> None:
        ...

    async def list(self, *, include_inactive: bool = False) -> List[Location]:
        ...


class TransactionStore(Protocol):
    async def get(self, transaction_id: UUID) -> Optional[Transaction]:
        ...

    async def add(self, txn: Transaction) -> None:
        ...

    async def save(self, txn: Transaction) -> None:
        ...

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
        ...

    async def pending(self, kind: TransactionKind) -> List[Transaction]:
        ...

    async def count(
        self, *, kind: Optional[TransactionKind] = None, status: Optional[TransactionStatus] = None
    ) -> int:
        ...


class RepairTicketStore(Protocol):
    async def get(self, ticket_id: UUID) -> Optional[RepairTicket]:
        ...

    async def add(self, ticket: RepairTicket) -> None:
        ...

    async def save(self, ticket: RepairTicket) -> None:
        ...

    async def list(self, *, status: Optional[RepairStatus] = None) -> List[RepairTicket]:
        ...

    async def count(self, *, status: Optional[RepairStatus] = None) -> int:
        ...


class UnitOfWork(Protocol):
    items: ItemStore
    locations: LocationStore
    transactions: TransactionStore
    repairs: RepairTicketStore

    async def __aenter__(self) -> "UnitOfWork":
        ...

    async def __aexit__(self, exc_type, exc, tb) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


class SqlAlchemyUnitOfWork:
    """UnitOfWork backed by one AsyncSession."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None
        self._committed = False

    def _active_session(self) -> AsyncSession:
        if self.session is None:
            raise RuntimeError("Unit of work used outside its async with block")
        return self.session

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self._session_factory()
        self._committed = False
        self.items = ItemRepository(self.session)
        self.locations = LocationRepository(self.session)
        self.transactions = TransactionRepository(self.session)
        self.repairs = RepairTicketRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        session = self._active_session()
        try:
            if not self._committed:
                await session.rollback()
        finally:
            await session.close()
            self.session = None

    async def commit(self) -> None:
        """
        Flush and commit everything staged in this unit.

        Raises:
            ConcurrentModification: an item row changed since it was read.
            Conflict: a uniqueness or integrity constraint rejected the write.
            DependencyUnavailable: the store could not be reached.
        """
        session = self._active_session()
        try:
            await session.commit()
        except StaleDataError as exc:
            await session.rollback()
            raise ConcurrentModification("Item was modified concurrently") from exc
        except IntegrityError as exc:
            await session.rollback()
            logger.info("Commit rejected by constraint: %s", exc.orig)
            raise Conflict("Write conflicts with existing data") from exc
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Stock store commit failed")
            raise DependencyUnavailable("Stock store is unavailable") from exc
        self._committed = True

    async def rollback(self) -> None:
        await self._active_session().rollback()
