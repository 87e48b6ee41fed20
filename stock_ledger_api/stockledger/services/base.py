from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from stockledger.core.logging import item_context
from stockledger.domain.errors import ConcurrentModification
from stockledger.repositories.unit_of_work import UnitOfWork, UnitOfWorkFactory
from .locks import ItemLockRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseService:
    """
    Base class for services. Opens one unit of work per operation.

    Services keep business logic and orchestration, delegating data access
    to the repositories exposed by the unit of work.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        locks: Optional[ItemLockRegistry] = None,
        max_retries: int = 3,
    ) -> None:
        self.uow_factory = uow_factory
        self.locks = locks or ItemLockRegistry()
        self.max_retries = max_retries

    async def run_exclusive(self, item_id: UUID, unit: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        """
        Run ``unit`` inside a committed unit of work while holding the item's lock.

        The unit is re-run from a fresh read when the commit loses a race with
        another writer of the same item, up to ``max_retries`` times.
        """
        attempt = 0
        with item_context(item_id):
            while True:
                async with self.locks.hold(item_id):
                    try:
                        async with self.uow_factory() as uow:
                            result = await unit(uow)
                            await uow.commit()
                            return result
                    except ConcurrentModification:
                        if attempt >= self.max_retries:
                            raise
                        attempt += 1
                        logger.warning("Concurrent update; retrying (%d/%d)", attempt, self.max_retries)

    async def read(self, unit: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        """Run a read-only ``unit``; nothing is committed."""
        async with self.uow_factory() as uow:
            return await unit(uow)

    async def write(self, unit: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        """Run ``unit`` in a unit of work and commit it. For writes that touch no item stock."""
        async with self.uow_factory() as uow:
            result = await unit(uow)
            await uow.commit()
            return result
