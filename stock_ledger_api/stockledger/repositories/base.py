from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import Executable
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.domain.errors import DependencyUnavailable

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    Base class for SQLAlchemy repositories providing common helpers.

    Driver errors are logged and re-raised as DependencyUnavailable so that
    storage details never reach callers of the ledger.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        try:
            return await self.session.execute(statement, params or {})
        except SQLAlchemyError as exc:
            logger.exception("Stock store query failed")
            raise DependencyUnavailable("Stock store is unavailable") from exc

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return exactly one scalar."""
        result = await self.execute(statement, params)
        return result.scalar_one()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return a single scalar or None."""
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def get_row(self, model: Any, pk: Any) -> Any:
        """Load a row by primary key (identity map first)."""
        try:
            return await self.session.get(model, pk)
        except SQLAlchemyError as exc:
            logger.exception("Stock store lookup failed")
            raise DependencyUnavailable("Stock store is unavailable") from exc
