"""
Notification collaborator.

The ledger talks to a NotificationDispatcher only through BestEffortNotifier:
every dispatch is bounded by a timeout, and any failure is logged and
dropped. Ledger state is committed before a notification is attempted and is
never rolled back because of one.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Audience:
    """Who a notification is for: everyone, or only users holding one of ``roles``."""

    roles: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def all_users(cls) -> "Audience":
        return cls()

    @classmethod
    def for_roles(cls, *roles: str) -> "Audience":
        return cls(tuple(roles))

    @property
    def is_everyone(self) -> bool:
        return not self.roles


@dataclass(frozen=True)
class EmailRendering:
    subject: str
    html: str


class NotificationDispatcher(Protocol):
    async def notify(
        self,
        audience: Audience,
        title: str,
        message: str,
        data: Dict[str, Any],
        email: Optional[EmailRendering] = None,
    ) -> None:
        ...


class BestEffortNotifier:
    """Wraps a dispatcher so that slow or failing transports never reach the caller."""

    def __init__(self, dispatcher: NotificationDispatcher, timeout_seconds: float = 5.0) -> None:
        self.dispatcher = dispatcher
        self.timeout_seconds = timeout_seconds

    async def notify(
        self,
        audience: Audience,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        email: Optional[EmailRendering] = None,
    ) -> bool:
        """Dispatch one notification. Returns False when it timed out or failed."""
        try:
            await asyncio.wait_for(
                self.dispatcher.notify(audience, title, message, data or {}, email),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Notification %r timed out after %.1fs", title, self.timeout_seconds)
            return False
        except Exception:
            logger.exception("Notification %r could not be dispatched", title)
            return False
        return True
