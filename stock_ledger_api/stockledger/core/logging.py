"""
Process-wide logging setup.

Each record carries three context fields taken from contextvars:
``correlation_id`` (set per HTTP request by the middleware), ``actor_id``
(set once the bearer token is decoded) and ``item_id`` (set while a service
holds an item's lock, so every line written during a stock change names the
item it touched).
"""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Dict, Iterator, Optional

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
actor_id_var: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)
item_id_var: ContextVar[Optional[str]] = ContextVar("item_id", default=None)

CONTEXT_VARS: Dict[str, ContextVar[Optional[str]]] = {
    "correlation_id": correlation_id_var,
    "actor_id": actor_id_var,
    "item_id": item_id_var,
}

LOG_FORMAT = (
    "%(asctime)s %(levelname)-7s %(name)s "
    "[cid=%(correlation_id)s actor=%(actor_id)s item=%(item_id)s] %(message)s"
)


class LedgerContextFilter(logging.Filter):
    """Copy the context fields onto each record; '-' when unset."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        for field, var in CONTEXT_VARS.items():
            setattr(record, field, var.get() or "-")
        return True


@contextmanager
def item_context(item_id: object) -> Iterator[None]:
    """Tag log records emitted inside the block with ``item_id``."""
    token = item_id_var.set(str(item_id))
    try:
        yield
    finally:
        item_id_var.reset(token)


# PUBLIC_INTERFACE
def configure_logging(level: int = logging.INFO) -> None:
    """Route the root logger to stdout with the ledger context fields."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(LedgerContextFilter())

    root = logging.getLogger()
    # Replace whatever basicConfig or a server runner installed
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
