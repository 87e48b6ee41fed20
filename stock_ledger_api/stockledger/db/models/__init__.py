"""
ORM models for catalog, ledger and repair entities.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .catalog import (  # noqa: F401
    Item,
    ItemLocation,
    Location,
)
from .ledger import (  # noqa: F401
    StockTransaction,
)
from .repairs import (  # noqa: F401
    RepairTicket,
)
