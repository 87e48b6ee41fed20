"""
Tabular exports of ledger state.

Frames are built from domain objects only, so the same export works over
any store.
"""
from __future__ import annotations

from typing import Dict, Iterable, List
from uuid import UUID

import pandas as pd

from stockledger.domain.entities import Item, Location, Transaction

STOCK_LEVEL_COLUMNS = [
    "sku",
    "name",
    "unit",
    "location",
    "quantity",
    "total_stock",
    "threshold",
    "stock_status",
]

TRANSACTION_COLUMNS = [
    "id",
    "created_at",
    "kind",
    "status",
    "item_sku",
    "item_name",
    "quantity",
    "from_location",
    "to_location",
    "reason",
    "vendor",
    "note",
    "created_by",
    "approved_by",
    "approved_at",
]


# PUBLIC_INTERFACE
def stock_levels_frame(items: Iterable[Item], locations: Iterable[Location]) -> pd.DataFrame:
    """One row per (item, location entry); items without stock get a single empty row."""
    names: Dict[UUID, str] = {loc.id: loc.name for loc in locations}
    data: List[dict] = []
    for item in items:
        base = {
            "sku": item.sku,
            "name": item.name,
            "unit": item.unit,
            "total_stock": item.total_stock,
            "threshold": item.threshold,
            "stock_status": item.stock_status.value,
        }
        if not item.locations:
            data.append({**base, "location": None, "quantity": 0})
        for entry in item.locations:
            data.append(
                {**base, "location": names.get(entry.location_id, str(entry.location_id)), "quantity": entry.quantity}
            )
    return pd.DataFrame(data, columns=STOCK_LEVEL_COLUMNS)


# PUBLIC_INTERFACE
def transactions_frame(
    transactions: Iterable[Transaction],
    items: Iterable[Item],
    locations: Iterable[Location],
) -> pd.DataFrame:
    """Ledger history with item and location ids resolved to names where known."""
    by_id = {item.id: item for item in items}
    names = {loc.id: loc.name for loc in locations}

    def _location(location_id):
        if location_id is None:
            return None
        return names.get(location_id, str(location_id))

    data: List[dict] = []
    for txn in transactions:
        item = by_id.get(txn.item_id)
        reason = getattr(txn.detail, "reason", None)
        data.append(
            {
                "id": str(txn.id),
                "created_at": txn.created_at.isoformat(),
                "kind": txn.kind.value,
                "status": txn.status.value,
                "item_sku": item.sku if item else None,
                "item_name": item.name if item else str(txn.item_id),
                "quantity": txn.quantity,
                "from_location": _location(txn.from_location_id),
                "to_location": _location(txn.to_location_id),
                "reason": reason.value if reason else None,
                "vendor": getattr(txn.detail, "vendor", None),
                "note": getattr(txn.detail, "note", None),
                "created_by": str(txn.created_by) if txn.created_by else None,
                "approved_by": str(txn.approved_by) if txn.approved_by else None,
                "approved_at": txn.approved_at.isoformat() if txn.approved_at else None,
            }
        )
    return pd.DataFrame(data, columns=TRANSACTION_COLUMNS)
