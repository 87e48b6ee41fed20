from __future__ import annotations

from typing import Dict, Iterable, List, Tuple
from uuid import UUID

from .entities import (
    AddDetail,
    DisposeDetail,
    Item,
    RepairInDetail,
    RepairOutDetail,
    Transaction,
    TransferDetail,
)
from .enums import TransactionStatus

Delta = Tuple[UUID, int]


# PUBLIC_INTERFACE
def quantity_effects(txn: Transaction) -> List[Delta]:
    """
    Return the signed per-location deltas a transaction stands for.

    Debits come before credits so applying them in order never reads a
    credited destination as a transfer's own source.
    """
    detail = txn.detail
    qty = txn.quantity
    if isinstance(detail, AddDetail):
        return [(detail.to_location_id, qty)]
    if isinstance(detail, TransferDetail):
        return [(detail.from_location_id, -qty), (detail.to_location_id, qty)]
    if isinstance(detail, RepairOutDetail):
        return [(detail.from_location_id, -qty)]
    if isinstance(detail, RepairInDetail):
        return [(detail.to_location_id, qty)]
    if isinstance(detail, DisposeDetail):
        return [(detail.from_location_id, -qty)]
    raise TypeError(f"Unsupported transaction detail: {type(detail).__name__}")


# PUBLIC_INTERFACE
def apply_effects(item: Item, txn: Transaction) -> None:
    """
    Apply a transaction's deltas to ``item`` in place.

    All debits are validated before anything is changed, so a failing
    transaction leaves the item untouched.
    """
    deltas = quantity_effects(txn)
    for location_id, delta in deltas:
        if delta < 0:
            item.ensure_available(location_id, -delta)
    for location_id, delta in deltas:
        if delta < 0:
            item.debit(location_id, -delta)
        else:
            item.credit(location_id, delta)


# PUBLIC_INTERFACE
def replay(transactions: Iterable[Transaction]) -> Dict[UUID, int]:
    """
    Rebuild a location map from a transaction log.

    Only approved transactions carry a quantity effect. They are folded in
    the order their effects took place; the result keeps first-touch order.
    """
    approved = [t for t in transactions if t.status is TransactionStatus.APPROVED]
    approved.sort(key=lambda t: t.effective_at)
    balances: Dict[UUID, int] = {}
    for txn in approved:
        for location_id, delta in quantity_effects(txn):
            balances[location_id] = balances.get(location_id, 0) + delta
    return balances
