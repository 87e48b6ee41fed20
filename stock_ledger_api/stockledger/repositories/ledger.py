from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.db.models.ledger import StockTransaction
from stockledger.domain.entities import Transaction
from stockledger.domain.enums import TransactionKind, TransactionStatus
from stockledger.domain.errors import NotFound
from .base import BaseRepository

# Columns each kind's detail variant is built from.
_DETAIL_COLUMNS: Dict[TransactionKind, Tuple[str, ...]] = {
    TransactionKind.ADD: ("to_location_id", "note", "photo_ref"),
    TransactionKind.TRANSFER: ("from_location_id", "to_location_id", "note"),
    TransactionKind.REPAIR_OUT: ("from_location_id", "vendor", "serial", "note", "photo_ref", "repair_ticket_id"),
    TransactionKind.REPAIR_IN: ("to_location_id", "note", "repair_ticket_id"),
    TransactionKind.DISPOSE: ("from_location_id", "reason", "note", "photo_ref"),
}


def _to_domain(row: StockTransaction) -> Transaction:
    kind = TransactionKind(row.kind)
    detail: Dict[str, Any] = {"kind": kind}
    for column in _DETAIL_COLUMNS[kind]:
        detail[column] = getattr(row, column)
    return Transaction.model_validate(
        {
            "id": row.id,
            "item_id": row.item_id,
            "quantity": row.quantity,
            "detail": detail,
            "status": row.status,
            "approved_by": row.approved_by,
            "approved_at": row.approved_at,
            "created_by": row.created_by,
            "created_at": row.created_at,
        }
    )


def _detail_values(txn: Transaction) -> Dict[str, Any]:
    values = txn.detail.model_dump(exclude={"kind"})
    if "reason" in values and values["reason"] is not None:
        values["reason"] = txn.detail.reason.value  # type: ignore[union-attr]
    return values


class TransactionRepository(BaseRepository):
    """Repository for ledger transactions. Rows are inserted once and only their decision is updated."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get(self, transaction_id: UUID) -> Optional[Transaction]:
        row = await self.get_row(StockTransaction, transaction_id)
        return _to_domain(row) if row is not None else None

    async def add(self, txn: Transaction) -> None:
        self.session.add(
            StockTransaction(
                id=txn.id,
                kind=txn.kind.value,
                item_id=txn.item_id,
                quantity=txn.quantity,
                status=txn.status.value,
                approved_by=txn.approved_by,
                approved_at=txn.approved_at,
                created_by=txn.created_by,
                created_at=txn.created_at,
                updated_at=txn.created_at,
                **_detail_values(txn),
            )
        )

    async def save(self, txn: Transaction) -> None:
        """Persist a workflow decision (status, approver, time, reviewer note)."""
        row = await self.get_row(StockTransaction, txn.id)
        if row is None:
            raise NotFound(f"Transaction {txn.id} not found", {"transaction_id": str(txn.id)})
        row.status = txn.status.value
        row.approved_by = txn.approved_by
        row.approved_at = txn.approved_at
        row.note = getattr(txn.detail, "note", None)
        row.updated_at = txn.approved_at or row.updated_at

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
        """Return one page of transactions (newest first) and the total matching count."""
        conditions = []
        if kind is not None:
            conditions.append(StockTransaction.kind == kind.value)
        if status is not None:
            conditions.append(StockTransaction.status == status.value)
        if item_id is not None:
            conditions.append(StockTransaction.item_id == item_id)
        if start is not None:
            conditions.append(StockTransaction.created_at >= start)
        if end is not None:
            conditions.append(StockTransaction.created_at <= end)

        total = await self.scalar_one(select(func.count()).select_from(StockTransaction).where(*conditions))
        stmt = select(StockTransaction).where(*conditions).order_by(StockTransaction.created_at.desc())
        stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = await self.scalars(stmt)
        return [_to_domain(r) for r in rows], int(total)

    async def pending(self, kind: TransactionKind) -> List[Transaction]:
        """Pending transactions of one kind, newest first."""
        rows, _ = await self.list(kind=kind, status=TransactionStatus.PENDING)
        return rows

    async def count(
        self, *, kind: Optional[TransactionKind] = None, status: Optional[TransactionStatus] = None
    ) -> int:
        stmt = select(func.count()).select_from(StockTransaction)
        if kind is not None:
            stmt = stmt.where(StockTransaction.kind == kind.value)
        if status is not None:
            stmt = stmt.where(StockTransaction.status == status.value)
        return int(await self.scalar_one(stmt))
