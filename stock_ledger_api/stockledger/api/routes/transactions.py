from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from stockledger.core.deps import Actor, get_current_actor, get_services
from stockledger.domain.enums import TransactionKind, TransactionStatus
from stockledger.schemas.ledger import TransactionPageRead, TransactionRead
from stockledger.services.container import ServiceContainer
from stockledger.services.reporting import MAX_PAGE_SIZE

router = APIRouter(prefix="/transactions", tags=["Transactions"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=TransactionPageRead,
    summary="List transactions",
    description="Ledger transactions newest first with optional filters and pagination.",
)
async def list_transactions(
    kind: Optional[TransactionKind] = Query(None, description="Filter by kind"),
    status: Optional[TransactionStatus] = Query(None, description="Filter by workflow status"),
    item_id: Optional[UUID] = Query(None, description="Filter by item"),
    start: Optional[datetime] = Query(None, description="Created at or after (ISO-8601)"),
    end: Optional[datetime] = Query(None, description="Created at or before (ISO-8601)"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> TransactionPageRead:
    result = await services.reporting.list_transactions(
        kind=kind, status=status, item_id=item_id, start=start, end=end, page=page, limit=limit
    )
    return TransactionPageRead(
        items=[TransactionRead.from_transaction(t) for t in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


# PUBLIC_INTERFACE
@router.get(
    "/{transaction_id}",
    response_model=TransactionRead,
    summary="Get transaction",
)
async def get_transaction(
    transaction_id: UUID = Path(...),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> TransactionRead:
    return TransactionRead.from_transaction(await services.reporting.get_transaction(transaction_id))
