from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status

from stockledger.core.deps import Actor, get_current_actor, get_services, require_privileged
from stockledger.domain.entities import OperationMetadata
from stockledger.schemas.ledger import DisposalDecisionRequest, DisposalRequest, TransactionRead
from stockledger.services.container import ServiceContainer

router = APIRouter(prefix="/disposals", tags=["Disposals"])


# PUBLIC_INTERFACE
@router.post(
    "/request",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Request disposal",
    description="Create a pending disposal. Stock is debited only once approved.",
)
async def request_disposal(
    payload: DisposalRequest,
    actor: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> TransactionRead:
    txn = await services.ledger.apply_dispose(
        payload.item_id,
        payload.location_id,
        payload.quantity,
        payload.reason,
        OperationMetadata(actor_id=actor.id, note=payload.note, photo_ref=payload.photo_ref),
    )
    return TransactionRead.from_transaction(txn)


# PUBLIC_INTERFACE
@router.get(
    "/pending",
    response_model=List[TransactionRead],
    summary="Pending disposals",
)
async def pending_disposals(
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> List[TransactionRead]:
    return [TransactionRead.from_transaction(t) for t in await services.reporting.pending_disposals()]


# PUBLIC_INTERFACE
@router.post(
    "/{transaction_id}/decision",
    response_model=TransactionRead,
    summary="Approve or reject disposal",
)
async def decide_disposal(
    payload: DisposalDecisionRequest,
    transaction_id: UUID = Path(...),
    actor: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> TransactionRead:
    txn = await services.ledger.approve_disposal(transaction_id, payload.approve, actor.id)
    return TransactionRead.from_transaction(txn)
