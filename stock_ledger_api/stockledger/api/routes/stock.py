from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status

from stockledger.core.deps import Actor, get_current_actor, get_services, require_privileged
from stockledger.domain.entities import OperationMetadata
from stockledger.schemas.catalog import LocationRead, LocationStock, LocationStockRow
from stockledger.schemas.ledger import AddStockRequest, ReviewRequest, TransactionRead, TransferStockRequest
from stockledger.services.container import ServiceContainer

router = APIRouter(prefix="/stock", tags=["Stock"])


# PUBLIC_INTERFACE
@router.post(
    "/add",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add stock",
    description="Credit stock at a location. Recorded as an approved ADD transaction.",
)
async def add_stock(
    payload: AddStockRequest,
    actor: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> TransactionRead:
    txn = await services.ledger.apply_add(
        payload.item_id,
        payload.location_id,
        payload.quantity,
        OperationMetadata(actor_id=actor.id, note=payload.note, photo_ref=payload.photo_ref),
    )
    return TransactionRead.from_transaction(txn)


# PUBLIC_INTERFACE
@router.post(
    "/transfer",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer stock",
    description=(
        "Move stock between locations. Privileged users' transfers are applied at once; "
        "others create a pending request for review."
    ),
)
async def transfer_stock(
    payload: TransferStockRequest,
    actor: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> TransactionRead:
    txn = await services.ledger.apply_transfer(
        payload.item_id,
        payload.from_location_id,
        payload.to_location_id,
        payload.quantity,
        requester_is_privileged=actor.is_privileged,
        metadata=OperationMetadata(actor_id=actor.id, note=payload.note),
    )
    return TransactionRead.from_transaction(txn)


# PUBLIC_INTERFACE
@router.get(
    "/location/{location_id}",
    response_model=LocationStock,
    summary="Stock at location",
    description="Active items holding stock at a location with their quantity there.",
)
async def stock_at_location(
    location_id: UUID = Path(...),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> LocationStock:
    location, rows = await services.catalog.stock_at_location(location_id)
    return LocationStock(
        location=LocationRead.model_validate(location),
        items=[
            LocationStockRow(
                item_id=item.id,
                name=item.name,
                sku=item.sku,
                unit=item.unit,
                quantity=quantity,
                total_stock=item.total_stock,
            )
            for item, quantity in rows
        ],
    )


# PUBLIC_INTERFACE
@router.get(
    "/transfers/pending",
    response_model=List[TransactionRead],
    summary="Pending transfers",
    description="Transfer requests awaiting review, newest first.",
)
async def pending_transfers(
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> List[TransactionRead]:
    return [TransactionRead.from_transaction(t) for t in await services.reporting.pending_transfers()]


# PUBLIC_INTERFACE
@router.post(
    "/transfers/{transaction_id}/review",
    response_model=TransactionRead,
    summary="Review transfer",
    description="Approve (re-validate and apply) or reject a pending transfer.",
)
async def review_transfer(
    payload: ReviewRequest,
    transaction_id: UUID = Path(...),
    actor: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> TransactionRead:
    txn = await services.ledger.review_transfer(transaction_id, payload.approve, actor.id, payload.note)
    return TransactionRead.from_transaction(txn)
