from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from stockledger.core.deps import Actor, get_current_actor, get_services, require_privileged
from stockledger.schemas.catalog import BarcodeAssignRequest, ItemCreate, ItemRead, ItemUpdate
from stockledger.schemas.ledger import ItemAuditRead, LocationDrift
from stockledger.services.container import ServiceContainer

router = APIRouter(prefix="/items", tags=["Items"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[ItemRead],
    summary="List items",
    description="List items ordered by name with total stock and low/sufficient status.",
)
async def list_items(
    include_inactive: bool = Query(False, description="Include soft-deleted items"),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> List[ItemRead]:
    items = await services.catalog.list_items(include_inactive=include_inactive)
    return [ItemRead.from_item(i) for i in items]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ItemRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register item",
    description="Register an item with no stock. SKU and barcode must be unique.",
)
async def create_item(
    payload: ItemCreate,
    actor: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> ItemRead:
    item = await services.catalog.register_item(
        name=payload.name,
        sku=payload.sku,
        unit=payload.unit,
        threshold=payload.threshold,
        barcode=payload.barcode,
        image_ref=payload.image_ref,
        created_by=actor.id,
    )
    return ItemRead.from_item(item)


# PUBLIC_INTERFACE
@router.get(
    "/barcode/{barcode}",
    response_model=ItemRead,
    summary="Find item by barcode",
)
async def get_item_by_barcode(
    barcode: str = Path(..., min_length=1),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> ItemRead:
    return ItemRead.from_item(await services.catalog.get_item_by_barcode(barcode))


# PUBLIC_INTERFACE
@router.get(
    "/{item_id}",
    response_model=ItemRead,
    summary="Get item",
)
async def get_item(
    item_id: UUID = Path(...),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> ItemRead:
    return ItemRead.from_item(await services.catalog.get_item(item_id))


# PUBLIC_INTERFACE
@router.put(
    "/{item_id}",
    response_model=ItemRead,
    summary="Update item",
    description="Update descriptive fields. Stock quantities change only through stock operations.",
)
async def update_item(
    payload: ItemUpdate,
    item_id: UUID = Path(...),
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> ItemRead:
    item = await services.catalog.update_item(
        item_id,
        name=payload.name,
        unit=payload.unit,
        threshold=payload.threshold,
        status=payload.status,
        image_ref=payload.image_ref,
    )
    return ItemRead.from_item(item)


# PUBLIC_INTERFACE
@router.post(
    "/{item_id}/barcode",
    response_model=ItemRead,
    summary="Assign barcode",
    description="Assign the given barcode or generate a unique 8-character code.",
)
async def assign_barcode(
    payload: BarcodeAssignRequest,
    item_id: UUID = Path(...),
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> ItemRead:
    item = await services.catalog.assign_barcode(item_id, barcode=payload.barcode, overwrite=payload.overwrite)
    return ItemRead.from_item(item)


# PUBLIC_INTERFACE
@router.get(
    "/{item_id}/audit",
    response_model=ItemAuditRead,
    summary="Audit item stock",
    description="Replay the item's approved transactions and report drift from stored quantities.",
)
async def audit_item(
    item_id: UUID = Path(...),
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> ItemAuditRead:
    audit = await services.reporting.verify_item(item_id)
    return ItemAuditRead(
        item_id=audit.item_id,
        consistent=audit.consistent,
        transactions=audit.transactions,
        drift=[
            LocationDrift(
                location_id=loc,
                stored=audit.stored.get(loc, 0),
                replayed=audit.replayed.get(loc, 0),
            )
            for loc in audit.drift
        ],
    )
