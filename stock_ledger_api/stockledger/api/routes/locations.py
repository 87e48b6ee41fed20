from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from stockledger.core.deps import Actor, get_current_actor, get_services, require_privileged
from stockledger.schemas.catalog import LocationCreate, LocationRead, LocationUpdate
from stockledger.services.container import ServiceContainer

router = APIRouter(prefix="/locations", tags=["Locations"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[LocationRead],
    summary="List locations",
    description="List locations ordered by name.",
)
async def list_locations(
    include_inactive: bool = Query(False, description="Include deactivated locations"),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> List[LocationRead]:
    records = await services.catalog.list_locations(include_inactive=include_inactive)
    return [LocationRead.model_validate(r) for r in records]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=LocationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create location",
)
async def create_location(
    payload: LocationCreate,
    actor: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> LocationRead:
    location = await services.catalog.create_location(payload.name, payload.address, created_by=actor.id)
    return LocationRead.model_validate(location)


# PUBLIC_INTERFACE
@router.put(
    "/{location_id}",
    response_model=LocationRead,
    summary="Update location",
)
async def update_location(
    payload: LocationUpdate,
    location_id: UUID = Path(...),
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> LocationRead:
    location = await services.catalog.update_location(
        location_id, name=payload.name, address=payload.address, is_active=payload.is_active
    )
    return LocationRead.model_validate(location)


# PUBLIC_INTERFACE
@router.post(
    "/{location_id}/deactivate",
    response_model=LocationRead,
    summary="Deactivate location",
    description="Locations are never deleted. Stock already held there is kept.",
)
async def deactivate_location(
    location_id: UUID = Path(...),
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> LocationRead:
    return LocationRead.model_validate(await services.catalog.deactivate_location(location_id))
