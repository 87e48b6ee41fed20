from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from stockledger.core.deps import Actor, get_current_actor, get_services, require_privileged
from stockledger.domain.entities import OperationMetadata
from stockledger.domain.enums import RepairStatus
from stockledger.schemas.ledger import RepairReturnRequest, RepairSendRequest, RepairTicketRead
from stockledger.services.container import ServiceContainer

router = APIRouter(prefix="/repairs", tags=["Repairs"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[RepairTicketRead],
    summary="List repair tickets",
    description="Repair tickets newest first, optionally filtered by status.",
)
async def list_repair_tickets(
    status_filter: Optional[RepairStatus] = Query(None, alias="status", description="sent, returned or lost"),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> List[RepairTicketRead]:
    tickets = await services.repairs.list_tickets(status=status_filter)
    return [RepairTicketRead.model_validate(t) for t in tickets]


# PUBLIC_INTERFACE
@router.post(
    "/send",
    response_model=RepairTicketRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send for repair",
    description="Debit stock at once and open a repair ticket.",
)
async def send_for_repair(
    payload: RepairSendRequest,
    actor: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> RepairTicketRead:
    ticket = await services.repairs.send_for_repair(
        payload.item_id,
        payload.location_id,
        payload.quantity,
        payload.vendor,
        serial=payload.serial,
        metadata=OperationMetadata(actor_id=actor.id, note=payload.note, photo_ref=payload.photo_ref),
    )
    return RepairTicketRead.model_validate(ticket)


# PUBLIC_INTERFACE
@router.get(
    "/{ticket_id}",
    response_model=RepairTicketRead,
    summary="Get repair ticket",
)
async def get_repair_ticket(
    ticket_id: UUID = Path(...),
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> RepairTicketRead:
    return RepairTicketRead.model_validate(await services.repairs.get_ticket(ticket_id))


# PUBLIC_INTERFACE
@router.post(
    "/{ticket_id}/return",
    response_model=RepairTicketRead,
    summary="Return from repair",
    description="Credit the repaired stock at a location and close the ticket.",
)
async def return_from_repair(
    payload: RepairReturnRequest,
    ticket_id: UUID = Path(...),
    actor: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> RepairTicketRead:
    ticket = await services.repairs.return_from_repair(
        ticket_id, payload.location_id, OperationMetadata(actor_id=actor.id, note=payload.note)
    )
    return RepairTicketRead.model_validate(ticket)


# PUBLIC_INTERFACE
@router.post(
    "/{ticket_id}/lost",
    response_model=RepairTicketRead,
    summary="Mark repair lost",
    description="Close a ticket still with the vendor as lost. No stock is credited.",
)
async def mark_repair_lost(
    ticket_id: UUID = Path(...),
    actor: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> RepairTicketRead:
    return RepairTicketRead.model_validate(await services.repairs.mark_lost(ticket_id, actor.id))
