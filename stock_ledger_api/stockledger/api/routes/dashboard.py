from __future__ import annotations

from fastapi import APIRouter, Depends

from stockledger.core.deps import Actor, get_current_actor, get_services
from stockledger.schemas.catalog import ItemRead
from stockledger.schemas.ledger import DashboardRead, DashboardSummaryRead, TransactionRead
from stockledger.services.container import ServiceContainer

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=DashboardRead,
    summary="Dashboard",
    description="Stock totals, low-stock items, open workflow counts and the ten latest transactions.",
)
async def get_dashboard(
    _: Actor = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_services),
) -> DashboardRead:
    data = await services.reporting.dashboard_summary()
    return DashboardRead(
        summary=DashboardSummaryRead(
            total_items=data.total_items,
            total_stock=data.total_stock,
            low_stock_count=len(data.low_stock_items),
            pending_repairs=data.pending_repairs,
            pending_disposals=data.pending_disposals,
            pending_transfers=data.pending_transfers,
        ),
        low_stock_items=[ItemRead.from_item(i) for i in data.low_stock_items],
        recent_transactions=[TransactionRead.from_transaction(t) for t in data.recent_transactions],
    )
