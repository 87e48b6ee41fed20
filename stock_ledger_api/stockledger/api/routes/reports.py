from __future__ import annotations

import io
from datetime import datetime
from typing import Optional
from uuid import UUID

import pandas as pd
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from stockledger.core.deps import Actor, get_services, require_privileged
from stockledger.domain.enums import TransactionKind, TransactionStatus
from stockledger.services.container import ServiceContainer
from stockledger.services.exports import stock_levels_frame, transactions_frame

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def export_dataframe(
    df: pd.DataFrame,
    filename_base: str,
    export_format: str,
) -> StreamingResponse:
    """
    Convert DataFrame to the requested format and return a StreamingResponse.

    Supported formats:
      - csv: text/csv (also the fallback for unknown formats)
      - xlsx: application/vnd.openxmlformats-officedocument.spreadsheetml.sheet
    """
    export_format = (export_format or "csv").lower()
    if export_format in ("xlsx", "excel"):
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Report")
        buffer.seek(0)
        headers = {
            "Content-Disposition": f'attachment; filename="{filename_base}.xlsx"'
        }
        return StreamingResponse(buffer, media_type=XLSX_MEDIA_TYPE, headers=headers)

    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    buffer.seek(0)
    headers = {
        "Content-Disposition": f'attachment; filename="{filename_base}.csv"'
    }
    return StreamingResponse(buffer, media_type="text/csv", headers=headers)


# PUBLIC_INTERFACE
@router.get(
    "/stock-levels",
    summary="Stock levels report",
    description="Exports every active item with its quantity per location, total stock and low/sufficient status.",
    response_description="File stream (CSV/XLSX)",
)
async def stock_levels_report(
    format: str = Query("csv", description="Export format: csv | xlsx"),
    include_inactive: bool = Query(False, description="Include soft-deleted items"),
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> StreamingResponse:
    items = await services.catalog.list_items(include_inactive=include_inactive)
    locations = await services.catalog.list_locations(include_inactive=True)
    return export_dataframe(stock_levels_frame(items, locations), "stock_levels", format)


# PUBLIC_INTERFACE
@router.get(
    "/transactions",
    summary="Ledger history report",
    description="Exports ledger transactions newest first, with the same filters as the transaction list.",
    response_description="File stream (CSV/XLSX)",
)
async def transactions_report(
    format: str = Query("csv", description="Export format: csv | xlsx"),
    kind: Optional[TransactionKind] = Query(None, description="Filter by kind"),
    status: Optional[TransactionStatus] = Query(None, description="Filter by workflow status"),
    item_id: Optional[UUID] = Query(None, description="Filter by item"),
    start: Optional[datetime] = Query(None, description="Created at or after (ISO-8601)"),
    end: Optional[datetime] = Query(None, description="Created at or before (ISO-8601)"),
    _: Actor = Depends(require_privileged),
    services: ServiceContainer = Depends(get_services),
) -> StreamingResponse:
    txns = await services.reporting.all_transactions(
        kind=kind, status=status, item_id=item_id, start=start, end=end
    )
    items = await services.catalog.list_items(include_inactive=True)
    locations = await services.catalog.list_locations(include_inactive=True)
    return export_dataframe(transactions_frame(txns, items, locations), "ledger_history", format)
