from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.core.deps import actor_from_claims, get_services
from stockledger.core.logging import actor_id_var, configure_logging, correlation_id_var
from stockledger.core.security import decode_token
from stockledger.core.settings import get_app_settings
from stockledger.db.run_migrations import main as run_alembic
from stockledger.db.seed import seed_demo_data
from stockledger.db.session import get_async_session
from stockledger.domain.errors import (
    ConcurrentModification,
    Conflict,
    DependencyUnavailable,
    InsufficientStock,
    InvalidArgument,
    LedgerError,
    NotFound,
)
from stockledger.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from stockledger.schemas.realtime import WsEnvelope
from stockledger.services.realtime import broadcast_manager

# Routers
from stockledger.api.routes.dashboard import router as dashboard_router
from stockledger.api.routes.disposals import router as disposals_router
from stockledger.api.routes.items import router as items_router
from stockledger.api.routes.locations import router as locations_router
from stockledger.api.routes.repairs import router as repairs_router
from stockledger.api.routes.reports import router as reports_router
from stockledger.api.routes.stock import router as stock_router
from stockledger.api.routes.transactions import router as transactions_router

# Configure structured logging once at import
configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

# Most specific class wins; see ledger_error_status().
LEDGER_ERROR_STATUS: Dict[type, int] = {
    NotFound: 404,
    InsufficientStock: 400,
    InvalidArgument: 400,
    Conflict: 409,
    ConcurrentModification: 409,
    DependencyUnavailable: 503,
}

openapi_tags = [
    {"name": "Health", "description": "Liveness and readiness probes."},
    {"name": "Items", "description": "Item catalog, barcodes and stock audit."},
    {"name": "Locations", "description": "Location registry."},
    {"name": "Stock", "description": "Stock additions, transfers and transfer review."},
    {"name": "Disposals", "description": "Disposal requests and approvals."},
    {"name": "Repairs", "description": "Repair tickets."},
    {"name": "Transactions", "description": "Ledger transaction history."},
    {"name": "Dashboard", "description": "Stock and workflow overview."},
    {"name": "Reports", "description": "Exportable stock and ledger reports (CSV/Excel)."},
    {
        "name": "WebSocket",
        "description": "WebSocket usage, endpoints, and connection details.",
    },
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with a correlation_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    token_actor = actor_id_var.set(None)
    request.state.correlation_id = corr

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        actor_id_var.reset(token_actor)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    ts = datetime.now(tz=timezone.utc)
    corr = getattr(request.state, "correlation_id", None)
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=corr,
        actor_id=actor_id_var.get(),
        path=request.url.path,
        method=request.method,
        timestamp=ts,
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


# PUBLIC_INTERFACE
def ledger_error_status(exc: LedgerError) -> int:
    """HTTP status for a ledger error, resolved through its class hierarchy."""
    for cls in type(exc).__mro__:
        if cls in LEDGER_ERROR_STATUS:
            return LEDGER_ERROR_STATUS[cls]
    return 500


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """
    Map typed ledger failures to the standard error envelope, keeping their code and details.
    """
    status_code = ledger_error_status(exc)
    if status_code >= 500:
        logger.error("Ledger dependency failure: %s", exc.message)
    else:
        logger.info("Ledger request rejected (%s): %s", exc.code, exc.message)
    return _build_error_response(
        request=request,
        status_code=status_code,
        error_type=exc.code,
        message=exc.message,
        details=exc.details or None,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup.

    This ensures the database schema is up to date. Seeding is opt-in via settings.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            await asyncio.to_thread(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)
            # Do not crash the app in case of transient DB issues; rely on retries or later readiness probes.

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_demo_data(get_services())
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)
            # Safe to continue without seed; environments may not require it.


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health/db",
    response_model=MessageResponse,
    summary="Database Readiness",
    description="Runs a trivial query against the stock store.",
    tags=["Health"],
)
async def health_db(session: AsyncSession = Depends(get_async_session)) -> MessageResponse:
    """
    Readiness probe for the stock store.

    Raises:
        DependencyUnavailable: 503 when the database cannot be queried.
    """
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.exception("Database readiness check failed")
        raise DependencyUnavailable("Stock store is unavailable") from exc
    return MessageResponse(message="Database reachable")


# PUBLIC_INTERFACE
@api_v1.get(
    "/websocket-info",
    response_model=Dict[str, Any],
    summary="WebSocket Usage Information",
    description="Connection details for the notification WebSocket endpoint.",
    tags=["WebSocket"],
)
def websocket_info() -> Dict[str, Any]:
    """
    Describe how to connect to WebSocket endpoints in this service.

    Returns:
        JSON object with usage notes and endpoints list describing query params and message format.
    """
    return {
        "usage": (
            "Connect with a valid user JWT as a 'token' query parameter. "
            "Message format is JSON with fields: { type: string, payload: object, at: ISO-8601, channel?: string }."
        ),
        "security": {
            "token": "JWT must contain 'sub' (user id) and 'role'.",
        },
        "endpoints": [
            {
                "path": "/ws/notifications",
                "summary": "Ledger notifications for everyone and for the caller's role (server push).",
                "query": ["token"],
                "messages": {
                    "client_to_server": ["ping"],
                    "server_to_client": ["notification"],
                },
            }
        ],
        "notes": "WebSocket endpoints are not represented in OpenAPI schema; refer to this endpoint for usage.",
    }


# Include all routers under /api/v1
api_v1.include_router(items_router)
api_v1.include_router(locations_router)
api_v1.include_router(stock_router)
api_v1.include_router(disposals_router)
api_v1.include_router(repairs_router)
api_v1.include_router(transactions_router)
api_v1.include_router(dashboard_router)
api_v1.include_router(reports_router)

# Attach api_v1 to app
app.include_router(api_v1)


async def _validate_ws_and_get_role(websocket: WebSocket) -> Optional[str]:
    """
    Validate an accepted WebSocket by its 'token' query param.

    Returns:
        The caller's role, or None after closing the socket with 4401.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401)
        return None
    try:
        actor = actor_from_claims(decode_token(token))
    except Exception:
        await websocket.close(code=4401)
        return None
    return actor.role


# PUBLIC_INTERFACE
@app.websocket("/ws/notifications")
async def ws_notifications(websocket: WebSocket):
    """
    WebSocket endpoint for ledger notifications.

    Security:
      - Query param 'token' must be a valid JWT.
    Messages:
      - Server -> Client: type='notification' payload=NotificationPayload
      - Client -> Server: optional 'ping' to keepalive; other messages ignored.
    """
    await websocket.accept()
    role = await _validate_ws_and_get_role(websocket)
    if role is None:
        return

    await broadcast_manager.connect(websocket, role)
    await websocket.send_json(
        WsEnvelope(type="subscribed", payload={"topics": broadcast_manager.topics_for(role)}).model_dump(mode="json")
    )

    try:
        while True:
            msg = await websocket.receive_text()
            if msg and msg.lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        await broadcast_manager.disconnect(websocket, role)
    except Exception:
        logger.exception("Error on ws_notifications connection")
        await broadcast_manager.disconnect(websocket, role)
        await websocket.close()
