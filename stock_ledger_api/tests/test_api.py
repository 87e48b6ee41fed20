from __future__ import annotations

import asyncio
import json
from uuid import uuid4

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from conftest import run, seed_widget
from stockledger.api import main
from stockledger.api.routes import dashboard as dashboard_routes
from stockledger.api.routes import disposals as disposal_routes
from stockledger.api.routes import stock as stock_routes
from stockledger.core.deps import Actor, actor_from_claims, get_current_actor, require_privileged
from stockledger.core.security import create_access_token
from stockledger.domain.errors import (
    AlreadyProcessed,
    ConcurrentModification,
    Conflict,
    DependencyUnavailable,
    InsufficientStock,
    InvalidArgument,
    NotFound,
    UnknownItem,
)
from stockledger.schemas.ledger import (
    DisposalDecisionRequest,
    DisposalRequest,
    ReviewRequest,
    TransferStockRequest,
)


def _build_request(path: str = "/api/v1/stock/transfer", method: str = "POST") -> Request:
    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "headers": [],
        "query_string": b"",
        "client": ("127.0.0.1", 1234),
    }
    return Request(scope, receive)


@pytest.mark.parametrize(
    "exc, status",
    [
        (UnknownItem(uuid4()), 404),
        (AlreadyProcessed(uuid4(), "approved"), 404),
        (NotFound("Transfer request not found"), 404),
        (InsufficientStock(uuid4(), uuid4(), requested=5, available=1), 400),
        (InvalidArgument("Quantity must be a positive integer"), 400),
        (Conflict("SKU already exists"), 409),
        (ConcurrentModification("Item was modified concurrently"), 409),
        (DependencyUnavailable("Stock store is unavailable"), 503),
    ],
)
def test_ledger_errors_map_to_http_status(exc, status):
    assert main.ledger_error_status(exc) == status


def test_ledger_error_handler_builds_envelope_with_code_and_details():
    item_id, location_id = uuid4(), uuid4()
    exc = InsufficientStock(item_id, location_id, requested=5, available=1)
    response = asyncio.run(main.ledger_error_handler(_build_request(), exc))
    body = json.loads(response.body)

    assert response.status_code == 400
    assert body["status"] == 400
    assert body["error"]["type"] == "insufficient_stock"
    assert body["error"]["details"] == {
        "item_id": str(item_id),
        "location_id": str(location_id),
        "requested": 5,
        "available": 1,
    }
    assert body["path"] == "/api/v1/stock/transfer"
    assert body["method"] == "POST"


def test_token_claims_resolve_actor_and_privilege():
    user_id = uuid4()
    token = create_access_token(str(user_id), "admin")
    actor = run(get_current_actor(token))
    assert actor == Actor(id=user_id, role="admin", is_privileged=True)

    staff = actor_from_claims({"sub": str(uuid4()), "role": "staff"})
    assert staff.is_privileged is False
    with pytest.raises(HTTPException) as forbidden:
        run(require_privileged(staff))
    assert forbidden.value.status_code == 403

    with pytest.raises(HTTPException) as invalid:
        actor_from_claims({"sub": "not-a-uuid", "role": "admin"})
    assert invalid.value.status_code == 401
    with pytest.raises(HTTPException):
        run(get_current_actor("garbage"))


def test_staff_transfer_goes_through_admin_review(services):
    staff = Actor(id=uuid4(), role="staff", is_privileged=False)
    admin = Actor(id=uuid4(), role="admin", is_privileged=True)

    async def scenario():
        widget, loc_a, loc_b = await seed_widget(services, quantity_at_a=15)
        requested = await stock_routes.transfer_stock(
            TransferStockRequest(
                item_id=widget.id, from_location_id=loc_a.id, to_location_id=loc_b.id, quantity=5
            ),
            actor=staff,
            services=services,
        )
        queue = await stock_routes.pending_transfers(_=admin, services=services)
        reviewed = await stock_routes.review_transfer(
            ReviewRequest(approve=True), transaction_id=requested.id, actor=admin, services=services
        )
        board = await dashboard_routes.get_dashboard(_=staff, services=services)
        return requested, queue, reviewed, board

    requested, queue, reviewed, board = run(scenario())
    assert requested.status.value == "pending"
    assert requested.created_by == staff.id
    assert [t.id for t in queue] == [requested.id]
    assert reviewed.status.value == "approved"
    assert reviewed.approved_by == admin.id
    assert reviewed.from_location_id == requested.from_location_id
    assert board.summary.pending_transfers == 0
    assert board.summary.total_stock == 15
    assert board.recent_transactions[0].kind.value == "TRANSFER"


def test_disposal_decision_keeps_the_requesters_note(services):
    staff = Actor(id=uuid4(), role="staff", is_privileged=False)
    admin = Actor(id=uuid4(), role="admin", is_privileged=True)

    async def scenario():
        widget, loc_a, _ = await seed_widget(services, quantity_at_a=4)
        requested = await disposal_routes.request_disposal(
            DisposalRequest(
                item_id=widget.id, location_id=loc_a.id, quantity=1, reason="Broken",
                note="cracked handle", photo_ref="photos/1.jpg",
            ),
            actor=staff,
            services=services,
        )
        decided = await disposal_routes.decide_disposal(
            DisposalDecisionRequest(approve=True), transaction_id=requested.id, actor=admin, services=services
        )
        return requested, decided

    requested, decided = run(scenario())
    assert requested.status.value == "pending"
    assert decided.status.value == "approved"
    assert decided.approved_by == admin.id
    assert decided.note == "cracked handle"
    assert decided.photo_ref == "photos/1.jpg"
