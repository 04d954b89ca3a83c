"""
Sessions router.
A customer's device opens a session at a table, keeps it alive with
heartbeats and ends it on leaving. No authentication is required; a
customer token, when sent, links the session to the account.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from rest_api.core.dependencies import get_broadcaster
from rest_api.services.domain import OrderService, SessionService
from shared.config.constants import Roles
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.auth import authorize, optional_user_context
from shared.security.rate_limit import limiter
from shared.utils.schemas import (
    ActiveSessionOutput,
    CreateSessionRequest,
    CreateSessionResponse,
    HeartbeatResponse,
    OrderOutput,
    SessionDetailOutput,
    SuccessResponse,
    SweepResponse,
)
from ws_gateway.broadcaster import Broadcaster


router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=CreateSessionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit_sessions)
def create_session(
    request: Request,
    body: CreateSessionRequest,
    db: Session = Depends(get_db),
    ctx: Optional[dict[str, Any]] = Depends(optional_user_context),
) -> CreateSessionResponse:
    """
    Open a new session at a table. Every scan starts a fresh session.

    Body: {tableNumber, deviceId, customerId?, customerName?}
    """
    customer_id = body.customer_id
    if customer_id is None and ctx and ctx.get("role") == Roles.CUSTOMER:
        customer_id = int(ctx["sub"])

    created = SessionService(db).create_session(
        table_number=body.table_number,
        device_id=body.device_id,
        customer_id=customer_id,
        customer_name=body.customer_name,
    )
    return CreateSessionResponse(
        session_id=created.id,
        table_number=created.table_number,
        device_id=created.device_id,
        created_at=created.created_at,
    )


@router.get("/table/{table_number}", response_model=list[ActiveSessionOutput])
def list_table_sessions(table_number: int, db: Session = Depends(get_db)) -> list[ActiveSessionOutput]:
    """Active sessions at a table with their order count and total."""
    return SessionService(db).list_active_for_table(table_number)


@router.post("/cleanup", response_model=SweepResponse)
def cleanup_sessions(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(authorize(Roles.ADMIN)),
) -> SweepResponse:
    """Run the expiry sweep now instead of waiting for the timer. Requires ADMIN role."""
    return SweepResponse(deactivated_count=SessionService(db).sweep())


@router.get("/{session_id}", response_model=SessionDetailOutput)
def get_session(
    session_id: str,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> SessionDetailOutput:
    """Session with its orders, order count and total amount."""
    return SessionService(db, broadcaster).get_session_with_orders(session_id)


@router.post("/{session_id}/heartbeat", response_model=HeartbeatResponse)
def heartbeat(session_id: str, db: Session = Depends(get_db)) -> HeartbeatResponse:
    return HeartbeatResponse(last_activity=SessionService(db).heartbeat(session_id))


@router.delete("/{session_id}", response_model=SuccessResponse)
def end_session(session_id: str, db: Session = Depends(get_db)) -> SuccessResponse:
    """End a session. Ending an already-ended session succeeds."""
    SessionService(db).end_session(session_id)
    return SuccessResponse(message="Session ended")


@router.get("/{session_id}/orders", response_model=list[OrderOutput])
def get_session_orders(session_id: str, db: Session = Depends(get_db)) -> list[OrderOutput]:
    return OrderService(db).get_orders_for_session(session_id)
