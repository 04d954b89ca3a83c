"""
Orders router.
Customers create and cancel orders anonymously; kitchen, waiters and
admins list orders and move them through the status flow.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from rest_api.core.dependencies import get_broadcaster
from rest_api.services.domain import OrderService
from shared.config.constants import Roles
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.auth import authorize, ctx_user_id
from shared.security.rate_limit import limiter
from shared.utils.schemas import (
    CreateOrderRequest,
    OrderOutput,
    SuccessResponse,
    UpdateOrderStatusRequest,
)
from ws_gateway.broadcaster import Broadcaster


router = APIRouter(prefix="/api/orders", tags=["orders"])

require_staff = authorize(*Roles.STAFF)


@router.post("", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit_orders)
def create_order(
    request: Request,
    body: CreateOrderRequest,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> OrderOutput:
    """
    Submit an order.

    Body: {sessionId?, tableNumber, items: [{menuItemId, quantity}]}
    Prices are copied from the menu at this moment.
    """
    return OrderService(db, broadcaster).create_order(
        table_number=body.table_number,
        items=body.items,
        session_id=body.session_id,
    )


@router.get("", response_model=list[OrderOutput])
def list_orders(
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(require_staff),
) -> list[OrderOutput]:
    """
    Orders newest first, optionally filtered by ?status=.

    Waiters only see orders for their assigned tables.
    """
    return OrderService(db).list_orders(
        requester_role=ctx["role"],
        requester_id=ctx_user_id(ctx),
        status=status_filter,
    )


@router.get("/{order_id}", response_model=OrderOutput)
def get_order(order_id: int, db: Session = Depends(get_db)) -> OrderOutput:
    return OrderService(db).get_order(order_id)


@router.patch("/{order_id}/status", response_model=OrderOutput)
def update_order_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    ctx: dict[str, Any] = Depends(require_staff),
) -> OrderOutput:
    """Set an order's status. Requires KITCHEN, WAITER or ADMIN role."""
    return OrderService(db, broadcaster).update_status(order_id, body.status)


@router.delete("/{order_id}", response_model=SuccessResponse)
def cancel_order(
    order_id: int,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> SuccessResponse:
    """Cancel an order that the kitchen has not started (status Pending)."""
    OrderService(db, broadcaster).cancel_order(order_id)
    return SuccessResponse(message="Order cancelled")
