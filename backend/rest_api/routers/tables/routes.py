"""
Tables router.
Table registry reads, per-table orders, unpaid totals, payment and
waiter calls.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rest_api.core.dependencies import get_broadcaster
from rest_api.services.domain import OrderService, TableService
from shared.config.constants import Roles
from shared.config.logging import table_logger as logger
from shared.infrastructure.db import get_db
from shared.security.auth import authorize
from shared.utils.schemas import (
    CallWaiterRequest,
    CallWaiterResponse,
    MarkPaidResponse,
    OrderOutput,
    TableOutput,
    UnpaidTotalOutput,
)
from ws_gateway.broadcaster import Broadcaster


router = APIRouter(prefix="/api/tables", tags=["tables"])


@router.get("", response_model=list[TableOutput])
def list_tables(db: Session = Depends(get_db)) -> list[TableOutput]:
    """All tables with status and assigned waiter."""
    return TableService(db).list_tables()


@router.get("/{table_number}", response_model=TableOutput)
def get_table(table_number: int, db: Session = Depends(get_db)) -> TableOutput:
    return TableService(db).get_table(table_number)


@router.get("/{table_number}/orders", response_model=list[OrderOutput])
def get_table_orders(table_number: int, db: Session = Depends(get_db)) -> list[OrderOutput]:
    """Every order at the table, newest first."""
    return OrderService(db).get_orders_for_table(table_number)


@router.get("/{table_number}/unpaid-total", response_model=UnpaidTotalOutput)
def get_unpaid_total(table_number: int, db: Session = Depends(get_db)) -> UnpaidTotalOutput:
    """Amount still owed at the table (orders not yet Paid)."""
    total = OrderService(db).get_unpaid_total(table_number)
    return UnpaidTotalOutput(table_number=table_number, unpaid_total=total)


@router.post("/{table_number}/mark-paid", response_model=MarkPaidResponse)
def mark_table_paid(
    table_number: int,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    ctx: dict[str, Any] = Depends(authorize(Roles.WAITER, Roles.KITCHEN, Roles.ADMIN)),
) -> MarkPaidResponse:
    """
    Settle the table: every unpaid order becomes Paid.

    Safe to repeat; a settled table reports ordersPaid=0.
    Requires WAITER, KITCHEN or ADMIN role.
    """
    result = OrderService(db, broadcaster).mark_table_paid(table_number)
    logger.info(
        "Table payment recorded",
        table_number=table_number,
        orders_paid=result.orders_paid,
        user_id=ctx.get("sub"),
    )
    return result


@router.post("/{table_number}/call-waiter", response_model=CallWaiterResponse)
def call_waiter(
    table_number: int,
    body: CallWaiterRequest | None = None,
    db: Session = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> CallWaiterResponse:
    """Ask for a waiter. Floor staff are notified over the realtime channel."""
    customer_name = body.customer_name if body else None
    return TableService(db, broadcaster).call_waiter(table_number, customer_name)
