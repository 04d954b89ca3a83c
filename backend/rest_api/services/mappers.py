"""
Mapping between ORM rows and output records.

Services never hand ORM objects or raw rows to routers; every read goes
through one of these functions.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from rest_api.models import MenuItem, Order, OrderItem, Table, TableSession, User
from shared.utils.schemas import (
    ActiveSessionOutput,
    AssignedWaiterInfo,
    MenuItemOutput,
    OrderItemOutput,
    OrderOutput,
    SessionOutput,
    TableOutput,
    UserOutput,
    WaiterOutput,
)

CENT = Decimal("0.01")


def to_money(value: Decimal | float | int | None) -> Decimal:
    """Normalize a store value to a two-decimal Decimal."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def menu_item_to_output(item: MenuItem) -> MenuItemOutput:
    return MenuItemOutput(
        id=item.id,
        name=item.name,
        category=item.category,
        price=to_money(item.price),
        description=item.description,
    )


def table_to_output(table: Table) -> TableOutput:
    waiter = table.waiter
    return TableOutput(
        id=table.id,
        table_number=table.table_number,
        capacity=table.capacity,
        status=table.status,
        waiter_id=table.waiter_id,
        waiter_username=waiter.username if waiter else None,
        waiter_name=waiter.full_name if waiter else None,
    )


def order_item_to_output(item: OrderItem) -> OrderItemOutput:
    menu_item = item.menu_item
    return OrderItemOutput(
        id=item.id,
        menu_item_id=item.menu_item_id,
        name=menu_item.name if menu_item else "",
        category=menu_item.category if menu_item else "",
        quantity=item.quantity,
        price=to_money(item.price),
    )


def order_to_output(order: Order) -> OrderOutput:
    return OrderOutput(
        id=order.id,
        order_number=order.order_number,
        session_id=order.session_id,
        table_number=order.table_number,
        status=order.status,
        total_price=to_money(order.total_price),
        created_at=order.created_at,
        updated_at=order.updated_at,
        paid_at=order.paid_at,
        items=[order_item_to_output(item) for item in order.items],
    )


def session_to_output(session: TableSession) -> SessionOutput:
    return SessionOutput(
        id=session.id,
        table_number=session.table_number,
        device_id=session.device_id,
        customer_id=session.customer_id,
        customer_name=session.customer_name,
        created_at=session.created_at,
        last_activity=session.last_activity,
        is_active=session.is_active,
    )


def active_session_to_output(
    session: TableSession, order_count: int, total_amount: Decimal | None
) -> ActiveSessionOutput:
    return ActiveSessionOutput(
        **session_to_output(session).model_dump(),
        order_count=order_count,
        total_amount=to_money(total_amount),
    )


def user_to_output(user: User) -> UserOutput:
    return UserOutput(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        full_name=user.full_name,
        created_at=user.created_at,
        last_login=user.last_login,
    )


def waiter_to_output(user: User, table_count: int = 0) -> WaiterOutput:
    return WaiterOutput(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        table_count=table_count,
    )


def waiter_to_info(user: User) -> AssignedWaiterInfo:
    return AssignedWaiterInfo(id=user.id, username=user.username, full_name=user.full_name)
