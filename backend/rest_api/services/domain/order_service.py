"""
Order Service - order creation, status changes, cancellation and payment.

Orders are numbered per session: the next number is computed while the
session row is locked, inside the same transaction as the insert, and a
unique (session_id, order_number) constraint rejects anything that slips
through on backends without row locks. Events are published only after
the commit succeeds.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Protocol

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from rest_api.models import MenuItem, Order, OrderItem, Table, TableSession, utcnow
from rest_api.services.base_service import BaseService
from rest_api.services.mappers import order_to_output, to_money
from shared.config.constants import Events, OrderStatus, Roles, STATUS_EVENTS, STAFF_ROLES, TableStatus
from shared.config.logging import order_logger as logger
from shared.infrastructure.db import is_unique_violation, safe_commit, translate_store_errors
from shared.utils.exceptions import (
    AuthorizationError,
    InvalidStatusError,
    MenuItemNotFoundError,
    OrderNotCancellableError,
    OrderNotFoundError,
    SessionNotFoundError,
    TableNotFoundError,
    ValidationError,
)
from shared.utils.schemas import MarkPaidResponse, OrderOutput


class OrderLine(Protocol):
    """Anything with a menu item id and a quantity (e.g. OrderItemInput)."""

    menu_item_id: int
    quantity: int


def compute_total(lines: Sequence[tuple[Decimal, int]]) -> Decimal:
    """Sum of unit price times quantity, rounded to cents."""
    return to_money(sum((price * qty for price, qty in lines), Decimal("0")))


class OrderService(BaseService):
    """Order lifecycle: Pending -> Preparing -> Ready -> Served, with Paid as override."""

    MAX_NUMBERING_ATTEMPTS = 3

    # =========================================================================
    # Reads
    # =========================================================================

    def _hydrated(self):
        return select(Order).options(
            selectinload(Order.items).joinedload(OrderItem.menu_item)
        )

    def _require_table(self, table_number: int) -> None:
        with translate_store_errors("get table"):
            found = self._db.execute(
                select(Table.id).where(Table.table_number == table_number)
            ).first()
        if found is None:
            raise TableNotFoundError(table_number)

    def _load(self, order_id: int) -> Order:
        with translate_store_errors("get order"):
            order = self._db.execute(
                self._hydrated().where(Order.id == order_id)
            ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def get_order(self, order_id: int) -> OrderOutput:
        return order_to_output(self._load(order_id))

    def get_orders_for_session(self, session_id: str) -> list[OrderOutput]:
        with translate_store_errors("get session orders"):
            if self._db.get(TableSession, session_id) is None:
                raise SessionNotFoundError(session_id)
            orders = self._db.execute(
                self._hydrated()
                .where(Order.session_id == session_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
            ).scalars().all()
        return [order_to_output(o) for o in orders]

    def get_orders_for_table(self, table_number: int) -> list[OrderOutput]:
        self._require_table(table_number)
        with translate_store_errors("get table orders"):
            orders = self._db.execute(
                self._hydrated()
                .where(Order.table_number == table_number)
                .order_by(Order.created_at.desc(), Order.id.desc())
            ).scalars().all()
        return [order_to_output(o) for o in orders]

    def list_orders(
        self,
        requester_role: str,
        requester_id: int | None = None,
        status: str | None = None,
    ) -> list[OrderOutput]:
        """
        Orders newest first. Kitchen and admin see everything; a waiter only
        sees orders for tables currently assigned to them.
        """
        if requester_role not in STAFF_ROLES:
            raise AuthorizationError(Roles.STAFF, role=requester_role)
        if status is not None and status not in OrderStatus.ALL:
            raise InvalidStatusError(status, OrderStatus.ALL)

        stmt = self._hydrated().order_by(Order.created_at.desc(), Order.id.desc())
        if status is not None:
            stmt = stmt.where(Order.status == status)
        if requester_role == Roles.WAITER:
            if requester_id is None:
                return []
            stmt = stmt.join(Table, Table.table_number == Order.table_number).where(
                Table.waiter_id == requester_id
            )

        with translate_store_errors("list orders"):
            orders = self._db.execute(stmt).scalars().all()
        return [order_to_output(o) for o in orders]

    def get_unpaid_total(self, table_number: int) -> Decimal:
        """Sum of total_price over the table's orders whose status is not Paid."""
        self._require_table(table_number)
        stmt = select(func.coalesce(func.sum(Order.total_price), 0)).where(
            Order.table_number == table_number,
            Order.status != OrderStatus.PAID,
        )
        with translate_store_errors("get unpaid total"):
            total = self._db.execute(stmt).scalar_one()
        return to_money(total)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_order(
        self,
        table_number: int | None,
        items: Sequence[OrderLine],
        session_id: str | None = None,
    ) -> OrderOutput:
        """
        Create an order with a price snapshot for every line.

        All input is validated before anything is written; the order and
        its items are inserted in one transaction.

        Raises:
            ValidationError: missing table number, empty items, bad quantity,
                unknown menu item, unknown table, unknown session, or
                session/table mismatch.

        Ordering into a session the sweep already closed reopens it and
        marks the table Occupied again.
        """
        if table_number is None:
            raise ValidationError("tableNumber is required")
        if not items:
            raise ValidationError("Order must contain at least one item")
        for line in items:
            if line.quantity is None or line.quantity < 1:
                raise ValidationError(
                    "Item quantity must be at least 1", menu_item_id=line.menu_item_id
                )

        with translate_store_errors("validate order", self._db):
            if self._db.execute(
                select(Table.id).where(Table.table_number == table_number)
            ).first() is None:
                raise ValidationError(f"Table {table_number} does not exist", table_number=table_number)

            if session_id is not None:
                session = self._db.get(TableSession, session_id)
                if session is None:
                    raise ValidationError(f"Session {session_id} does not exist", session_id=session_id)
                if session.table_number != table_number:
                    raise ValidationError(
                        f"Session {session_id} belongs to table {session.table_number}",
                        session_id=session_id,
                        table_number=table_number,
                    )

            menu_ids = {line.menu_item_id for line in items}
            menu_rows = self._db.execute(
                select(MenuItem.id, MenuItem.price).where(MenuItem.id.in_(menu_ids))
            ).all()
        prices = {row.id: to_money(row.price) for row in menu_rows}

        for line in items:
            if line.menu_item_id not in prices:
                raise MenuItemNotFoundError(line.menu_item_id)

        snapshot = [(line.menu_item_id, prices[line.menu_item_id], line.quantity) for line in items]
        total = compute_total([(price, qty) for _, price, qty in snapshot])

        with translate_store_errors("create order", self._db):
            order_id, order_number = self._insert_with_number(
                table_number, session_id, snapshot, total
            )

        output = self.get_order(order_id)
        logger.info(
            "Order created",
            order_id=order_id,
            order_number=order_number,
            session_id=session_id,
            table_number=table_number,
            total_price=str(total),
            items_count=len(snapshot),
        )
        self._emit(Events.ORDER_CREATED, output)
        return output

    def _next_order_number(self, session_id: str | None) -> int:
        if session_id is None:
            return 1
        # Serializes concurrent submissions for the same session
        self._db.execute(
            select(TableSession.id).where(TableSession.id == session_id).with_for_update()
        )
        current = self._db.execute(
            select(func.max(Order.order_number)).where(Order.session_id == session_id)
        ).scalar()
        return (current or 0) + 1

    def _keep_session_open(self, session_id: str, table_number: int) -> None:
        """Ordering counts as activity; a swept session is reactivated."""
        self._db.execute(
            update(TableSession)
            .where(TableSession.id == session_id)
            .values(is_active=True, last_activity=utcnow())
        )
        self._db.execute(
            update(Table)
            .where(Table.table_number == table_number, Table.status != TableStatus.OCCUPIED)
            .values(status=TableStatus.OCCUPIED)
        )

    def _insert_with_number(
        self,
        table_number: int,
        session_id: str | None,
        snapshot: list[tuple[int, Decimal, int]],
        total: Decimal,
    ) -> tuple[int, int]:
        attempt = 0
        while True:
            attempt += 1
            try:
                order_number = self._next_order_number(session_id)
                if session_id is not None:
                    self._keep_session_open(session_id, table_number)
                order = Order(
                    order_number=order_number,
                    session_id=session_id,
                    table_number=table_number,
                    status=OrderStatus.PENDING,
                    total_price=total,
                )
                order.items = [
                    OrderItem(menu_item_id=menu_item_id, quantity=qty, price=price)
                    for menu_item_id, price, qty in snapshot
                ]
                self._db.add(order)
                self._db.flush()
                order_id = order.id
                safe_commit(self._db)
                return order_id, order_number
            except IntegrityError as exc:
                self._db.rollback()
                if not is_unique_violation(exc) or attempt >= self.MAX_NUMBERING_ATTEMPTS:
                    raise
                logger.warning(
                    "Order number collision, retrying",
                    session_id=session_id,
                    attempt=attempt,
                )

    # =========================================================================
    # Status changes
    # =========================================================================

    def update_status(self, order_id: int, new_status: str | None) -> OrderOutput:
        """
        Set an order's status.

        Only unknown status values are rejected. Entering Paid stamps paid_at;
        leaving Paid clears it.
        """
        if not new_status or new_status not in OrderStatus.ALL:
            raise InvalidStatusError(str(new_status), OrderStatus.ALL)

        order = self._load(order_id)
        previous = order.status
        order.status = new_status
        if new_status == OrderStatus.PAID and previous != OrderStatus.PAID:
            order.paid_at = utcnow()
        elif new_status != OrderStatus.PAID:
            order.paid_at = None

        with translate_store_errors("update order status", self._db):
            safe_commit(self._db)

        output = self.get_order(order_id)
        logger.info(
            "Order status updated",
            order_id=order_id,
            from_status=previous,
            to_status=new_status,
        )
        self._emit(Events.ORDER_UPDATED, output)
        status_event = STATUS_EVENTS.get(new_status)
        if status_event:
            self._emit(status_event, output)
        return output

    def cancel_order(self, order_id: int) -> None:
        """
        Delete a Pending order together with its items.

        Raises:
            OrderNotFoundError: unknown id.
            OrderNotCancellableError: the order already left Pending.
        """
        with translate_store_errors("cancel order", self._db):
            order = self._db.execute(
                select(Order).where(Order.id == order_id).with_for_update()
            ).scalar_one_or_none()
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.status not in OrderStatus.CANCELLABLE:
                status = order.status
                self._db.rollback()
                raise OrderNotCancellableError(order_id, status)

            table_number = order.table_number
            # delete-orphan cascade removes the items before the order row
            self._db.delete(order)
            safe_commit(self._db)

        logger.info("Order cancelled", order_id=order_id, table_number=table_number)
        self._emit(Events.ORDER_CANCELLED, {"orderId": order_id})

    # =========================================================================
    # Payment
    # =========================================================================

    def mark_table_paid(self, table_number: int) -> MarkPaidResponse:
        """
        Move every unpaid order at the table to Paid.

        Idempotent: a table with nothing unpaid yields ordersPaid=0.
        """
        self._require_table(table_number)

        with translate_store_errors("mark table paid", self._db):
            orders = self._db.execute(
                select(Order)
                .where(
                    Order.table_number == table_number,
                    Order.status != OrderStatus.PAID,
                )
                .order_by(Order.id)
                .with_for_update()
            ).scalars().all()

            paid_at = utcnow()
            for order in orders:
                order.status = OrderStatus.PAID
                order.paid_at = paid_at
            order_ids = [o.id for o in orders]
            safe_commit(self._db)

        if order_ids:
            with translate_store_errors("load paid orders"):
                paid = self._db.execute(
                    self._hydrated().where(Order.id.in_(order_ids)).order_by(Order.id)
                ).scalars().all()
            for order in paid:
                output = order_to_output(order)
                self._emit(Events.ORDER_UPDATED, output)
                self._emit(Events.ORDER_PAID, output)

        logger.info("Table marked paid", table_number=table_number, orders_paid=len(order_ids))
        if order_ids:
            message = f"Marked {len(order_ids)} order(s) as paid for table {table_number}"
        else:
            message = f"No unpaid orders for table {table_number}"
        return MarkPaidResponse(
            orders_paid=len(order_ids),
            order_ids=order_ids,
            message=message,
        )
