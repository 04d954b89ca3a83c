"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderStatus

from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .catalog import MenuItem
    from .table import TableSession


class Order(TimestampMixin, Base):
    """
    A batch of items submitted from a table.

    order_number is sequential within a session. total_price is computed
    once from the item price snapshots and never recalculated.
    """

    # "order" is a reserved SQL keyword
    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_number: Mapped[int] = mapped_column(Integer, nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("table_session.id"), nullable=True, index=True
    )
    table_number: Mapped[int] = mapped_column(
        Integer, ForeignKey("restaurant_table.table_number"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    # Audit only; status is the source of truth for "paid"
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("session_id", "order_number", name="uq_order_session_number"),
        Index("ix_order_table_status", "table_number", "status"),
        Index("ix_order_status_created", "status", "created_at"),
    )

    session: Mapped[Optional["TableSession"]] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    """One line of an order with the unit price captured at order time."""

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("customer_order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("menu_item.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_item_quantity_positive"),)

    order: Mapped["Order"] = relationship(back_populates="items")
    menu_item: Mapped["MenuItem"] = relationship()
