"""
Table and Session Models: Table, TableSession.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import TableStatus

from .base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from .order import Order
    from .user import User


class Table(TimestampMixin, Base):
    """
    Physical table in the dining room.
    table_number is the stable identifier used by sessions and orders.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    table_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=TableStatus.AVAILABLE, nullable=False, index=True
    )
    # Weak reference: removing the waiter leaves the table unassigned
    waiter_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True, index=True
    )

    waiter: Mapped[Optional["User"]] = relationship(back_populates="assigned_tables")
    sessions: Mapped[list["TableSession"]] = relationship(back_populates="table")


def _new_session_id() -> str:
    return str(uuid.uuid4())


class TableSession(Base):
    """
    One continuous visit by one device to one table.
    Several sessions may be active at the same table.
    """

    __tablename__ = "table_session"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_session_id)
    table_number: Mapped[int] = mapped_column(
        Integer, ForeignKey("restaurant_table.table_number"), nullable=False
    )
    device_id: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True
    )
    customer_name: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_table_session_table_active", "table_number", "is_active"),
        Index("ix_table_session_active_activity", "is_active", "last_activity"),
    )

    table: Mapped["Table"] = relationship(back_populates="sessions")
    orders: Mapped[list["Order"]] = relationship(back_populates="session")
