"""
SQLAlchemy ORM Models Package.

- base: Base class, TimestampMixin, utcnow
- user: User (staff and customers)
- catalog: MenuItem
- table: Table, TableSession
- order: Order, OrderItem
"""

from .base import Base, TimestampMixin, utcnow
from .user import User
from .catalog import MenuItem
from .table import Table, TableSession
from .order import Order, OrderItem

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "User",
    "MenuItem",
    "Table",
    "TableSession",
    "Order",
    "OrderItem",
]
