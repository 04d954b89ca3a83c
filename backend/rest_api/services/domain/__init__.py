"""
Domain Services.

Routers stay thin and delegate to one service per area:

    Router (thin controller)
        ↓
    Service (business logic, transactions, events)
        ↓
    Model (SQLAlchemy entity)

Usage:
    from rest_api.services.domain import OrderService

    service = OrderService(db, broadcaster)
    order = service.create_order(table_number=3, items=body.items)
"""

from .menu_service import MenuService
from .table_service import TableService
from .order_service import OrderService
from .session_service import SessionService
from .assignment_service import AssignmentService
from .auth_service import AuthService

__all__ = [
    "MenuService",
    "TableService",
    "OrderService",
    "SessionService",
    "AssignmentService",
    "AuthService",
]
