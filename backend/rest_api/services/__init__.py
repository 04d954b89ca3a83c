"""
Services module for business logic.

- domain/: one application service per area (menu, tables, sessions,
  orders, assignments, auth)
- mappers: ORM entity to response schema conversion
- base_service: shared constructor and event publishing

Usage:
    from rest_api.services.domain import OrderService
    service = OrderService(db, broadcaster)
    order = service.create_order(table_number=5, items=body.items)
"""

from .base_service import BaseService
from .domain import (
    AssignmentService,
    AuthService,
    MenuService,
    OrderService,
    SessionService,
    TableService,
)

__all__ = [
    "BaseService",
    "AssignmentService",
    "AuthService",
    "MenuService",
    "OrderService",
    "SessionService",
    "TableService",
]
