"""
Table assignment routers - /api/table-assignments/*
Which waiter serves which table.
"""

from .routes import router

__all__ = ["router"]
