"""
Table routers - /api/tables/*
Table registry, per-table orders, payment and waiter calls.
"""

from .routes import router

__all__ = ["router"]
