"""
Order routers - /api/orders/*
Customer order submission and cancellation, staff status changes.
"""

from .routes import router

__all__ = ["router"]
