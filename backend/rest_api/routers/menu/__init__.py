"""
Menu routers - /api/menu/*
Public, read-only catalog.
"""

from .routes import router

__all__ = ["router"]
