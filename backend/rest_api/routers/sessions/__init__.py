"""
Session routers - /api/sessions/*
Anonymous customer sessions: open, keep alive, inspect and close.
"""

from .routes import router

__all__ = ["router"]
