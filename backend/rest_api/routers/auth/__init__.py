"""
Authentication routers - /api/auth/*
Handles staff registration, customer sign-up, login and user info.
"""

from .routes import router

__all__ = ["router"]
