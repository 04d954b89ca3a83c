"""
Authentication router.
Handles staff registration, customer sign-up, login and identity lookup.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from rest_api.services.domain import AuthService
from shared.config.constants import Roles
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.auth import authorize, current_user_context, ctx_user_id
from shared.security.rate_limit import limiter
from shared.utils.schemas import (
    AuthResponse,
    CustomerRegisterRequest,
    LoginRequest,
    StaffRegisterRequest,
    UserOutput,
)


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserOutput, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit_auth)
def register_staff(
    request: Request,
    body: StaffRegisterRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(authorize(Roles.ADMIN)),
) -> UserOutput:
    """Create a kitchen, waiter or admin account. Requires ADMIN role."""
    return AuthService(db).register_staff(
        username=body.username,
        password=body.password,
        role=body.role,
        email=body.email,
        full_name=body.full_name,
    )


@router.post("/register-customer", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit_auth)
def register_customer(
    request: Request,
    body: CustomerRegisterRequest,
    db: Session = Depends(get_db),
) -> AuthResponse:
    """Sign up a customer by email and return a token for the new account."""
    return AuthService(db).register_customer(
        email=body.email,
        password=body.password,
        full_name=body.full_name,
    )


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.rate_limit_auth)
def login(
    request: Request,
    body: LoginRequest,
    db: Session = Depends(get_db),
) -> AuthResponse:
    """
    Authenticate and return a 7-day access token.

    Staff send {username, password}; customers send {email, password}.
    Unknown users and wrong passwords get the same 401.
    """
    return AuthService(db).login(
        password=body.password,
        username=body.username,
        email=body.email,
    )


@router.get("/me", response_model=UserOutput)
def me(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> UserOutput:
    """Current user's account."""
    return AuthService(db).get_user(ctx_user_id(ctx))


@router.get("/users", response_model=list[UserOutput])
def list_users(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(authorize(Roles.ADMIN)),
) -> list[UserOutput]:
    """All accounts. Requires ADMIN role."""
    return AuthService(db).list_users()
