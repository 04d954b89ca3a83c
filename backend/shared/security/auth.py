"""
Authentication and authorization utilities.

Staff and registered customers authenticate with an HS256 JWT that lives
for a fixed number of days from issuance. Anonymous customers use the
session/device flow and never need a token.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Callable

import jwt
from fastapi import Depends, Header

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import AuthenticationError, AuthorizationError

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


# =============================================================================
# JWT Functions
# =============================================================================


def sign_jwt(
    payload: dict[str, Any],
    ttl_seconds: int | None = None,
    token_type: str = ACCESS_TOKEN_TYPE,
) -> str:
    """
    Sign a JWT token with the given payload.

    Args:
        payload: Claims to include in the token (sub, role, username, email).
        ttl_seconds: Token lifetime in seconds. Defaults to jwt_expire_days.
        token_type: Type of token.

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_expire_days * 24 * 60 * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + ttl_seconds,
        "type": token_type,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, settings.jwt_secret, algorithm="HS256")


def sign_user_token(
    user_id: int,
    role: str,
    username: str | None = None,
    email: str | None = None,
) -> str:
    """Issue an access token for a staff member or registered customer."""
    return sign_jwt(
        {
            "sub": str(user_id),
            "role": role,
            "username": username,
            "email": email,
        }
    )


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded token claims.

    Raises:
        AuthenticationError: If token is invalid, expired or lacks required claims.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        # Log the real reason, return a generic message
        logger.warning("JWT validation failed", error=str(e))
        raise AuthenticationError("Invalid token")

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise AuthenticationError("Invalid token: invalid type claim")
    if "role" not in payload:
        raise AuthenticationError("Invalid token: missing role claim")
    try:
        int(payload["sub"])
    except (KeyError, ValueError, TypeError):
        raise AuthenticationError("Invalid token: malformed subject claim")

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        AuthenticationError: If header is missing or malformed.
    """
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid Authorization header format. Expected: Bearer <token>")
    return authorization.split(" ", 1)[1].strip()


# =============================================================================
# FastAPI dependencies
# =============================================================================


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency that requires a valid token.

    Usage:
        @router.get("/auth/me")
        def me(ctx: dict = Depends(current_user_context)):
            user_id = int(ctx["sub"])
            role = ctx["role"]

    Returns:
        Dict with: sub (user id), role, username, email
    """
    token = get_bearer_token(authorization)
    return verify_jwt(token)


def optional_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any] | None:
    """
    FastAPI dependency that attaches the identity when a valid token is sent.

    Missing, malformed or invalid tokens yield None instead of an error.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None
    try:
        return verify_jwt(authorization.split(" ", 1)[1].strip())
    except AuthenticationError:
        return None


def require_roles(ctx: dict[str, Any], allowed: list[str] | frozenset[str]) -> None:
    """
    Verify that the user's role is one of the allowed roles.

    Raises:
        AuthorizationError: If the role is not permitted.
    """
    if ctx.get("role") not in allowed:
        raise AuthorizationError(sorted(allowed), role=ctx.get("role"), user_id=ctx.get("sub"))


def authorize(*roles: str) -> Callable[..., dict[str, Any]]:
    """
    Build a dependency that authenticates and then checks the role.

    Usage:
        @router.post("/tables/{n}/mark-paid")
        def mark_paid(ctx: dict = Depends(authorize("waiter", "kitchen", "admin"))):
            ...
    """

    def dependency(ctx: dict[str, Any] = Depends(current_user_context)) -> dict[str, Any]:
        require_roles(ctx, list(roles))
        return ctx

    return dependency


def ctx_user_id(ctx: dict[str, Any]) -> int:
    """User id from a verified context."""
    return int(ctx["sub"])
