"""
Rate limiting utilities using slowapi.
Protects public endpoints from abuse.

Usage in a router:
    from shared.security.rate_limit import limiter

    @router.post("/auth/login")
    @limiter.limit(settings.rate_limit_auth)
    def login(request: Request, body: LoginRequest, ...):
        ...
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)

# Client IP as key; the default limit applies to every route through SlowAPIMiddleware
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.
    Returns the standard error body with retry information.
    """
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests, please try again later",
            "limit": str(exc.detail),
        },
    )
