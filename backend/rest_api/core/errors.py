"""
Exception handlers.

Every error leaves the API as {"error": "<message>"} with the status code
of the exception that produced it. Request-shape problems caught by
FastAPI are reported as 400, like every other validation failure.
"""

import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config.logging import rest_api_logger as logger
from shared.config.settings import settings
from shared.security.rate_limit import rate_limit_exceeded_handler
from shared.utils.exceptions import UnexpectedError


def _describe_validation_error(exc: RequestValidationError) -> str:
    """First validation problem as 'field: message'."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = first.get("msg", "Invalid value")
    if location:
        return f"{'.'.join(location)}: {message}"
    return message


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _describe_validation_error(exc)
    logger.info("Request validation failed", path=request.url.path, error=message)
    return JSONResponse(status_code=400, content={"error": message})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # UnexpectedError logs itself, with the original traceback
    error = UnexpectedError(
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )
    content: dict[str, Any] = {"error": error.detail}
    if settings.debug and not settings.is_production:
        content["type"] = type(exc).__name__
        content["message"] = str(exc)
        content["trace"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=error.status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that render the {"error": ...} body."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
