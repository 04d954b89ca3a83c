"""
Request correlation ids.

Every HTTP request gets an id, taken from X-Request-ID when the caller sends
a usable one and generated otherwise. The id is echoed in the response and
stamped on every log record emitted while the request is handled.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    return request_id_var.get()


def _incoming_id(request: Request) -> str:
    value = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if value and len(value) <= MAX_REQUEST_ID_LENGTH and value.isprintable():
        return value
    return uuid.uuid4().hex


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the request id to the context for the duration of the request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _incoming_id(request)
        token = request_id_var.set(request_id)
        try:
            request.state.request_id = request_id
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
