"""
Utilities module: Exceptions, schemas.
"""

from shared.utils.exceptions import (
    AppException,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    StoreError,
    UnexpectedError,
)
from shared.utils.schemas import ErrorResponse

__all__ = [
    # exceptions
    "AppException",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "StoreError",
    "UnexpectedError",
    # schemas
    "ErrorResponse",
]
