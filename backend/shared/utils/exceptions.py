"""
Centralized HTTP exceptions for consistent error handling.

Every error a domain operation can raise maps to one HTTP status:
400 validation, 401 unauthenticated, 403 unauthorized, 404 not found,
409 conflict, 500/503 store failures, 500 unexpected.

Usage:
    from shared.utils.exceptions import NotFoundError, ConflictError, ValidationError

    raise NotFoundError("Order", order_id)
    raise ConflictError("Only Pending orders can be cancelled", order_id=order_id)
    raise ValidationError("items must not be empty")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Malformed or missing input (400).

    Usage:
        raise ValidationError("tableNumber is required")
        raise ValidationError("Menu item 99 not found", field="menuItemId", value=99)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class MenuItemNotFoundError(ValidationError):
    """An order line references a menu item that does not exist."""

    def __init__(self, menu_item_id: int, **log_context: Any):
        super().__init__(
            f"Menu item {menu_item_id} not found",
            menu_item_id=menu_item_id,
            **log_context,
        )


class InvalidStatusError(ValidationError):
    """Unknown order status value."""

    def __init__(self, value: str, allowed: list[str], **log_context: Any):
        super().__init__(
            f"Invalid status '{value}'. Must be one of: {', '.join(allowed)}",
            value=value,
            **log_context,
        )


# =============================================================================
# 401 / 403 Errors
# =============================================================================


class AuthenticationError(AppException):
    """Missing, malformed or expired credentials (401)."""

    def __init__(self, detail: str = "Authentication required", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="info",
            headers={"WWW-Authenticate": "Bearer"},
            **log_context,
        )


class AuthorizationError(AppException):
    """
    Role not permitted for the operation (403).

    Usage:
        raise AuthorizationError(["waiter", "admin"], role=ctx["role"])
    """

    def __init__(self, required_roles: list[str] | None = None, **log_context: Any):
        if required_roles:
            detail = f"Insufficient permissions (requires role: {', '.join(required_roles)})"
        else:
            detail = "Insufficient permissions"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            required_roles=required_roles,
            **log_context,
        )


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Order", 123)
        raise NotFoundError("Table", table_number, waiter_id=waiter_id)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class SessionNotFoundError(NotFoundError):
    """Customer session not found."""

    def __init__(self, session_id: str | None = None, **log_context: Any):
        super().__init__("Session", session_id, **log_context)


class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Order", order_id, **log_context)


class TableNotFoundError(NotFoundError):
    """Table not found (by table number or id)."""

    def __init__(self, table_ref: int | None = None, **log_context: Any):
        super().__init__("Table", table_ref, **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    State-machine violation or duplicate resource (409).

    Usage:
        raise ConflictError("Username already exists")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class OrderNotCancellableError(ConflictError):
    """Cancellation requested for an order that left Pending."""

    def __init__(self, order_id: int, current_status: str, **log_context: Any):
        super().__init__(
            f"Only Pending orders can be cancelled (order {order_id} is {current_status})",
            order_id=order_id,
            current_status=current_status,
            **log_context,
        )


# =============================================================================
# 500 / 503 Errors
# =============================================================================


class StoreError(AppException):
    """
    Underlying database failure.

    500 for failed statements, 503 when the store cannot be reached.
    Driver messages are logged, never returned to the client.
    """

    def __init__(self, operation: str, unavailable: bool = False, **log_context: Any):
        if unavailable:
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            detail = "Database temporarily unavailable"
        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            detail = f"Database error during {operation}"

        super().__init__(
            status_code=status_code,
            detail=detail,
            log_level="error",
            headers={"Retry-After": "5"} if unavailable else None,
            operation=operation,
            **log_context,
        )


class UnexpectedError(AppException):
    """Catch-all internal error (500)."""

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )
