"""
Centralized constants for the backend application.
Avoids magic strings for roles, statuses and realtime event names.

Usage:
    from shared.config.constants import Roles, OrderStatus, STAFF_ROLES

    if role in STAFF_ROLES:
        ...

    if order.status == OrderStatus.PENDING:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """User role constants."""

    KITCHEN: Final[str] = "kitchen"
    WAITER: Final[str] = "waiter"
    ADMIN: Final[str] = "admin"
    CUSTOMER: Final[str] = "customer"

    ALL: Final[list[str]] = [KITCHEN, WAITER, ADMIN, CUSTOMER]
    STAFF: Final[list[str]] = [KITCHEN, WAITER, ADMIN]


# Role groups for common access patterns
STAFF_ROLES: Final[frozenset[str]] = frozenset(Roles.STAFF)
FLOOR_ROLES: Final[frozenset[str]] = frozenset({Roles.WAITER, Roles.ADMIN})

# Role assigned to realtime clients that connect without a token
GUEST_ROLE: Final[str] = "guest"


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderStatus:
    """
    Order status constants.

    Pending -> Preparing -> Ready -> Served, with Paid as a terminal
    override reachable from any non-Paid status.
    """

    PENDING: Final[str] = "Pending"
    PREPARING: Final[str] = "Preparing"
    READY: Final[str] = "Ready"
    SERVED: Final[str] = "Served"
    PAID: Final[str] = "Paid"

    ALL: Final[list[str]] = [PENDING, PREPARING, READY, SERVED, PAID]
    UNPAID: Final[list[str]] = [PENDING, PREPARING, READY, SERVED]
    CANCELLABLE: Final[list[str]] = [PENDING]


class TableStatus:
    """Table status constants."""

    AVAILABLE: Final[str] = "Available"
    OCCUPIED: Final[str] = "Occupied"

    ALL: Final[list[str]] = [AVAILABLE, OCCUPIED]


# =============================================================================
# Realtime Events
# =============================================================================


class Events:
    """Realtime event catalog."""

    ORDER_CREATED: Final[str] = "orderCreated"
    ORDER_UPDATED: Final[str] = "orderUpdated"
    ORDER_READY: Final[str] = "orderReady"
    ORDER_SERVED: Final[str] = "orderServed"
    ORDER_PAID: Final[str] = "orderPaid"
    ORDER_CANCELLED: Final[str] = "orderCancelled"
    WAITER_CALLED: Final[str] = "waiter-called"

    ALL: Final[list[str]] = [
        ORDER_CREATED,
        ORDER_UPDATED,
        ORDER_READY,
        ORDER_SERVED,
        ORDER_PAID,
        ORDER_CANCELLED,
        WAITER_CALLED,
    ]


# Status-specific event emitted alongside orderUpdated
STATUS_EVENTS: Final[dict[str, str]] = {
    OrderStatus.READY: Events.ORDER_READY,
    OrderStatus.SERVED: Events.ORDER_SERVED,
    OrderStatus.PAID: Events.ORDER_PAID,
}

# Roles that receive an event; events not listed go to every client
EVENT_AUDIENCES: Final[dict[str, frozenset[str]]] = {
    Events.WAITER_CALLED: FLOOR_ROLES,
}


# =============================================================================
# Validation Limits
# =============================================================================


class Limits:
    """Input validation limits."""

    MIN_PASSWORD_LENGTH: Final[int] = 6
    MAX_PASSWORD_LENGTH: Final[int] = 128
    MAX_USERNAME_LENGTH: Final[int] = 50
    MAX_DEVICE_ID_LENGTH: Final[int] = 128
    MAX_CUSTOMER_NAME_LENGTH: Final[int] = 100
    MAX_ORDER_LINES: Final[int] = 50
    MAX_ITEM_QUANTITY: Final[int] = 99
