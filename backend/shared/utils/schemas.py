"""
Shared Pydantic schemas used across the application.

Request and response bodies use camelCase on the wire; Python code uses
snake_case attribute names.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from shared.config.constants import Limits


# =============================================================================
# Common Types
# =============================================================================

Role = Literal["kitchen", "waiter", "admin", "customer"]
StaffRole = Literal["kitchen", "waiter", "admin"]
TableStatusValue = Literal["Available", "Occupied"]

# Decimal in Python, JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases and reading ORM attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str


class SuccessResponse(CamelModel):
    success: bool = True
    message: str | None = None


class HealthOutput(BaseModel):
    status: str
    timestamp: datetime
    environment: str


# =============================================================================
# Authentication Schemas
# =============================================================================


class StaffRegisterRequest(CamelModel):
    """Create a staff account (admin only)."""

    username: str = Field(min_length=3, max_length=Limits.MAX_USERNAME_LENGTH)
    password: str = Field(
        min_length=Limits.MIN_PASSWORD_LENGTH, max_length=Limits.MAX_PASSWORD_LENGTH
    )
    role: StaffRole
    email: EmailStr | None = None
    full_name: str | None = Field(default=None, max_length=100)


class CustomerRegisterRequest(CamelModel):
    """Self-service customer registration."""

    email: EmailStr
    password: str = Field(
        min_length=Limits.MIN_PASSWORD_LENGTH, max_length=Limits.MAX_PASSWORD_LENGTH
    )
    full_name: str | None = Field(default=None, max_length=100)


class LoginRequest(CamelModel):
    """Staff log in with username, customers with email."""

    username: str | None = None
    email: str | None = None
    password: str = Field(min_length=1)


class UserOutput(CamelModel):
    id: int
    username: str | None = None
    email: str | None = None
    role: Role
    full_name: str | None = None
    created_at: datetime | None = None
    last_login: datetime | None = None


class AuthResponse(CamelModel):
    token: str
    user: UserOutput


# =============================================================================
# Menu Schemas
# =============================================================================


class MenuItemOutput(CamelModel):
    id: int
    name: str
    category: str
    price: Money
    description: str | None = None


# =============================================================================
# Table Schemas
# =============================================================================


class TableOutput(CamelModel):
    """Table with its assigned waiter, if any."""

    id: int
    table_number: int
    capacity: int
    status: TableStatusValue
    waiter_id: int | None = None
    waiter_username: str | None = None
    waiter_name: str | None = None


class WaiterOutput(CamelModel):
    id: int
    username: str | None = None
    full_name: str | None = None
    table_count: int = 0


class AssignWaiterRequest(CamelModel):
    waiter_id: int | None = None


class UnpaidTotalOutput(CamelModel):
    table_number: int
    unpaid_total: Money


class MarkPaidResponse(CamelModel):
    success: bool = True
    orders_paid: int
    order_ids: list[int]
    message: str


class CallWaiterRequest(CamelModel):
    customer_name: str | None = Field(default=None, max_length=Limits.MAX_CUSTOMER_NAME_LENGTH)


class AssignedWaiterInfo(CamelModel):
    id: int
    username: str | None = None
    full_name: str | None = None


class CallWaiterResponse(CamelModel):
    success: bool = True
    message: str
    assigned_waiters: list[AssignedWaiterInfo]


# =============================================================================
# Order Schemas
# =============================================================================


class OrderItemInput(CamelModel):
    """Input for a single order line."""

    menu_item_id: int
    quantity: int = Field(ge=1, le=Limits.MAX_ITEM_QUANTITY)


class CreateOrderRequest(CamelModel):
    """
    Required fields are checked by the order service so that direct callers
    and HTTP callers get the same messages.
    """

    session_id: str | None = None
    table_number: int | None = None
    items: list[OrderItemInput] = Field(default_factory=list, max_length=Limits.MAX_ORDER_LINES)


class OrderItemOutput(CamelModel):
    """Order line with display fields joined from the menu."""

    id: int
    menu_item_id: int
    name: str
    category: str
    quantity: int
    price: Money


class OrderOutput(CamelModel):
    """Order hydrated with its items."""

    id: int
    order_number: int
    session_id: str | None = None
    table_number: int
    status: str
    total_price: Money
    created_at: datetime
    updated_at: datetime | None = None
    paid_at: datetime | None = None
    items: list[OrderItemOutput] = Field(default_factory=list)


class UpdateOrderStatusRequest(CamelModel):
    status: str | None = None


# =============================================================================
# Session Schemas
# =============================================================================


class CreateSessionRequest(CamelModel):
    table_number: int | None = None
    device_id: str | None = Field(default=None, max_length=Limits.MAX_DEVICE_ID_LENGTH)
    customer_id: int | None = None
    customer_name: str | None = Field(default=None, max_length=Limits.MAX_CUSTOMER_NAME_LENGTH)


class CreateSessionResponse(CamelModel):
    session_id: str
    table_number: int
    device_id: str
    created_at: datetime


class SessionOutput(CamelModel):
    id: str
    table_number: int
    device_id: str
    customer_id: int | None = None
    customer_name: str | None = None
    created_at: datetime
    last_activity: datetime
    is_active: bool


class ActiveSessionOutput(SessionOutput):
    """Session row with order aggregates, used in per-table listings."""

    order_count: int = 0
    total_amount: Money = Decimal("0.00")


class SessionDetailOutput(CamelModel):
    session: SessionOutput
    orders: list[OrderOutput]
    order_count: int
    total_amount: Money


class HeartbeatResponse(CamelModel):
    success: bool = True
    last_activity: datetime


class SweepResponse(CamelModel):
    success: bool = True
    deactivated_count: int


# =============================================================================
# Realtime Schemas
# =============================================================================


class EventEnvelope(BaseModel):
    """Message pushed to realtime clients."""

    event: str
    data: dict[str, Any]
    timestamp: datetime
