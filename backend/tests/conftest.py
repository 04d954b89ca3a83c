"""
Pytest configuration and fixtures for backend tests.

The application reads its settings at import time, so the test
environment is set before anything from the app is imported: an in-memory
SQLite database (one shared connection), no demo seed, no rate limits and
no Redis relay.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REALTIME_REDIS_ENABLED"] = "false"
os.environ["SESSION_SWEEP_INTERVAL_SECONDS"] = "3600"

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from rest_api.main import app
from rest_api.models import Base, MenuItem, Table, User
from shared.config.constants import Roles, TableStatus
from shared.infrastructure.db import SessionLocal, engine, get_db
from shared.security.auth import sign_user_token
from shared.security.password import hash_password
from shared.utils.schemas import OrderItemInput

# Low bcrypt cost keeps fixtures fast; verification works for any cost
TEST_HASH_ROUNDS = 4


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database session override.
    Entering the client runs the lifespan, which wires the broadcaster.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def events():
    """Stand-in Broadcaster that records emit() calls."""
    return MagicMock()


def emitted(events_mock) -> list[str]:
    """Event names passed to a mocked Broadcaster, in order."""
    return [c.args[0] for c in events_mock.emit.call_args_list]


def lines(*pairs: tuple[int, int]) -> list[OrderItemInput]:
    """Order lines from (menu_item_id, quantity) pairs."""
    return [OrderItemInput(menu_item_id=item_id, quantity=qty) for item_id, qty in pairs]


# =============================================================================
# Catalog and tables
# =============================================================================


@pytest.fixture
def menu_items(db_session):
    """Three menu items: 8.99 appetizer, 12.99 appetizer, 3.49 beverage."""
    items = [
        MenuItem(name="Bruschetta", category="Appetizers", price=Decimal("8.99"),
                 description="Toasted bread with tomatoes, garlic, and basil"),
        MenuItem(name="Calamari", category="Appetizers", price=Decimal("12.99"),
                 description="Crispy fried squid with marinara sauce"),
        MenuItem(name="Coffee", category="Beverages", price=Decimal("3.49"),
                 description="Freshly brewed coffee"),
    ]
    db_session.add_all(items)
    db_session.commit()
    for item in items:
        db_session.refresh(item)
    return items


@pytest.fixture
def tables(db_session):
    """Tables 1-4, all Available and unassigned."""
    rows = [
        Table(table_number=n, capacity=4, status=TableStatus.AVAILABLE)
        for n in range(1, 5)
    ]
    db_session.add_all(rows)
    db_session.commit()
    for row in rows:
        db_session.refresh(row)
    return rows


# =============================================================================
# Users and tokens
# =============================================================================


def _make_user(db_session, username: str, password: str, role: str, full_name: str) -> User:
    user = User(
        username=username,
        password_hash=hash_password(password, rounds=TEST_HASH_ROUNDS),
        role=role,
        full_name=full_name,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def kitchen_user(db_session):
    return _make_user(db_session, "kitchen", "kitchen123", Roles.KITCHEN, "Kitchen Staff")


@pytest.fixture
def waiter_user(db_session):
    return _make_user(db_session, "waiter1", "waiter123", Roles.WAITER, "Waiter One")


@pytest.fixture
def other_waiter(db_session):
    return _make_user(db_session, "waiter2", "waiter123", Roles.WAITER, "Waiter Two")


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, "admin", "admin123", Roles.ADMIN, "Administrator")


def bearer(user: User) -> dict[str, str]:
    token = sign_user_token(user.id, user.role, username=user.username, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def kitchen_headers(kitchen_user):
    return bearer(kitchen_user)


@pytest.fixture
def waiter_headers(waiter_user):
    return bearer(waiter_user)


@pytest.fixture
def admin_headers(admin_user):
    return bearer(admin_user)
