"""
Seed data for development and testing.
Creates the demo menu, tables 1-10 and the default staff accounts, then
spreads the tables across the waiters.

Every step only runs when its table is empty, so seeding on each startup
is safe.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rest_api.models import MenuItem, Table, User
from rest_api.services.domain.assignment_service import AssignmentService
from shared.config.constants import Roles, TableStatus
from shared.config.logging import get_logger
from shared.security.password import hash_password

logger = get_logger(__name__)


# =============================================================================
# Seed constants
# =============================================================================

TABLE_COUNT = 10
# Tables up to this number seat 4, the rest seat 6
SMALL_TABLE_LIMIT = 6
SMALL_TABLE_CAPACITY = 4
LARGE_TABLE_CAPACITY = 6

MENU_ITEMS: list[tuple[str, str, str, str]] = [
    # Appetizers
    ("Bruschetta", "Appetizers", "8.99", "Toasted bread with tomatoes, garlic, and basil"),
    ("Calamari", "Appetizers", "12.99", "Crispy fried squid with marinara sauce"),
    ("Mozzarella Sticks", "Appetizers", "9.99", "Golden fried mozzarella with marinara"),
    ("Caesar Salad", "Appetizers", "10.99", "Fresh romaine with Caesar dressing and croutons"),
    # Main Courses
    ("Margherita Pizza", "Main Courses", "14.99", "Classic tomato, mozzarella, and basil"),
    ("Pepperoni Pizza", "Main Courses", "16.99", "Loaded with pepperoni and cheese"),
    ("Spaghetti Carbonara", "Main Courses", "15.99", "Pasta with bacon, egg, and parmesan"),
    ("Grilled Salmon", "Main Courses", "22.99", "Atlantic salmon with vegetables"),
    ("Ribeye Steak", "Main Courses", "28.99", "Prime ribeye with garlic butter"),
    ("Chicken Parmesan", "Main Courses", "18.99", "Breaded chicken with marinara and cheese"),
    # Desserts
    ("Tiramisu", "Desserts", "7.99", "Classic Italian coffee-flavored dessert"),
    ("Chocolate Lava Cake", "Desserts", "8.99", "Warm chocolate cake with molten center"),
    ("Cheesecake", "Desserts", "7.99", "New York style cheesecake"),
    # Beverages
    ("Coca Cola", "Beverages", "2.99", "Classic soft drink"),
    ("Iced Tea", "Beverages", "2.99", "Freshly brewed iced tea"),
    ("Coffee", "Beverages", "3.49", "Freshly brewed coffee"),
    ("Red Wine", "Beverages", "8.99", "House red wine"),
    ("White Wine", "Beverages", "8.99", "House white wine"),
]

# (username, password, role, full name). Change these passwords in production.
DEFAULT_USERS: list[tuple[str, str, str, str]] = [
    ("kitchen", "kitchen123", Roles.KITCHEN, "Kitchen Staff"),
    ("waiter1", "waiter123", Roles.WAITER, "Waiter One"),
    ("waiter2", "waiter123", Roles.WAITER, "Waiter Two"),
    ("admin", "admin123", Roles.ADMIN, "Administrator"),
]


def _is_empty(db: Session, model) -> bool:
    return db.scalar(select(func.count()).select_from(model)) == 0


def seed_menu(db: Session) -> int:
    """Insert the demo menu. Returns the number of items created."""
    if not _is_empty(db, MenuItem):
        logger.info("Menu already seeded, skipping")
        return 0

    for name, category, price, description in MENU_ITEMS:
        db.add(MenuItem(name=name, category=category, price=Decimal(price), description=description))
    db.commit()
    logger.info("Seeded menu items", count=len(MENU_ITEMS))
    return len(MENU_ITEMS)


def seed_tables(db: Session) -> int:
    """Insert tables 1-10, all Available."""
    if not _is_empty(db, Table):
        logger.info("Tables already seeded, skipping")
        return 0

    for number in range(1, TABLE_COUNT + 1):
        capacity = SMALL_TABLE_CAPACITY if number <= SMALL_TABLE_LIMIT else LARGE_TABLE_CAPACITY
        db.add(Table(table_number=number, capacity=capacity, status=TableStatus.AVAILABLE))
    db.commit()
    logger.info("Seeded tables", count=TABLE_COUNT)
    return TABLE_COUNT


def seed_users(db: Session) -> int:
    """Insert the default kitchen, waiter and admin accounts."""
    if not _is_empty(db, User):
        logger.info("Users already seeded, skipping")
        return 0

    for username, password, role, full_name in DEFAULT_USERS:
        db.add(
            User(
                username=username,
                password_hash=hash_password(password),
                role=role,
                full_name=full_name,
            )
        )
    db.commit()
    logger.warning(
        "Seeded default users with demo passwords, change them in production",
        usernames=[u[0] for u in DEFAULT_USERS],
    )
    return len(DEFAULT_USERS)


def seed(db: Session) -> None:
    """
    Seed the database with initial data.
    Idempotent: only inserts if data doesn't exist.
    """
    logger.info("Seeding database")
    seed_menu(db)
    seed_tables(db)
    seed_users(db)
    AssignmentService(db).seed_round_robin()
