"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns with a bounded connection pool.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import ConflictError, StoreError, ValidationError

logger = get_logger(__name__)

# SQLSTATE codes reported by PostgreSQL drivers
_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"


def create_db_engine(url: str) -> Engine:
    """
    Build an engine for the given URL.

    Server databases get a bounded pool with a checkout timeout and
    recycling of idle connections. An in-memory SQLite database lives on a
    single shared connection so every session sees the same tables.
    """
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        connect_args={"connect_timeout": settings.db_connect_timeout},
        echo=False,
    )


engine = create_db_engine(settings.database_url)

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/menu")
        def list_menu(db: Session = Depends(get_db)):
            ...

    The session is automatically closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI
    (background sweep, seed, CLI).

    Usage:
        with get_db_context() as db:
            SessionService(db).sweep()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _integrity_kind(exc: IntegrityError) -> str:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate == _UNIQUE_VIOLATION:
        return "unique"
    if sqlstate == _FOREIGN_KEY_VIOLATION:
        return "foreign_key"

    message = str(exc.orig).upper()
    if "UNIQUE" in message or "DUPLICATE" in message:
        return "unique"
    if "FOREIGN KEY" in message:
        return "foreign_key"
    return "other"


def is_unique_violation(exc: IntegrityError) -> bool:
    return _integrity_kind(exc) == "unique"


@contextmanager
def translate_store_errors(operation: str, db: Session | None = None) -> Generator[None, None, None]:
    """
    Translate SQLAlchemy failures into the application error taxonomy.

    - unique violation -> ConflictError (409)
    - foreign key violation -> ValidationError (400)
    - lost connection / pool exhaustion -> StoreError (503)
    - anything else from the driver -> StoreError (500)

    The session, when given, is rolled back before the error propagates.

    Usage:
        with translate_store_errors("create order", db):
            db.add(order)
            safe_commit(db)
    """
    try:
        yield
    except IntegrityError as exc:
        if db is not None:
            db.rollback()
        kind = _integrity_kind(exc)
        if kind == "unique":
            raise ConflictError(
                f"Duplicate value during {operation}", operation=operation
            ) from exc
        if kind == "foreign_key":
            raise ValidationError(
                f"Referenced record does not exist during {operation}", operation=operation
            ) from exc
        raise StoreError(operation, error=str(exc.orig)) from exc
    except (OperationalError, PoolTimeoutError) as exc:
        if db is not None:
            db.rollback()
        raise StoreError(operation, unavailable=True, error=str(exc)) from exc
    except DBAPIError as exc:
        if db is not None:
            db.rollback()
        raise StoreError(
            operation, unavailable=exc.connection_invalidated, error=str(exc.orig)
        ) from exc
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        raise StoreError(operation, error=str(exc)) from exc
