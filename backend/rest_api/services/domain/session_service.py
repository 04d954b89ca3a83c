"""
Session Service - customer visits to a table.

A session is one device at one table. Re-scanning the table QR creates a
new session rather than resuming an old one, so every visit starts with an
empty cart. Sessions stay active while the device sends heartbeats and are
closed explicitly, or by the sweep after inactivity or after payment.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import exists, func, select, update

from rest_api.models import Order, Table, TableSession, utcnow
from rest_api.services.base_service import BaseService
from rest_api.services.domain.order_service import OrderService
from rest_api.services.domain.table_service import TableService
from rest_api.services.mappers import active_session_to_output, session_to_output, to_money
from shared.config.constants import OrderStatus, TableStatus
from shared.config.logging import session_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit, translate_store_errors
from shared.utils.exceptions import SessionNotFoundError, ValidationError
from shared.utils.schemas import ActiveSessionOutput, SessionDetailOutput, SessionOutput


class SessionService(BaseService):
    """Creates, refreshes, ends and sweeps customer sessions."""

    def create_session(
        self,
        table_number: int | None,
        device_id: str | None,
        customer_id: int | None = None,
        customer_name: str | None = None,
    ) -> SessionOutput:
        """
        Open a new session at a table and mark the table Occupied.

        Raises:
            ValidationError: missing tableNumber/deviceId or unknown table.
        """
        if table_number is None:
            raise ValidationError("tableNumber is required")
        if not device_id or not device_id.strip():
            raise ValidationError("deviceId is required")

        with translate_store_errors("create session", self._db):
            table = self._db.execute(
                select(Table).where(Table.table_number == table_number)
            ).scalar_one_or_none()
            if table is None:
                raise ValidationError(
                    f"Table {table_number} does not exist", table_number=table_number
                )

            session = TableSession(
                table_number=table_number,
                device_id=device_id.strip(),
                customer_id=customer_id,
                customer_name=customer_name,
                is_active=True,
            )
            self._db.add(session)
            table.status = TableStatus.OCCUPIED
            safe_commit(self._db)
            self._db.refresh(session)

        logger.info(
            "Session created",
            session_id=session.id,
            table_number=table_number,
            device_id=session.device_id,
        )
        return session_to_output(session)

    def _require(self, session_id: str) -> TableSession:
        with translate_store_errors("get session"):
            session = self._db.get(TableSession, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_session(self, session_id: str) -> SessionOutput:
        return session_to_output(self._require(session_id))

    def heartbeat(self, session_id: str) -> datetime:
        """Refresh last_activity. Returns the new timestamp."""
        now = utcnow()
        with translate_store_errors("session heartbeat", self._db):
            result = self._db.execute(
                update(TableSession)
                .where(TableSession.id == session_id)
                .values(last_activity=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self._db.rollback()
                raise SessionNotFoundError(session_id)
            safe_commit(self._db)
        return now

    def end_session(self, session_id: str) -> None:
        """Deactivate a session. Ending an inactive session is a no-op."""
        session = self._require(session_id)
        if not session.is_active:
            return

        with translate_store_errors("end session", self._db):
            session.is_active = False
            self._db.flush()
            TableService(self._db).refresh_status([session.table_number])
            safe_commit(self._db)

        logger.info("Session ended", session_id=session_id)

    def get_session_with_orders(self, session_id: str) -> SessionDetailOutput:
        """Session with its orders (newest first), order count and total amount."""
        session = self._require(session_id)
        orders = OrderService(self._db, self._broadcaster).get_orders_for_session(session_id)
        total = sum((o.total_price for o in orders), to_money(0))
        return SessionDetailOutput(
            session=session_to_output(session),
            orders=orders,
            order_count=len(orders),
            total_amount=to_money(total),
        )

    def list_active_for_table(self, table_number: int) -> list[ActiveSessionOutput]:
        """Active sessions at a table with per-session order aggregates."""
        TableService(self._db).require_table(table_number)
        stmt = (
            select(
                TableSession,
                func.count(Order.id),
                func.coalesce(func.sum(Order.total_price), 0),
            )
            .outerjoin(Order, Order.session_id == TableSession.id)
            .where(
                TableSession.table_number == table_number,
                TableSession.is_active.is_(True),
            )
            .group_by(TableSession.id)
            .order_by(TableSession.created_at.desc())
        )
        with translate_store_errors("list table sessions"):
            rows = self._db.execute(stmt).all()
        return [active_session_to_output(s, count, total) for s, count, total in rows]

    def sweep(self, now: datetime | None = None) -> int:
        """
        Deactivate expired sessions.

        (a) no heartbeat for session_inactivity_minutes;
        (b) every order Paid and the latest payment older than
            session_paid_grace_minutes.

        Both rules only touch active sessions and re-check their condition
        in the UPDATE itself, so running the sweep twice changes nothing.
        Tables left without an active session return to Available.

        Returns:
            Number of sessions deactivated.
        """
        now = now or datetime.now(timezone.utc)
        inactive_cutoff = now - timedelta(minutes=settings.session_inactivity_minutes)
        paid_cutoff = now - timedelta(minutes=settings.session_paid_grace_minutes)

        has_unpaid_order = exists().where(
            Order.session_id == TableSession.id,
            Order.status != OrderStatus.PAID,
        )
        last_payment = (
            select(func.max(Order.paid_at))
            .where(Order.session_id == TableSession.id)
            .scalar_subquery()
        )

        with translate_store_errors("sweep sessions", self._db):
            expired = self._db.execute(
                update(TableSession)
                .where(
                    TableSession.is_active.is_(True),
                    TableSession.last_activity < inactive_cutoff,
                )
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            ).rowcount
            settled = self._db.execute(
                update(TableSession)
                .where(
                    TableSession.is_active.is_(True),
                    ~has_unpaid_order,
                    last_payment < paid_cutoff,
                )
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            ).rowcount
            if expired or settled:
                TableService(self._db).refresh_status()
            safe_commit(self._db)

        total = (expired or 0) + (settled or 0)
        if total:
            logger.info(
                "Session sweep deactivated sessions",
                inactive=expired,
                paid=settled,
            )
        return total
