"""
Table Service - table registry lookups, occupancy and waiter calls.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import case, exists, select, update
from sqlalchemy.orm import joinedload

from rest_api.models import Table, TableSession
from rest_api.services.base_service import BaseService
from rest_api.services.mappers import table_to_output, waiter_to_info
from shared.config.constants import Events, TableStatus
from shared.config.logging import table_logger as logger
from shared.infrastructure.db import translate_store_errors
from shared.utils.exceptions import TableNotFoundError
from shared.utils.schemas import CallWaiterResponse, TableOutput


class TableService(BaseService):
    """Service for the fixed set of dining tables."""

    def find_by_number(self, table_number: int) -> Table | None:
        stmt = (
            select(Table)
            .options(joinedload(Table.waiter))
            .where(Table.table_number == table_number)
        )
        with translate_store_errors("get table"):
            return self._db.execute(stmt).scalar_one_or_none()

    def require_table(self, table_number: int) -> Table:
        """Load a table by number or raise TableNotFoundError."""
        table = self.find_by_number(table_number)
        if table is None:
            raise TableNotFoundError(table_number)
        return table

    def list_tables(self) -> list[TableOutput]:
        stmt = select(Table).options(joinedload(Table.waiter)).order_by(Table.table_number)
        with translate_store_errors("list tables"):
            tables = self._db.execute(stmt).scalars().all()
        return [table_to_output(t) for t in tables]

    def get_table(self, table_number: int) -> TableOutput:
        return table_to_output(self.require_table(table_number))

    def refresh_status(self, table_numbers: Iterable[int] | None = None) -> None:
        """
        Recompute Available/Occupied from active sessions in one statement.

        Does not commit; callers commit together with their own change.
        """
        has_active_session = exists().where(
            TableSession.table_number == Table.table_number,
            TableSession.is_active.is_(True),
        )
        stmt = (
            update(Table)
            .values(
                status=case(
                    (has_active_session, TableStatus.OCCUPIED),
                    else_=TableStatus.AVAILABLE,
                )
            )
            .execution_options(synchronize_session=False)
        )
        if table_numbers is not None:
            numbers = list(table_numbers)
            if not numbers:
                return
            stmt = stmt.where(Table.table_number.in_(numbers))
        self._db.execute(stmt)

    def call_waiter(self, table_number: int, customer_name: str | None = None) -> CallWaiterResponse:
        """
        Notify floor staff that a table needs attention.

        The event goes to waiter and admin clients; each waiter client
        filters by its own tables using assignedWaiters.
        """
        table = self.require_table(table_number)
        assigned = [waiter_to_info(table.waiter)] if table.waiter else []

        payload = {
            "tableNumber": table.table_number,
            "customerName": customer_name or "Guest",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "assignedWaiters": [w.model_dump(mode="json", by_alias=True) for w in assigned],
        }
        self._emit(Events.WAITER_CALLED, payload)

        logger.info(
            "Waiter called",
            table_number=table_number,
            assigned_waiter_ids=[w.id for w in assigned],
        )
        if assigned:
            message = f"Waiter notified for table {table_number}"
        else:
            message = f"Staff notified for table {table_number} (no waiter assigned)"
        return CallWaiterResponse(message=message, assigned_waiters=assigned)

