"""
Assignment Service - which waiter serves which table.

One waiter per table; assigning replaces any previous waiter.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import joinedload

from rest_api.models import Table, User
from rest_api.services.base_service import BaseService
from rest_api.services.mappers import table_to_output, waiter_to_output
from shared.config.constants import Roles
from shared.config.logging import table_logger as logger
from shared.infrastructure.db import safe_commit, translate_store_errors
from shared.utils.exceptions import NotFoundError, TableNotFoundError, ValidationError
from shared.utils.schemas import TableOutput, WaiterOutput


class AssignmentService(BaseService):
    """Manual assignment plus the startup round-robin distribution."""

    def list_assignments(self) -> list[TableOutput]:
        stmt = select(Table).options(joinedload(Table.waiter)).order_by(Table.table_number)
        with translate_store_errors("list assignments"):
            tables = self._db.execute(stmt).scalars().all()
        return [table_to_output(t) for t in tables]

    def get_tables_for_waiter(self, waiter_id: int) -> list[TableOutput]:
        stmt = (
            select(Table)
            .options(joinedload(Table.waiter))
            .where(Table.waiter_id == waiter_id)
            .order_by(Table.table_number)
        )
        with translate_store_errors("list waiter tables"):
            tables = self._db.execute(stmt).scalars().all()
        return [table_to_output(t) for t in tables]

    def list_waiters(self) -> list[WaiterOutput]:
        stmt = (
            select(User, func.count(Table.id))
            .outerjoin(Table, Table.waiter_id == User.id)
            .where(User.role == Roles.WAITER)
            .group_by(User.id)
            .order_by(User.username)
        )
        with translate_store_errors("list waiters"):
            rows = self._db.execute(stmt).all()
        return [waiter_to_output(user, count) for user, count in rows]

    def _require_table(self, table_id: int) -> Table:
        with translate_store_errors("get table"):
            table = self._db.get(Table, table_id)
        if table is None:
            raise TableNotFoundError(table_id)
        return table

    def assign(self, table_id: int, waiter_id: int | None) -> TableOutput:
        """
        Assign a waiter to a table, replacing the current one.

        Raises:
            ValidationError: waiterId missing or the user is not a waiter.
            NotFoundError: unknown waiter or table.
        """
        if waiter_id is None:
            raise ValidationError("waiterId is required")

        with translate_store_errors("get waiter"):
            waiter = self._db.get(User, waiter_id)
        if waiter is None:
            raise NotFoundError("Waiter", waiter_id)
        if waiter.role != Roles.WAITER:
            raise ValidationError(
                f"User {waiter_id} is not a waiter", user_id=waiter_id, role=waiter.role
            )

        table = self._require_table(table_id)
        previous = table.waiter_id
        table.waiter_id = waiter.id
        with translate_store_errors("assign waiter", self._db):
            safe_commit(self._db)
            self._db.refresh(table)

        logger.info(
            "Waiter assigned",
            table_id=table_id,
            table_number=table.table_number,
            waiter_id=waiter_id,
            previous_waiter_id=previous,
        )
        return table_to_output(table)

    def unassign(self, table_id: int) -> TableOutput:
        """Clear a table's waiter. Unassigning an unassigned table is a no-op."""
        table = self._require_table(table_id)
        if table.waiter_id is not None:
            previous = table.waiter_id
            table.waiter_id = None
            with translate_store_errors("unassign waiter", self._db):
                safe_commit(self._db)
                self._db.refresh(table)
            logger.info("Waiter unassigned", table_id=table_id, previous_waiter_id=previous)
        return table_to_output(table)

    def seed_round_robin(self) -> int:
        """
        Distribute all tables across all waiters, in table order.
        Runs only when no table has a waiter yet.

        Returns:
            Number of tables assigned.
        """
        with translate_store_errors("seed assignments", self._db):
            already_assigned = self._db.execute(
                select(Table.id).where(Table.waiter_id.is_not(None)).limit(1)
            ).first()
            if already_assigned is not None:
                return 0

            waiters = self._db.execute(
                select(User).where(User.role == Roles.WAITER).order_by(User.id)
            ).scalars().all()
            if not waiters:
                logger.warning("No waiters available for table assignment")
                return 0

            tables = self._db.execute(select(Table).order_by(Table.table_number)).scalars().all()
            for index, table in enumerate(tables):
                table.waiter_id = waiters[index % len(waiters)].id
            safe_commit(self._db)

        logger.info("Tables assigned round-robin", tables=len(tables), waiters=len(waiters))
        return len(tables)
