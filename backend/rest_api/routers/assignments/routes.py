"""
Table assignments router.
Staff view and change waiter-to-table assignments.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rest_api.services.domain import AssignmentService
from shared.config.constants import Roles
from shared.infrastructure.db import get_db
from shared.security.auth import authorize, ctx_user_id
from shared.utils.schemas import AssignWaiterRequest, TableOutput, WaiterOutput


router = APIRouter(prefix="/api/table-assignments", tags=["table-assignments"])

require_staff = authorize(*Roles.STAFF)


@router.get("", response_model=list[TableOutput])
def list_assignments(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(require_staff),
) -> list[TableOutput]:
    """Every table with its current waiter."""
    return AssignmentService(db).list_assignments()


@router.get("/my-tables", response_model=list[TableOutput])
def my_tables(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(require_staff),
) -> list[TableOutput]:
    """Tables assigned to the calling waiter."""
    return AssignmentService(db).get_tables_for_waiter(ctx_user_id(ctx))


@router.get("/waiters", response_model=list[WaiterOutput])
def list_waiters(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(require_staff),
) -> list[WaiterOutput]:
    """Waiters with the number of tables each one serves."""
    return AssignmentService(db).list_waiters()


@router.get("/waiter/{waiter_id}", response_model=list[TableOutput])
def waiter_tables(
    waiter_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(require_staff),
) -> list[TableOutput]:
    return AssignmentService(db).get_tables_for_waiter(waiter_id)


@router.patch("/{table_id}/assign", response_model=TableOutput)
def assign_waiter(
    table_id: int,
    body: AssignWaiterRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(require_staff),
) -> TableOutput:
    """Body: {waiterId}. Replaces any waiter already on the table."""
    return AssignmentService(db).assign(table_id, body.waiter_id)


@router.patch("/{table_id}/unassign", response_model=TableOutput)
def unassign_waiter(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(require_staff),
) -> TableOutput:
    return AssignmentService(db).unassign(table_id)
