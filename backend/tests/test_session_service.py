"""
Tests for SessionService: opening sessions, heartbeats, ending, the
aggregated reads and the expiry sweep.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import lines
from rest_api.core.scheduler import sweep_sessions_once
from rest_api.models import Table, TableSession
from rest_api.services.domain import OrderService, SessionService
from shared.config.constants import OrderStatus, TableStatus
from shared.utils.exceptions import SessionNotFoundError, TableNotFoundError, ValidationError


@pytest.fixture
def sessions(db_session):
    return SessionService(db_session)


def _table_status(db_session, number: int) -> str:
    db_session.expire_all()
    return db_session.query(Table).filter(Table.table_number == number).one().status


def _is_active(db_session, session_id: str) -> bool:
    db_session.expire_all()
    return db_session.get(TableSession, session_id).is_active


class TestCreateSession:

    def test_new_session_occupies_table(self, db_session, sessions, tables):
        created = sessions.create_session(2, "device-1", customer_name="Ana")

        assert created.table_number == 2
        assert created.device_id == "device-1"
        assert created.customer_name == "Ana"
        assert created.is_active is True
        assert _table_status(db_session, 2) == TableStatus.OCCUPIED

    def test_every_scan_opens_a_fresh_session(self, sessions, tables):
        first = sessions.create_session(1, "device-1")
        second = sessions.create_session(1, "device-1")

        assert first.id != second.id

    @pytest.mark.parametrize("table_number, device_id", [(None, "device-1"), (1, None), (1, "  ")])
    def test_missing_fields_rejected(self, sessions, tables, table_number, device_id):
        with pytest.raises(ValidationError):
            sessions.create_session(table_number, device_id)

    def test_unknown_table_rejected(self, sessions, tables):
        with pytest.raises(ValidationError):
            sessions.create_session(99, "device-1")


class TestHeartbeat:

    def test_unknown_session_not_found(self, sessions, tables):
        with pytest.raises(SessionNotFoundError) as exc_info:
            sessions.heartbeat("does-not-exist")
        assert exc_info.value.status_code == 404

    def test_heartbeat_moves_last_activity_forward(self, db_session, sessions, tables):
        created = sessions.create_session(1, "device-1")
        stale = datetime.now(timezone.utc) - timedelta(minutes=5)
        db_session.get(TableSession, created.id).last_activity = stale
        db_session.commit()
        db_session.expire_all()
        before = db_session.get(TableSession, created.id).last_activity

        sessions.heartbeat(created.id)

        db_session.expire_all()
        after = db_session.get(TableSession, created.id).last_activity
        assert after >= before
        assert after != before


class TestEndSession:

    def test_end_is_idempotent(self, db_session, sessions, tables):
        created = sessions.create_session(1, "device-1")

        sessions.end_session(created.id)
        sessions.end_session(created.id)

        assert _is_active(db_session, created.id) is False

    def test_unknown_session_not_found(self, sessions, tables):
        with pytest.raises(SessionNotFoundError):
            sessions.end_session("nope")

    def test_table_freed_only_when_last_session_ends(self, db_session, sessions, tables):
        a = sessions.create_session(3, "device-a")
        b = sessions.create_session(3, "device-b")

        sessions.end_session(a.id)
        assert _table_status(db_session, 3) == TableStatus.OCCUPIED

        sessions.end_session(b.id)
        assert _table_status(db_session, 3) == TableStatus.AVAILABLE


class TestSessionReads:

    def test_session_with_orders(self, db_session, sessions, menu_items, tables):
        created = sessions.create_session(1, "device-1")
        orders = OrderService(db_session)
        orders.create_order(1, lines((menu_items[0].id, 2)), created.id)
        orders.create_order(1, lines((menu_items[2].id, 1)), created.id)

        detail = sessions.get_session_with_orders(created.id)

        assert detail.session.id == created.id
        assert detail.order_count == 2
        assert detail.total_amount == Decimal("21.47")
        assert [o.order_number for o in detail.orders] == [2, 1]

    def test_session_with_orders_unknown(self, sessions, tables):
        with pytest.raises(SessionNotFoundError):
            sessions.get_session_with_orders("missing")

    def test_active_sessions_for_table(self, db_session, sessions, menu_items, tables):
        busy = sessions.create_session(4, "device-1")
        idle = sessions.create_session(4, "device-2")
        ended = sessions.create_session(4, "device-3")
        sessions.end_session(ended.id)
        OrderService(db_session).create_order(4, lines((menu_items[1].id, 2)), busy.id)

        result = {s.id: s for s in sessions.list_active_for_table(4)}

        assert set(result) == {busy.id, idle.id}
        assert result[busy.id].order_count == 1
        assert result[busy.id].total_amount == Decimal("25.98")
        assert result[idle.id].order_count == 0
        assert result[idle.id].total_amount == Decimal("0.00")

    def test_active_sessions_unknown_table(self, sessions, tables):
        with pytest.raises(TableNotFoundError):
            sessions.list_active_for_table(50)


class TestSweep:
    """Expiry rules: inactivity and settled-after-payment."""

    def test_inactive_session_is_closed_and_table_freed(self, db_session, sessions, tables):
        created = sessions.create_session(1, "device-1")
        later = datetime.now(timezone.utc) + timedelta(minutes=31)

        assert sessions.sweep(now=later) == 1
        assert _is_active(db_session, created.id) is False
        assert _table_status(db_session, 1) == TableStatus.AVAILABLE

    def test_recent_session_survives(self, db_session, sessions, tables):
        created = sessions.create_session(1, "device-1")

        assert sessions.sweep(now=datetime.now(timezone.utc) + timedelta(minutes=5)) == 0
        assert _is_active(db_session, created.id) is True

    def test_sweep_twice_changes_nothing_more(self, sessions, tables):
        sessions.create_session(1, "device-1")
        later = datetime.now(timezone.utc) + timedelta(minutes=31)

        assert sessions.sweep(now=later) == 1
        assert sessions.sweep(now=later) == 0

    def test_paid_session_closed_after_grace_period(self, db_session, sessions, menu_items, tables):
        created = sessions.create_session(2, "device-1")
        orders = OrderService(db_session)
        orders.create_order(2, lines((menu_items[0].id, 1)), created.id)
        orders.mark_table_paid(2)

        soon = datetime.now(timezone.utc) + timedelta(minutes=5)
        assert sessions.sweep(now=soon) == 0
        assert _is_active(db_session, created.id) is True

        after_grace = datetime.now(timezone.utc) + timedelta(minutes=11)
        assert sessions.sweep(now=after_grace) == 1
        assert _is_active(db_session, created.id) is False
        assert _table_status(db_session, 2) == TableStatus.AVAILABLE

    def test_session_with_unpaid_order_stays_open(self, db_session, sessions, menu_items, tables):
        created = sessions.create_session(2, "device-1")
        orders = OrderService(db_session)
        first = orders.create_order(2, lines((menu_items[0].id, 1)), created.id)
        orders.create_order(2, lines((menu_items[1].id, 1)), created.id)
        orders.update_status(first.id, OrderStatus.PAID)

        after_grace = datetime.now(timezone.utc) + timedelta(minutes=11)
        assert sessions.sweep(now=after_grace) == 0
        assert _is_active(db_session, created.id) is True

    def test_session_without_orders_is_not_settled(self, db_session, sessions, tables):
        created = sessions.create_session(2, "device-1")

        after_grace = datetime.now(timezone.utc) + timedelta(minutes=11)
        assert sessions.sweep(now=after_grace) == 0
        assert _is_active(db_session, created.id) is True

    def test_already_inactive_sessions_untouched(self, db_session, sessions, tables):
        created = sessions.create_session(1, "device-1")
        sessions.end_session(created.id)

        later = datetime.now(timezone.utc) + timedelta(hours=2)
        assert sessions.sweep(now=later) == 0

    def test_background_job_uses_its_own_db_session(self, db_session, sessions, tables):
        created = sessions.create_session(1, "device-1")
        stale = datetime.now(timezone.utc) - timedelta(hours=1)
        db_session.get(TableSession, created.id).last_activity = stale
        db_session.commit()

        assert sweep_sessions_once() == 1
        assert _is_active(db_session, created.id) is False
