"""
Tests for OrderService: creation, numbering, price snapshots, status
changes, cancellation, payment and the waiter-scoped listing.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import emitted, lines
from rest_api.models import MenuItem, Order, OrderItem, Table, TableSession
from rest_api.services.domain import OrderService, SessionService
from shared.config.constants import Events, OrderStatus, Roles, TableStatus
from shared.utils.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStatusError,
    MenuItemNotFoundError,
    OrderNotCancellableError,
    OrderNotFoundError,
    SessionNotFoundError,
    TableNotFoundError,
    ValidationError,
)


@pytest.fixture
def service(db_session, events):
    return OrderService(db_session, events)


@pytest.fixture
def session_id(db_session, tables):
    return SessionService(db_session).create_session(1, "device-abc").id


def _order_count(db_session) -> int:
    return db_session.scalar(select(func.count()).select_from(Order))


class TestCreateOrder:
    """Order creation and validation."""

    def test_total_is_sum_of_price_times_quantity(self, service, menu_items, session_id):
        bruschetta, calamari, _ = menu_items

        order = service.create_order(1, lines((bruschetta.id, 2), (calamari.id, 1)), session_id)

        assert order.total_price == Decimal("30.97")
        assert order.order_number == 1
        assert order.status == OrderStatus.PENDING
        assert order.session_id == session_id
        assert order.table_number == 1

    def test_items_are_hydrated_with_menu_details(self, service, menu_items, session_id):
        bruschetta, calamari, _ = menu_items

        order = service.create_order(1, lines((bruschetta.id, 2), (calamari.id, 1)), session_id)

        assert [(i.name, i.category, i.quantity, i.price) for i in order.items] == [
            ("Bruschetta", "Appetizers", 2, Decimal("8.99")),
            ("Calamari", "Appetizers", 1, Decimal("12.99")),
        ]

    def test_order_numbers_increase_within_a_session(self, service, menu_items, session_id):
        coffee = menu_items[2]

        numbers = [
            service.create_order(1, lines((coffee.id, 1)), session_id).order_number
            for _ in range(3)
        ]

        assert numbers == [1, 2, 3]

    def test_each_session_numbers_from_one(self, db_session, service, menu_items, session_id):
        coffee = menu_items[2]
        other = SessionService(db_session).create_session(1, "device-xyz").id

        service.create_order(1, lines((coffee.id, 1)), session_id)
        service.create_order(1, lines((coffee.id, 1)), session_id)
        first_in_other = service.create_order(1, lines((coffee.id, 1)), other)

        assert first_in_other.order_number == 1

    def test_order_without_session_is_number_one(self, service, menu_items, tables):
        coffee = menu_items[2]

        first = service.create_order(2, lines((coffee.id, 1)))
        second = service.create_order(2, lines((coffee.id, 1)))

        assert first.order_number == 1
        assert second.order_number == 1
        assert first.session_id is None

    def test_price_change_does_not_touch_existing_orders(
        self, db_session, service, menu_items, session_id
    ):
        bruschetta = menu_items[0]
        order = service.create_order(1, lines((bruschetta.id, 3)), session_id)

        db_session.get(MenuItem, bruschetta.id).price = Decimal("20.00")
        db_session.commit()
        db_session.expire_all()

        reloaded = service.get_order(order.id)
        assert reloaded.total_price == Decimal("26.97")
        assert reloaded.items[0].price == Decimal("8.99")

    def test_created_event_is_published(self, service, events, menu_items, session_id):
        order = service.create_order(1, lines((menu_items[0].id, 1)), session_id)

        events.emit.assert_called_once()
        event, payload = events.emit.call_args.args
        assert event == Events.ORDER_CREATED
        assert payload.id == order.id

    def test_empty_items_rejected(self, service, tables):
        with pytest.raises(ValidationError) as exc_info:
            service.create_order(1, [])
        assert exc_info.value.status_code == 400

    def test_missing_table_number_rejected(self, service, menu_items):
        with pytest.raises(ValidationError):
            service.create_order(None, lines((menu_items[0].id, 1)))

    def test_unknown_menu_item_named_in_error(self, db_session, service, menu_items, tables):
        with pytest.raises(MenuItemNotFoundError) as exc_info:
            service.create_order(1, lines((menu_items[0].id, 1), (999, 2)))

        assert exc_info.value.status_code == 400
        assert "999" in exc_info.value.detail
        assert _order_count(db_session) == 0

    def test_unknown_table_rejected(self, db_session, service, menu_items, tables):
        with pytest.raises(ValidationError):
            service.create_order(42, lines((menu_items[0].id, 1)))
        assert _order_count(db_session) == 0

    def test_unknown_session_rejected(self, db_session, service, menu_items, tables):
        with pytest.raises(ValidationError) as exc_info:
            service.create_order(1, lines((menu_items[0].id, 1)), "no-such-session")
        assert exc_info.value.status_code == 400
        assert _order_count(db_session) == 0

    def test_session_from_another_table_rejected(self, service, menu_items, session_id):
        with pytest.raises(ValidationError):
            service.create_order(2, lines((menu_items[0].id, 1)), session_id)

    def test_swept_session_keeps_ordering(self, db_session, service, menu_items, session_id):
        service.create_order(1, lines((menu_items[0].id, 1)), session_id)
        service.mark_table_paid(1)
        after_grace = datetime.now(timezone.utc) + timedelta(minutes=11)
        assert SessionService(db_session).sweep(now=after_grace) == 1

        dessert = service.create_order(1, lines((menu_items[2].id, 1)), session_id)

        assert dessert.order_number == 2
        db_session.expire_all()
        assert db_session.get(TableSession, session_id).is_active is True
        table = db_session.scalars(select(Table).where(Table.table_number == 1)).one()
        assert table.status == TableStatus.OCCUPIED

    def test_ended_session_is_reopened(self, db_session, service, menu_items, session_id):
        SessionService(db_session).end_session(session_id)

        order = service.create_order(1, lines((menu_items[0].id, 1)), session_id)

        assert order.order_number == 1
        db_session.expire_all()
        assert db_session.get(TableSession, session_id).is_active is True

    def test_nothing_is_published_when_validation_fails(self, service, events, tables):
        with pytest.raises(ValidationError):
            service.create_order(1, [])
        events.emit.assert_not_called()


class TestOrderNumbering:
    """A number taken by a concurrent insert is retried, never duplicated."""

    def test_stale_number_is_retried(self, db_session, service, menu_items, session_id, monkeypatch):
        service.create_order(1, lines((menu_items[0].id, 1)), session_id)

        calls = []

        def racing_next_number(sid):
            calls.append(sid)
            if len(calls) == 1:
                return 1
            return OrderService._next_order_number(service, sid)

        monkeypatch.setattr(service, "_next_order_number", racing_next_number)

        order = service.create_order(1, lines((menu_items[1].id, 1)), session_id)

        assert order.order_number == 2
        assert len(calls) == 2
        assert _order_count(db_session) == 2

    def test_gives_up_after_max_attempts(self, db_session, service, events, menu_items, session_id, monkeypatch):
        service.create_order(1, lines((menu_items[0].id, 1)), session_id)
        events.reset_mock()
        monkeypatch.setattr(service, "_next_order_number", lambda sid: 1)

        with pytest.raises(ConflictError) as exc_info:
            service.create_order(1, lines((menu_items[1].id, 2)), session_id)

        assert exc_info.value.status_code == 409
        assert _order_count(db_session) == 1
        assert db_session.scalar(select(func.count()).select_from(OrderItem)) == 1
        events.emit.assert_not_called()

    def test_numbers_stay_gapless_across_sessions(self, db_session, service, menu_items, session_id):
        other = SessionService(db_session).create_session(1, "device-xyz").id

        for sid in (session_id, other, session_id, other, session_id):
            service.create_order(1, lines((menu_items[0].id, 1)), sid)

        assert sorted(o.order_number for o in service.get_orders_for_session(session_id)) == [1, 2, 3]
        assert sorted(o.order_number for o in service.get_orders_for_session(other)) == [1, 2]


class TestUpdateStatus:
    """Status changes and the events they publish."""

    @pytest.fixture
    def order(self, service, menu_items, session_id):
        return service.create_order(1, lines((menu_items[0].id, 1)), session_id)

    def test_kitchen_flow(self, service, order):
        for status in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED):
            updated = service.update_status(order.id, status)
            assert updated.status == status

    @pytest.mark.parametrize(
        "status, extra_event",
        [
            (OrderStatus.PREPARING, None),
            (OrderStatus.READY, Events.ORDER_READY),
            (OrderStatus.SERVED, Events.ORDER_SERVED),
            (OrderStatus.PAID, Events.ORDER_PAID),
        ],
    )
    def test_events_per_status(self, service, events, order, status, extra_event):
        events.reset_mock()

        service.update_status(order.id, status)

        expected = [Events.ORDER_UPDATED] + ([extra_event] if extra_event else [])
        assert emitted(events) == expected

    def test_unknown_status_rejected(self, service, order):
        with pytest.raises(InvalidStatusError) as exc_info:
            service.update_status(order.id, "Burnt")
        assert exc_info.value.status_code == 400

    def test_missing_status_rejected(self, service, order):
        with pytest.raises(InvalidStatusError):
            service.update_status(order.id, None)

    def test_unknown_order_not_found(self, service, tables):
        with pytest.raises(OrderNotFoundError) as exc_info:
            service.update_status(999, OrderStatus.READY)
        assert exc_info.value.status_code == 404

    def test_paid_stamps_and_leaving_paid_clears_paid_at(self, service, order):
        paid = service.update_status(order.id, OrderStatus.PAID)
        assert paid.paid_at is not None

        reopened = service.update_status(order.id, OrderStatus.SERVED)
        assert reopened.paid_at is None


class TestCancelOrder:
    """Only Pending orders can be cancelled."""

    @pytest.fixture
    def order(self, service, menu_items, session_id):
        return service.create_order(
            1, lines((menu_items[0].id, 2), (menu_items[2].id, 1)), session_id
        )

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED, OrderStatus.PAID],
    )
    def test_cancel_after_pending_is_conflict(self, db_session, service, order, status):
        service.update_status(order.id, status)

        with pytest.raises(OrderNotCancellableError) as exc_info:
            service.cancel_order(order.id)

        assert exc_info.value.status_code == 409
        assert db_session.get(Order, order.id) is not None

    def test_cancel_pending_removes_order_and_items(self, db_session, service, events, order):
        events.reset_mock()

        service.cancel_order(order.id)

        db_session.expire_all()
        assert db_session.get(Order, order.id) is None
        remaining = db_session.scalar(
            select(func.count()).select_from(OrderItem).where(OrderItem.order_id == order.id)
        )
        assert remaining == 0
        events.emit.assert_called_once_with(Events.ORDER_CANCELLED, {"orderId": order.id})

    def test_cancel_unknown_order_not_found(self, service, tables):
        with pytest.raises(OrderNotFoundError):
            service.cancel_order(12345)


class TestPayment:
    """Unpaid totals and marking a table paid."""

    def test_mark_paid_is_idempotent(self, service, menu_items, session_id):
        service.create_order(1, lines((menu_items[0].id, 1)), session_id)
        service.create_order(1, lines((menu_items[1].id, 1)), session_id)

        first = service.mark_table_paid(1)
        second = service.mark_table_paid(1)

        assert first.orders_paid == 2
        assert len(first.order_ids) == 2
        assert second.orders_paid == 0
        assert second.order_ids == []
        assert service.get_unpaid_total(1) == Decimal("0.00")

    def test_mark_paid_publishes_per_order(self, service, events, menu_items, session_id):
        service.create_order(1, lines((menu_items[0].id, 1)), session_id)
        service.create_order(1, lines((menu_items[1].id, 1)), session_id)
        events.reset_mock()

        service.mark_table_paid(1)

        assert emitted(events) == [
            Events.ORDER_UPDATED, Events.ORDER_PAID,
            Events.ORDER_UPDATED, Events.ORDER_PAID,
        ]

    def test_mark_paid_only_touches_that_table(self, db_session, service, menu_items, tables):
        service.create_order(1, lines((menu_items[0].id, 1)))
        other = service.create_order(2, lines((menu_items[1].id, 1)))

        service.mark_table_paid(1)

        assert service.get_order(other.id).status == OrderStatus.PENDING
        assert service.get_unpaid_total(2) == Decimal("12.99")

    def test_mark_paid_on_pending_order(self, service, menu_items, session_id):
        order = service.create_order(1, lines((menu_items[0].id, 1)), session_id)

        service.mark_table_paid(1)

        paid = service.get_order(order.id)
        assert paid.status == OrderStatus.PAID
        assert paid.paid_at is not None

    def test_unpaid_total_excludes_paid_orders(self, service, menu_items, tables):
        bruschetta, calamari, coffee = menu_items
        a = service.create_order(3, lines((bruschetta.id, 1)))
        service.create_order(3, lines((calamari.id, 2)))
        service.create_order(3, lines((coffee.id, 3)))

        service.update_status(a.id, OrderStatus.PAID)

        assert service.get_unpaid_total(3) == Decimal("36.45")

    def test_unknown_table_not_found(self, service, tables):
        with pytest.raises(TableNotFoundError):
            service.get_unpaid_total(77)
        with pytest.raises(TableNotFoundError):
            service.mark_table_paid(77)


class TestListOrders:
    """Role-scoped listing."""

    @pytest.fixture
    def orders(self, db_session, service, menu_items, tables, waiter_user):
        db_session.execute(
            Table.__table__.update()
            .where(Table.table_number == 3)
            .values(waiter_id=waiter_user.id)
        )
        db_session.commit()
        return [
            service.create_order(number, lines((menu_items[2].id, 1)))
            for number in (1, 3, 2, 3)
        ]

    def test_waiter_sees_only_assigned_tables(self, service, orders, waiter_user):
        result = service.list_orders(Roles.WAITER, waiter_user.id)

        assert len(result) == 2
        assert {o.table_number for o in result} == {3}

    def test_unassigned_waiter_sees_nothing(self, service, orders, other_waiter):
        assert service.list_orders(Roles.WAITER, other_waiter.id) == []

    @pytest.mark.parametrize("role", [Roles.KITCHEN, Roles.ADMIN])
    def test_kitchen_and_admin_see_everything_newest_first(self, service, orders, role):
        result = service.list_orders(role)

        assert [o.id for o in result] == [o.id for o in reversed(orders)]

    def test_status_filter(self, service, orders):
        service.update_status(orders[0].id, OrderStatus.READY)

        result = service.list_orders(Roles.KITCHEN, status=OrderStatus.READY)

        assert [o.id for o in result] == [orders[0].id]

    def test_invalid_status_filter_rejected(self, service, orders):
        with pytest.raises(InvalidStatusError):
            service.list_orders(Roles.KITCHEN, status="Lost")

    def test_customer_role_forbidden(self, service, orders):
        with pytest.raises(AuthorizationError) as exc_info:
            service.list_orders(Roles.CUSTOMER, 1)
        assert exc_info.value.status_code == 403

    def test_orders_for_table_and_session(self, db_session, service, menu_items, session_id):
        mine = service.create_order(1, lines((menu_items[0].id, 1)), session_id)
        service.create_order(2, lines((menu_items[0].id, 1)))

        assert [o.id for o in service.get_orders_for_table(1)] == [mine.id]
        assert [o.id for o in service.get_orders_for_session(session_id)] == [mine.id]

    def test_orders_for_unknown_session_not_found(self, service, tables):
        with pytest.raises(SessionNotFoundError):
            service.get_orders_for_session("missing")
