"""
Property-based tests with Hypothesis: money arithmetic, per-session order
numbering and the unpaid total.
"""

from decimal import Decimal

from hypothesis import HealthCheck, given, settings, strategies as st

from conftest import lines
from rest_api.services.domain import OrderService, SessionService
from rest_api.services.domain.order_service import compute_total
from shared.config.constants import OrderStatus

prices = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("999.99"), places=2)
quantities = st.integers(min_value=1, max_value=50)

db_settings = settings(
    max_examples=15,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


class TestComputeTotal:

    @given(st.lists(st.tuples(prices, quantities), min_size=1, max_size=20))
    def test_total_is_exact_sum(self, pairs):
        expected = sum((price * qty for price, qty in pairs), Decimal("0"))
        assert compute_total(pairs) == expected

    @given(st.lists(st.tuples(prices, quantities), min_size=1, max_size=20))
    def test_total_has_two_decimal_places(self, pairs):
        assert compute_total(pairs).as_tuple().exponent == -2

    @given(st.lists(st.tuples(prices, quantities), min_size=2, max_size=10))
    def test_order_of_lines_does_not_matter(self, pairs):
        assert compute_total(pairs) == compute_total(list(reversed(pairs)))


class TestOrderNumbering:

    @db_settings
    @given(count=st.integers(min_value=1, max_value=6))
    def test_numbers_are_sequential_within_a_session(self, db_session, menu_items, tables, count):
        session = SessionService(db_session).create_session(1, "device-1")
        orders = OrderService(db_session)

        numbers = [
            orders.create_order(1, lines((menu_items[0].id, 1)), session.id).order_number
            for _ in range(count)
        ]

        assert numbers == list(range(1, count + 1))

    @db_settings
    @given(cancel_index=st.integers(min_value=0, max_value=2))
    def test_numbers_keep_increasing_after_cancellation(self, db_session, menu_items, tables, cancel_index):
        session = SessionService(db_session).create_session(2, "device-1")
        orders = OrderService(db_session)
        created = [
            orders.create_order(2, lines((menu_items[1].id, 1)), session.id) for _ in range(3)
        ]
        orders.cancel_order(created[cancel_index].id)

        following = orders.create_order(2, lines((menu_items[1].id, 1)), session.id)

        assert following.order_number > max(
            o.order_number for i, o in enumerate(created) if i != cancel_index
        )


class TestUnpaidTotal:

    @db_settings
    @given(paid_mask=st.lists(st.booleans(), min_size=1, max_size=5))
    def test_unpaid_total_counts_only_unpaid_orders(self, db_session, menu_items, tables, paid_mask):
        orders = OrderService(db_session)
        before = orders.get_unpaid_total(3)

        expected = Decimal("0")
        for index, paid in enumerate(paid_mask):
            item = menu_items[index % len(menu_items)]
            created = orders.create_order(3, lines((item.id, 1)), None)
            if paid:
                orders.update_status(created.id, OrderStatus.PAID)
            else:
                expected += item.price

        assert orders.get_unpaid_total(3) == before + expected
