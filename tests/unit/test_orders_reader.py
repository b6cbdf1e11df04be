"""
Unit Tests - Order/Revenue Reader
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from agrimarket.analytics.orders import SqlOrderReader, order_revenue, total_revenue
from agrimarket.analytics.window import DateWindow
from agrimarket.database.models import Order, OrderItem, OrderStatus, Product, User
from tests.builders import make_line, make_order


@pytest.fixture
async def marketplace(test_db):
    """Two customers, one vendor, two products and three orders"""
    vendor = User(id="vendor-1", email="vendor@farm.example", created_at=datetime(2023, 6, 1))
    alice = User(id="user-1", email="alice@example.com", created_at=datetime(2023, 12, 1))
    bongani = User(id="user-2", email="bongani@example.com", created_at=datetime(2024, 1, 2, 8, 0))

    maize = Product(vendor_id="vendor-1", name="Maize Seed", category="seeds", price=Decimal("50.00"))
    fertiliser = Product(vendor_id="vendor-1", name="Fertiliser", category="inputs", price=Decimal("15.00"))

    orders = [
        Order(
            user=alice,
            status=OrderStatus.PAID,
            total=Decimal("999.00"),
            created_at=datetime(2024, 1, 1, 10, 0),
            items=[OrderItem(product=maize, quantity=1, price=Decimal("50.00"))],
        ),
        Order(
            user=alice,
            status=OrderStatus.DELIVERED,
            total=Decimal("0.00"),
            created_at=datetime(2024, 1, 3, 23, 30),
            items=[OrderItem(product=fertiliser, quantity=2, price=Decimal("15.00"))],
        ),
        Order(
            user=bongani,
            status=OrderStatus.PAID,
            created_at=datetime(2023, 12, 30, 12, 0),
            items=[OrderItem(product=maize, quantity=1, price=Decimal("20.00"))],
        ),
    ]

    test_db.add_all([vendor, alice, bongani, maize, fertiliser, *orders])
    await test_db.commit()
    return test_db


class TestOrderRevenue:
    """Revenue is derived from order lines only"""

    def test_sum_of_lines(self):
        order = make_order(make_line("50.00"), make_line("12.50", quantity=2))

        assert order_revenue(order) == Decimal("75.00")

    def test_empty_order(self):
        assert order_revenue(make_order()) == Decimal("0")

    def test_total_revenue(self):
        orders = [make_order(make_line("50.00")), make_order(make_line("30.00"))]

        assert total_revenue(orders) == Decimal("80.00")


class TestSqlOrderReader:
    """Tests for SqlOrderReader against the marketplace schema"""

    async def test_orders_in_window(self, marketplace, january_window):
        reader = SqlOrderReader(marketplace)

        orders = await reader.orders_in_window(january_window)

        assert len(orders) == 2
        assert [o.created_at.date() for o in orders] == [date(2024, 1, 1), date(2024, 1, 3)]
        first_line = orders[0].items[0]
        assert first_line.product_name == "Maize Seed"
        assert first_line.category == "seeds"
        assert first_line.revenue == Decimal("50.00")

    async def test_revenue_ignores_order_total(self, marketplace, january_window):
        reader = SqlOrderReader(marketplace)

        orders = await reader.orders_in_window(january_window)

        assert total_revenue(orders) == Decimal("80.00")

    async def test_counts(self, marketplace, january_window):
        reader = SqlOrderReader(marketplace)

        assert await reader.count_users() == 3
        assert await reader.count_new_users(january_window) == 1
        assert await reader.count_products() == 2

    async def test_window_totals(self, marketplace, january_window):
        reader = SqlOrderReader(marketplace)

        current = await reader.window_totals(january_window)
        previous = await reader.window_totals(january_window.previous())

        assert current.orders == 2
        assert current.revenue == Decimal("80")
        assert previous.orders == 1
        assert previous.revenue == Decimal("20")

    async def test_empty_window(self, marketplace):
        reader = SqlOrderReader(marketplace)
        window = DateWindow(start=date(2024, 2, 1), end=date(2024, 2, 7))

        totals = await reader.window_totals(window)

        assert await reader.orders_in_window(window) == []
        assert totals.orders == 0
        assert totals.revenue == Decimal("0")

    async def test_customer_lifetime_value(self, marketplace):
        reader = SqlOrderReader(marketplace)

        # alice 80, bongani 20
        assert await reader.customer_lifetime_value() == Decimal("50")

    async def test_customer_lifetime_value_without_orders(self, test_db):
        reader = SqlOrderReader(test_db)

        assert await reader.customer_lifetime_value() == Decimal("0")

    async def test_line_without_product(self, test_db, january_window):
        buyer = User(id="user-9", email="nine@example.com", created_at=datetime(2023, 1, 1))
        order = Order(
            user=buyer,
            created_at=datetime(2024, 1, 2, 9, 0),
            items=[OrderItem(product=None, quantity=3, price=Decimal("4.00"))],
        )
        test_db.add_all([buyer, order])
        await test_db.commit()

        orders = await SqlOrderReader(test_db).orders_in_window(january_window)

        line = orders[0].items[0]
        assert line.product_id is None
        assert line.product_name is None
        assert orders[0].revenue == Decimal("12.00")
