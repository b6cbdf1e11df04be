"""
Unit Tests - Metric Aggregators
"""
from datetime import date, datetime

import pytest

from agrimarket.analytics import aggregators
from agrimarket.analytics.aggregators import (
    UNKNOWN,
    browser_breakdown,
    category_revenue,
    country_breakdown,
    daily_metrics,
    device_breakdown,
    events_frame,
    growth_rate,
    operating_systems,
    page_path,
    page_view_count,
    percentage,
    referrer_breakdown,
    top_pages,
    top_products,
    unique_visitor_count,
)
from tests.builders import make_event, make_line, make_order, page_view


@pytest.fixture
def catalogue_orders():
    return [
        make_order(make_line("50.00"), created_at=datetime(2024, 1, 1, 9, 0)),
        make_order(
            make_line("15.00", quantity=2, product_id="prod-2", name="Fertiliser", category="inputs"),
            created_at=datetime(2024, 1, 2, 9, 0),
        ),
        make_order(make_line("50.00"), created_at=datetime(2024, 1, 3, 9, 0)),
    ]


class TestNumericHelpers:
    """Tests for the guarded arithmetic helpers"""

    def test_percentage_rounds(self):
        assert percentage(1, 3) == 33.33

    def test_percentage_zero_whole(self):
        assert percentage(5, 0) == 0.0

    def test_growth_from_zero_is_zero(self):
        assert growth_rate(100, 0) == 0.0

    @pytest.mark.parametrize("current,previous,expected", [
        (150, 100, 50.0),
        (50, 100, -50.0),
        (100, 100, 0.0),
    ])
    def test_growth_rate(self, current, previous, expected):
        assert growth_rate(current, previous) == expected


class TestPagePath:
    """Tests for page path normalization"""

    def test_pathname_preferred(self):
        event = make_event("$pageview", properties={
            "$pathname": "/products",
            "$current_url": "https://market.example/other",
        })

        assert page_path(event) == "/products"

    def test_path_from_url(self):
        event = make_event("$pageview", properties={"$current_url": "https://market.example/search?q=maize"})

        assert page_path(event) == "/search"

    def test_bare_host_is_root(self):
        event = make_event("$pageview", properties={"$current_url": "https://market.example"})

        assert page_path(event) == "/"

    def test_missing(self):
        assert page_path(make_event("$pageview")) == UNKNOWN


class TestEmptyInput:
    """Every fold returns zero or empty for no events"""

    def test_zero_values(self):
        frame = events_frame([])

        assert unique_visitor_count(frame) == 0
        assert page_view_count(frame) == 0
        assert top_pages(frame) == []
        assert device_breakdown(frame) == []
        assert browser_breakdown(frame) == []
        assert country_breakdown(frame) == []
        assert referrer_breakdown(frame) == []
        assert top_products([], frame) == []
        assert category_revenue([]) == []


class TestEventMetrics:
    """Tests for event-derived metrics"""

    def test_visitors_and_page_views(self):
        events = [page_view("visitor-a") for _ in range(6)] + [page_view("visitor-b") for _ in range(4)]
        frame = events_frame(events)

        assert unique_visitor_count(frame) == 2
        assert page_view_count(frame) == 10

    def test_unique_visitors_count_all_event_kinds(self):
        frame = events_frame([
            page_view("visitor-a"),
            make_event("product_viewed", visitor_id="visitor-b", properties={"product_id": "prod-1"}),
        ])

        assert unique_visitor_count(frame) == 2
        assert page_view_count(frame) == 1

    def test_top_pages(self):
        frame = events_frame([
            page_view("visitor-a", "/products"),
            page_view("visitor-a", "/products"),
            page_view("visitor-b", "/products"),
            page_view("visitor-a", "/"),
        ])

        pages = top_pages(frame)

        assert [(p.path, p.views, p.unique_visitors) for p in pages] == [
            ("/products", 3, 2),
            ("/", 1, 1),
        ]

    def test_top_pages_limit(self):
        frame = events_frame([page_view("visitor-a", f"/page-{i}") for i in range(15)])

        assert len(top_pages(frame, limit=10)) == 10

    def test_device_breakdown_with_unknown(self):
        frame = events_frame([
            page_view("visitor-a", device_type="mobile"),
            page_view("visitor-a", device_type="mobile"),
            page_view("visitor-b", device_type="Desktop"),
            page_view("visitor-c", device_type="mobile"),
            page_view("visitor-d"),
        ])

        devices = device_breakdown(frame)

        assert [(d.label, d.users) for d in devices] == [
            ("Mobile", 2),
            ("Desktop", 1),
            (UNKNOWN, 1),
        ]

    def test_operating_system_shares(self):
        frame = events_frame([
            page_view("visitor-a", device_type="Mobile"),
            page_view("visitor-b", device_type="Mobile"),
            page_view("visitor-c", device_type="Desktop"),
            page_view("visitor-d", device_type="Desktop"),
        ])

        shares = operating_systems(device_breakdown(frame), unique_visitor_count(frame))

        assert [s.percentage for s in shares] == [50.0, 50.0]

    def test_browser_breakdown_capped(self):
        frame = events_frame([page_view(f"visitor-{i}", browser=f"Browser{i:02d}") for i in range(12)])

        assert len(browser_breakdown(frame, limit=10)) == 10

    def test_country_label_kept_as_sent(self):
        frame = events_frame([page_view("visitor-a", geoip_country_name="South Africa")])

        assert country_breakdown(frame)[0].label == "South Africa"

    def test_referrer_breakdown(self):
        frame = events_frame([
            page_view("visitor-a", referrer="https://www.google.com/"),
            page_view("visitor-b", referrer="https://www.google.co.za/"),
            page_view("visitor-c", referrer="$direct"),
            page_view("visitor-d", referrer="https://news.example/"),
        ])

        sources = {r.source: r.views for r in referrer_breakdown(frame)}

        assert sources == {"Google": 2, "Direct": 1, "Other": 1}


class TestDailyMetrics:
    """Tests for the daily time series"""

    def test_one_entry_per_day_without_activity(self, january_window):
        daily = daily_metrics(events_frame([]), [], january_window)

        assert [d.date for d in daily] == january_window.days()
        assert all(d.views == 0 and d.orders == 0 and d.revenue == 0 for d in daily)

    def test_activity_folded_into_days(self, january_window):
        orders = [
            make_order(make_line("50.00"), created_at=datetime(2024, 1, 1, 10, 0)),
            make_order(make_line("30.00"), created_at=datetime(2024, 1, 3, 16, 0)),
        ]
        frame = events_frame([
            page_view("visitor-a", day=date(2024, 1, 2)),
            page_view("visitor-a", day=date(2024, 1, 2)),
        ])

        daily = daily_metrics(frame, orders, january_window)

        assert [(d.views, d.unique_visitors, d.orders, d.revenue) for d in daily] == [
            (0, 0, 1, 50.0),
            (2, 1, 0, 0.0),
            (0, 0, 1, 30.0),
        ]
        assert daily[0].average_order_value == 50.0
        assert daily[1].average_order_value == 0.0

    def test_activity_outside_window_ignored(self, january_window):
        orders = [make_order(make_line("99.00"), created_at=datetime(2024, 1, 9, 10, 0))]

        daily = daily_metrics(events_frame([]), orders, january_window)

        assert len(daily) == 3
        assert sum(d.revenue for d in daily) == 0


class TestOrderMetrics:
    """Tests for product and category metrics"""

    def test_top_products_ranked_by_revenue(self, catalogue_orders):
        frame = events_frame([
            make_event("product_viewed", visitor_id=f"visitor-{i}", properties={"product_id": "prod-1"})
            for i in range(4)
        ])

        products = top_products(catalogue_orders, frame)

        assert [p.name for p in products] == ["Maize Seed", "Fertiliser"]
        maize, fertiliser = products
        assert (maize.purchases, maize.revenue, maize.views, maize.conversion_rate) == (2, 100.0, 4, 50.0)
        assert maize.category == "Seeds"
        assert (fertiliser.purchases, fertiliser.revenue, fertiliser.views) == (2, 30.0, 0)
        assert fertiliser.conversion_rate == 0.0

    def test_top_products_without_events(self, catalogue_orders):
        products = top_products(catalogue_orders)

        assert all(p.views == 0 and p.conversion_rate == 0.0 for p in products)

    def test_deleted_products_skipped(self):
        orders = [make_order(make_line("10.00", product_id=None, name=None))]

        assert top_products(orders) == []
        assert category_revenue(orders) == []

    def test_category_revenue(self, catalogue_orders):
        categories = category_revenue(catalogue_orders)

        assert [(c.category, c.revenue, c.percentage) for c in categories] == [
            ("Seeds", 100.0, 76.92),
            ("Inputs", 30.0, 23.08),
        ]

    def test_conversion_rate_guarded(self):
        assert aggregators.conversion_rate(3, 0) == 0.0
        assert aggregators.conversion_rate(2, 8) == 25.0

    def test_category_case_merged(self):
        orders = [
            make_order(make_line("10.00", product_id="prod-1", name="Maize Seed", category="seeds")),
            make_order(make_line("5.00", product_id="prod-2", name="Bean Seed", category="Seeds ")),
            make_order(make_line("2.00", product_id="prod-3", name="Twine", category=None)),
        ]

        categories = category_revenue(orders)

        assert [(c.category, c.revenue) for c in categories] == [("Seeds", 15.0), ("Other", 2.0)]
        assert {p.category for p in top_products(orders)} == {"Seeds", "Other"}
