"""
Report Assembler

Sequences the pipeline for one window:

    Event Source Adapter  \
                           +-> Metric Aggregators -> Funnel Builder -> ReportPayload
    Order/Revenue Reader  /

The event fetch and the order reads run concurrently; aggregation waits for
both. An unavailable event source leaves every event-derived metric at zero
while order-derived metrics stay fully populated.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

import structlog

from agrimarket.config import get_settings
from agrimarket.config.settings import AnalyticsSettings
from . import aggregators
from .events import EventSource
from .funnel import build_funnel
from .orders import OrderReader, OrderRecord, PeriodTotals, total_revenue
from .schemas import (
    AudienceMetrics,
    CoreMetrics,
    CustomerInsights,
    GrowthMetrics,
    ProductMetrics,
    ReportPayload,
    TimeSeries,
)
from .window import DateWindow

logger = structlog.get_logger(__name__)
settings = get_settings()


@dataclass
class OrderSnapshot:
    """Everything read from the transactional store for one report"""
    orders: List[OrderRecord]
    total_users: int
    new_users: int
    total_products: int
    comparison_window: DateWindow
    previous: PeriodTotals
    customer_lifetime_value: Decimal


class ReportAssembler:
    """
    Builds the dashboard report from injectable sources.

    Example:
        assembler = ReportAssembler(PostHogEventSource(), SqlOrderReader(session))
        payload = await assembler.build(DateWindow.last_days(7))
    """

    def __init__(
        self,
        event_source: EventSource,
        order_reader: OrderReader,
        config: Optional[AnalyticsSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.event_source = event_source
        self.order_reader = order_reader
        self.config = config or settings.analytics
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def read_orders(self, window: DateWindow) -> OrderSnapshot:
        """
        Order-side reads. Growth compares against `window.previous()`, the
        equal-length window just before this one, not a fixed 30-day shift.
        """
        reader = self.order_reader
        comparison = window.previous()

        orders = await reader.orders_in_window(window)
        total_users = await reader.count_users()
        new_users = await reader.count_new_users(window)
        total_products = await reader.count_products()
        previous = await reader.window_totals(comparison)
        lifetime_value = await reader.customer_lifetime_value()

        return OrderSnapshot(
            orders=orders,
            total_users=total_users,
            new_users=new_users,
            total_products=total_products,
            comparison_window=comparison,
            previous=previous,
            customer_lifetime_value=lifetime_value,
        )

    async def build(self, window: DateWindow) -> ReportPayload:
        logger.info("Building analytics report", window=str(window))

        fetch, snapshot = await asyncio.gather(
            self.event_source.fetch_events(window),
            self.read_orders(window),
        )

        if not fetch.available:
            logger.warning(
                "Event source unavailable, reporting order metrics only",
                reason=fetch.reason,
            )

        frame = aggregators.events_frame(fetch.events if fetch.available else [])
        orders = snapshot.orders

        revenue = total_revenue(orders)
        order_count = len(orders)
        page_views = aggregators.page_view_count(frame)
        visitors = aggregators.unique_visitor_count(frame)
        average_order_value = aggregators.safe_ratio(revenue, order_count)
        devices = aggregators.device_breakdown(frame)

        core = CoreMetrics(
            total_revenue=round(float(revenue), 2),
            total_orders=order_count,
            total_products=snapshot.total_products,
            total_users=snapshot.total_users,
            new_users=snapshot.new_users,
            unique_visitors=visitors,
            total_page_views=page_views,
            conversion_rate=aggregators.conversion_rate(order_count, page_views),
            average_order_value=average_order_value,
            pages_per_visitor=aggregators.safe_ratio(page_views, visitors),
        )

        products = ProductMetrics(
            top_products=aggregators.top_products(orders, frame, limit=self.config.top_limit),
            top_pages=aggregators.top_pages(frame, limit=self.config.top_limit),
            category_revenue=aggregators.category_revenue(orders),
        )

        audience = AudienceMetrics(
            devices=devices,
            browsers=aggregators.browser_breakdown(frame, limit=self.config.breakdown_limit),
            countries=aggregators.country_breakdown(frame, limit=self.config.breakdown_limit),
            referrers=aggregators.referrer_breakdown(frame),
            operating_systems=aggregators.operating_systems(devices, visitors),
        )

        growth = GrowthMetrics(
            revenue_growth=aggregators.growth_rate(revenue, snapshot.previous.revenue),
            order_growth=aggregators.growth_rate(order_count, snapshot.previous.orders),
            previous_revenue=round(float(snapshot.previous.revenue), 2),
            previous_orders=snapshot.previous.orders,
            comparison_start=snapshot.comparison_window.start,
            comparison_end=snapshot.comparison_window.end,
        )

        customers = CustomerInsights(
            new_customers=snapshot.new_users,
            returning_customers=max(0, visitors - snapshot.new_users),
            total_customers=snapshot.total_users,
            average_order_value=average_order_value,
            customer_lifetime_value=round(float(snapshot.customer_lifetime_value), 2),
        )

        funnel = build_funnel(
            frame,
            total_orders=order_count,
            total_revenue=revenue,
            estimates=self.config.funnel_estimates,
            browse_prefixes=self.config.browse_path_prefixes,
        )

        payload = ReportPayload(
            start_date=window.start,
            end_date=window.end,
            generated_at=self._clock(),
            event_source_available=fetch.available,
            event_source_status=fetch.reason,
            core=core,
            time_series=TimeSeries(daily=aggregators.daily_metrics(frame, orders, window)),
            products=products,
            audience=audience,
            funnel=funnel,
            growth=growth,
            customers=customers,
        )

        logger.info(
            "Analytics report built",
            window=str(window),
            revenue=core.total_revenue,
            orders=order_count,
            page_views=page_views,
            visitors=visitors,
            funnel_mode=funnel.mode,
        )
        return payload
