"""
Metric Aggregators

Independent folds over the window's events and orders. Events are loaded once
into a polars frame (`events_frame`) and every event metric is a group-by over
it. All folds return zero values or empty lists for empty input.
"""

from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence, Union
from urllib.parse import urlsplit

import polars as pl
import structlog

from .events import Event
from .orders import OrderRecord, order_revenue
from .referrers import classify_referrer
from .schemas import (
    BreakdownItem,
    CategoryRevenue,
    DailyMetric,
    DeviceShare,
    ReferrerSource,
    TopPage,
    TopProduct,
)
from .window import DateWindow

logger = structlog.get_logger(__name__)

Number = Union[int, float, Decimal]

PAGEVIEW = "$pageview"
PRODUCT_VIEWED = "product_viewed"
UNKNOWN = "Unknown"

EVENT_SCHEMA = {
    "event": pl.Utf8,
    "visitor_id": pl.Utf8,
    "day": pl.Date,
    "path": pl.Utf8,
    "device": pl.Utf8,
    "browser": pl.Utf8,
    "country": pl.Utf8,
    "source": pl.Utf8,
    "product_id": pl.Utf8,
}

LINE_SCHEMA = {
    "product_id": pl.Utf8,
    "name": pl.Utf8,
    "category": pl.Utf8,
    "quantity": pl.Int64,
    "revenue": pl.Float64,
}


# =============================================================================
# HELPERS
# =============================================================================

def percentage(part: Number, whole: Number) -> float:
    """part / whole * 100 rounded to two places; 0 when whole is 0."""
    if not whole:
        return 0.0
    return round(float(part) / float(whole) * 100, 2)


def safe_ratio(numerator: Number, denominator: Number) -> float:
    if not denominator:
        return 0.0
    return round(float(numerator) / float(denominator), 2)


def growth_rate(current: Number, previous: Number) -> float:
    """Percent change from previous to current; 0 when previous is 0."""
    if not previous:
        return 0.0
    return round((float(current) - float(previous)) / float(previous) * 100, 2)


def conversion_rate(total_orders: int, total_page_views: int) -> float:
    return percentage(total_orders, total_page_views)


def capitalize(value: str) -> str:
    return value[:1].upper() + value[1:]


def _label(value: Any, capitalized: bool = True) -> str:
    if value is None:
        return UNKNOWN
    text = str(value).strip()
    if not text:
        return UNKNOWN
    return capitalize(text) if capitalized else text


def page_path(event: Event) -> str:
    """Normalized page path: `$pathname`, else the path of `$current_url`."""
    pathname = event.prop("$pathname")
    if isinstance(pathname, str) and pathname.strip():
        return pathname.strip()

    url = event.prop("$current_url")
    if isinstance(url, str) and url.strip():
        try:
            parts = urlsplit(url.strip())
        except ValueError:
            return url.strip()
        if parts.netloc:
            return parts.path or "/"
        return url.strip()
    return UNKNOWN


def _product_id(event: Event) -> Optional[str]:
    value = event.prop("product_id")
    return str(value) if value not in (None, "") else None


# =============================================================================
# FRAMES
# =============================================================================

def events_frame(events: Iterable[Event]) -> pl.DataFrame:
    """One row per event with the properties every aggregator needs."""
    rows = [
        {
            "event": event.name,
            "visitor_id": event.visitor_id,
            "day": event.day,
            "path": page_path(event),
            "device": _label(event.prop("$device_type") or event.prop("$os")),
            "browser": _label(event.prop("$browser")),
            "country": _label(event.prop("$geoip_country_name"), capitalized=False),
            "source": classify_referrer(event.prop("$referrer")),
            "product_id": _product_id(event),
        }
        for event in events
    ]
    return pl.DataFrame(rows, schema=EVENT_SCHEMA)


def order_lines_frame(orders: Iterable[OrderRecord]) -> pl.DataFrame:
    """One row per order line whose product still exists."""
    rows = [
        {
            "product_id": line.product_id,
            "name": line.product_name,
            "category": capitalize((line.category or "").strip() or "other"),
            "quantity": line.quantity,
            "revenue": float(line.revenue),
        }
        for order in orders
        for line in order.items
        if line.product_id is not None and line.product_name is not None
    ]
    return pl.DataFrame(rows, schema=LINE_SCHEMA)


def page_views(frame: pl.DataFrame) -> pl.DataFrame:
    return frame.filter(pl.col("event") == PAGEVIEW)


# =============================================================================
# EVENT METRICS
# =============================================================================

def unique_visitor_count(frame: pl.DataFrame) -> int:
    """Distinct visitor ids across every event kind."""
    return frame["visitor_id"].n_unique() if frame.height else 0


def page_view_count(frame: pl.DataFrame) -> int:
    return page_views(frame).height


def top_pages(frame: pl.DataFrame, limit: int = 10) -> List[TopPage]:
    grouped = (
        page_views(frame)
        .group_by("path")
        .agg(
            pl.len().alias("views"),
            pl.col("visitor_id").n_unique().alias("unique_visitors"),
        )
        .sort(["views", "path"], descending=[True, False])
        .head(limit)
    )
    return [TopPage(**row) for row in grouped.iter_rows(named=True)]


def _visitor_breakdown(frame: pl.DataFrame, column: str, limit: Optional[int] = None) -> List[BreakdownItem]:
    grouped = (
        frame.group_by(column)
        .agg(pl.col("visitor_id").n_unique().alias("users"))
        .sort(["users", column], descending=[True, False])
    )
    if limit is not None:
        grouped = grouped.head(limit)
    return [BreakdownItem(label=row[column], users=row["users"]) for row in grouped.iter_rows(named=True)]


def device_breakdown(frame: pl.DataFrame) -> List[BreakdownItem]:
    return _visitor_breakdown(frame, "device")


def browser_breakdown(frame: pl.DataFrame, limit: Optional[int] = 10) -> List[BreakdownItem]:
    return _visitor_breakdown(frame, "browser", limit)


def country_breakdown(frame: pl.DataFrame, limit: Optional[int] = 10) -> List[BreakdownItem]:
    return _visitor_breakdown(frame, "country", limit)


def operating_systems(devices: Sequence[BreakdownItem], unique_visitors: int) -> List[DeviceShare]:
    return [
        DeviceShare(name=item.label, users=item.users, percentage=percentage(item.users, unique_visitors))
        for item in devices
    ]


def referrer_breakdown(frame: pl.DataFrame) -> List[ReferrerSource]:
    """Events per traffic source."""
    grouped = (
        frame.group_by("source")
        .agg(pl.len().alias("views"))
        .sort(["views", "source"], descending=[True, False])
    )
    return [ReferrerSource(**row) for row in grouped.iter_rows(named=True)]


# =============================================================================
# TIME SERIES
# =============================================================================

def daily_metrics(
    frame: pl.DataFrame,
    orders: Iterable[OrderRecord],
    window: DateWindow,
) -> List[DailyMetric]:
    """
    One entry per calendar day of the window, ascending.

    Days are seeded with zeros first, then page views and orders are folded
    into their day. Activity outside the window is ignored.
    """
    days = pl.DataFrame({"day": window.days()}, schema={"day": pl.Date})

    views = (
        page_views(frame)
        .group_by("day")
        .agg(
            pl.len().cast(pl.Int64).alias("views"),
            pl.col("visitor_id").n_unique().cast(pl.Int64).alias("unique_visitors"),
        )
    )

    sales = (
        pl.DataFrame(
            [{"day": order.created_at.date(), "revenue": float(order_revenue(order))} for order in orders],
            schema={"day": pl.Date, "revenue": pl.Float64},
        )
        .group_by("day")
        .agg(
            pl.col("revenue").sum(),
            pl.len().cast(pl.Int64).alias("orders"),
        )
    )

    daily = (
        days.join(views, on="day", how="left")
        .join(sales, on="day", how="left")
        .with_columns(
            pl.col("views", "unique_visitors", "orders").fill_null(0),
            pl.col("revenue").fill_null(0.0),
        )
        .sort("day")
    )

    return [
        DailyMetric(
            date=row["day"],
            views=row["views"],
            unique_visitors=row["unique_visitors"],
            revenue=round(row["revenue"], 2),
            orders=row["orders"],
            average_order_value=safe_ratio(row["revenue"], row["orders"]),
        )
        for row in daily.iter_rows(named=True)
    ]


# =============================================================================
# ORDER METRICS
# =============================================================================

def top_products(
    orders: Iterable[OrderRecord],
    frame: Optional[pl.DataFrame] = None,
    limit: int = 10,
) -> List[TopProduct]:
    """
    Products ranked by line revenue.

    Views are counted from `product_viewed` events tagged with the product id;
    without events every product has zero views and zero conversion.
    """
    lines = order_lines_frame(orders)
    products = lines.group_by("product_id").agg(
        pl.col("name").first(),
        pl.col("category").first(),
        pl.col("quantity").sum().alias("purchases"),
        pl.col("revenue").sum(),
    )

    if frame is None:
        frame = pl.DataFrame([], schema=EVENT_SCHEMA)
    views = (
        frame.filter(pl.col("event") == PRODUCT_VIEWED, pl.col("product_id").is_not_null())
        .group_by("product_id")
        .agg(pl.len().cast(pl.Int64).alias("views"))
    )

    ranked = (
        products.join(views, on="product_id", how="left")
        .with_columns(pl.col("views").fill_null(0))
        .sort(["revenue", "name"], descending=[True, False])
        .head(limit)
    )

    return [
        TopProduct(
            product_id=row["product_id"],
            name=row["name"],
            category=row["category"],
            views=row["views"],
            purchases=row["purchases"],
            revenue=round(row["revenue"], 2),
            conversion_rate=percentage(row["purchases"], row["views"]),
        )
        for row in ranked.iter_rows(named=True)
    ]


def category_revenue(orders: Iterable[OrderRecord]) -> List[CategoryRevenue]:
    """Per-product revenue summed into product categories."""
    grouped = (
        order_lines_frame(orders)
        .group_by("category")
        .agg(pl.col("revenue").sum())
        .sort(["revenue", "category"], descending=[True, False])
    )
    total = grouped["revenue"].sum() if grouped.height else 0.0

    return [
        CategoryRevenue(
            category=row["category"],
            revenue=round(row["revenue"], 2),
            percentage=percentage(row["revenue"], total),
        )
        for row in grouped.iter_rows(named=True)
    ]
