"""
Report Payload Models

Response shapes consumed by the admin analytics dashboard. Every group is
always present; event-derived fields are zero or empty when the event source
is unavailable.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class TopPage(BaseModel):
    """Most viewed page"""
    path: str
    views: int
    unique_visitors: int


class BreakdownItem(BaseModel):
    """Distinct visitors per device, browser or country"""
    label: str
    users: int


class ReferrerSource(BaseModel):
    """Events attributed to one traffic source"""
    source: str
    views: int


class DeviceShare(BaseModel):
    """Device breakdown with its share of all visitors"""
    name: str
    users: int
    percentage: float


class DailyMetric(BaseModel):
    """One calendar day of the reporting window"""
    date: date
    views: int = 0
    unique_visitors: int = 0
    revenue: float = 0.0
    orders: int = 0
    average_order_value: float = 0.0


class TopProduct(BaseModel):
    """Best selling product by revenue"""
    product_id: str
    name: str
    category: str
    views: int
    purchases: int
    revenue: float
    conversion_rate: float


class CategoryRevenue(BaseModel):
    """Revenue per product category"""
    category: str
    revenue: float
    percentage: float


class FunnelStage(BaseModel):
    """One step of the buyer journey"""
    stage: str
    users: int
    percentage: float
    drop_off_rate: float
    conversion_rate: float


class FunnelTransition(BaseModel):
    """Movement between two consecutive stages"""
    from_stage: str
    to_stage: str
    users: int
    rate: float


class FunnelMetrics(BaseModel):
    """Headline rates derived from the funnel"""
    overall_conversion_rate: float = 0.0
    cart_abandonment_rate: float = 0.0
    checkout_abandonment_rate: float = 0.0
    browse_to_cart_rate: float = 0.0
    cart_to_checkout_rate: float = 0.0
    checkout_to_order_rate: float = 0.0
    average_order_value: float = 0.0
    revenue_per_visitor: float = 0.0


class FunnelReport(BaseModel):
    """
    Conversion funnel.

    `estimated` is true when the stages come from the placeholder proportion
    table rather than measured events.
    """
    mode: str
    estimated: bool
    stages: List[FunnelStage]
    metrics: FunnelMetrics
    transitions: List[FunnelTransition] = Field(default_factory=list)


class CoreMetrics(BaseModel):
    """Headline totals"""
    total_revenue: float = 0.0
    total_orders: int = 0
    total_products: int = 0
    total_users: int = 0
    new_users: int = 0
    unique_visitors: int = 0
    total_page_views: int = 0
    conversion_rate: float = 0.0
    average_order_value: float = 0.0
    pages_per_visitor: float = 0.0


class TimeSeries(BaseModel):
    """Per-day series, one entry per day of the window"""
    daily: List[DailyMetric] = Field(default_factory=list)


class ProductMetrics(BaseModel):
    """Top lists"""
    top_products: List[TopProduct] = Field(default_factory=list)
    top_pages: List[TopPage] = Field(default_factory=list)
    category_revenue: List[CategoryRevenue] = Field(default_factory=list)


class AudienceMetrics(BaseModel):
    """Visitor breakdowns"""
    devices: List[BreakdownItem] = Field(default_factory=list)
    browsers: List[BreakdownItem] = Field(default_factory=list)
    countries: List[BreakdownItem] = Field(default_factory=list)
    referrers: List[ReferrerSource] = Field(default_factory=list)
    operating_systems: List[DeviceShare] = Field(default_factory=list)


class GrowthMetrics(BaseModel):
    """Change against the equivalent-length preceding window"""
    revenue_growth: float = 0.0
    order_growth: float = 0.0
    previous_revenue: float = 0.0
    previous_orders: int = 0
    comparison_start: date
    comparison_end: date


class CustomerInsights(BaseModel):
    """Customer-level figures"""
    new_customers: int = 0
    returning_customers: int = 0
    total_customers: int = 0
    average_order_value: float = 0.0
    customer_lifetime_value: float = 0.0


class ReportPayload(BaseModel):
    """Complete dashboard report for one window"""
    start_date: date
    end_date: date
    generated_at: datetime
    event_source_available: bool
    event_source_status: Optional[str] = None
    core: CoreMetrics
    time_series: TimeSeries
    products: ProductMetrics
    audience: AudienceMetrics
    funnel: FunnelReport
    growth: GrowthMetrics
    customers: CustomerInsights
