"""
Analytics Reporting Module
"""
from .events import Event, EventFetchResult, EventSource, PostHogEventSource, resolve_event_time
from .orders import OrderLine, OrderReader, OrderRecord, PeriodTotals, SqlOrderReader, order_revenue
from .referrers import classify_referrer
from .report import ReportAssembler
from .schemas import ReportPayload
from .window import AnalyticsError, DateWindow, InvalidDateRangeError

__all__ = [
    "Event",
    "EventFetchResult",
    "EventSource",
    "PostHogEventSource",
    "resolve_event_time",
    "OrderLine",
    "OrderReader",
    "OrderRecord",
    "PeriodTotals",
    "SqlOrderReader",
    "order_revenue",
    "classify_referrer",
    "ReportAssembler",
    "ReportPayload",
    "AnalyticsError",
    "DateWindow",
    "InvalidDateRangeError",
]
