"""
Funnel Builder

Buyer journey: Visit -> Browse -> View Product -> Add to Cart ->
Start Checkout -> Purchase. Stage order is fixed.

Two modes:
- events: stage counts are distinct visitors per tracked event kind.
- estimated: no stage-tagged events exist, so stages are a fixed share of
  visitors taken from a configurable proportion table. These are placeholder
  figures, not measurements, and the report flags them as such.

In both modes the Purchase stage is never lower than the order count from the
transactional store.
"""

import math
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import polars as pl
import structlog

from agrimarket.config import get_settings
from .aggregators import PAGEVIEW, PRODUCT_VIEWED, percentage, safe_ratio, unique_visitor_count
from .schemas import FunnelMetrics, FunnelReport, FunnelStage, FunnelTransition

logger = structlog.get_logger(__name__)
settings = get_settings()


class FunnelMode(str, Enum):
    """How the stage counts were obtained"""
    EVENTS = "events"
    ESTIMATED = "estimated"


STAGE_VISIT = "Visit"
STAGE_BROWSE = "Browse"
STAGE_VIEW_PRODUCT = "View Product"
STAGE_ADD_TO_CART = "Add to Cart"
STAGE_START_CHECKOUT = "Start Checkout"
STAGE_PURCHASE = "Purchase"

STAGES: Tuple[str, ...] = (
    STAGE_VISIT,
    STAGE_BROWSE,
    STAGE_VIEW_PRODUCT,
    STAGE_ADD_TO_CART,
    STAGE_START_CHECKOUT,
    STAGE_PURCHASE,
)

ADD_TO_CART_EVENTS = ("add_to_cart", "product_added_to_cart")
CHECKOUT_EVENTS = ("checkout_started",)
PURCHASE_EVENTS = ("purchase_completed",)

STAGE_EVENTS: Tuple[str, ...] = (PRODUCT_VIEWED,) + ADD_TO_CART_EVENTS + CHECKOUT_EVENTS + PURCHASE_EVENTS

# Keys of the proportion table, in stage order after Visit
ESTIMATE_KEYS: Tuple[str, ...] = ("browse", "view_product", "add_to_cart", "start_checkout")


def has_stage_events(frame: pl.DataFrame) -> bool:
    return frame.filter(pl.col("event").is_in(list(STAGE_EVENTS))).height > 0


def _visitors(frame: pl.DataFrame, predicate: pl.Expr) -> int:
    return frame.filter(predicate)["visitor_id"].n_unique()


def _on_catalogue(prefixes: Sequence[str]) -> pl.Expr:
    if not prefixes:
        return pl.lit(False)
    return pl.any_horizontal([pl.col("path").str.starts_with(prefix) for prefix in prefixes])


def measured_counts(
    frame: pl.DataFrame,
    total_orders: int,
    browse_prefixes: Sequence[str],
) -> List[int]:
    """Distinct visitors per stage from stage-tagged events."""
    is_page_view = pl.col("event") == PAGEVIEW

    visit = _visitors(frame, is_page_view) or unique_visitor_count(frame)
    browse = _visitors(
        frame,
        (is_page_view & _on_catalogue(browse_prefixes)) | (pl.col("event") == PRODUCT_VIEWED),
    )
    view_product = _visitors(frame, pl.col("event") == PRODUCT_VIEWED)
    add_to_cart = _visitors(frame, pl.col("event").is_in(list(ADD_TO_CART_EVENTS)))
    start_checkout = _visitors(frame, pl.col("event").is_in(list(CHECKOUT_EVENTS)))
    purchase = _visitors(frame, pl.col("event").is_in(list(PURCHASE_EVENTS)))

    # Orders are the source of truth for completed purchases
    return [visit, browse, view_product, add_to_cart, start_checkout, max(purchase, total_orders)]


def estimated_counts(
    unique_visitors: int,
    total_orders: int,
    estimates: Dict[str, float],
) -> List[int]:
    """Placeholder stage counts from the proportion table."""
    counts = [unique_visitors]
    counts.extend(math.floor(unique_visitors * estimates.get(key, 0.0)) for key in ESTIMATE_KEYS)
    counts.append(total_orders)
    return counts


def compute_stages(counts: Sequence[int], names: Sequence[str] = STAGES) -> List[FunnelStage]:
    """
    Per-stage percentage of entry, drop-off and conversion from the previous
    stage. A later stage larger than an earlier one yields a negative drop-off.
    """
    stages: List[FunnelStage] = []
    entry = counts[0] if counts else 0
    previous: Optional[int] = None

    for name, users in zip(names, counts):
        if previous is None:
            stages.append(FunnelStage(
                stage=name,
                users=users,
                percentage=100.0,
                drop_off_rate=0.0,
                conversion_rate=100.0,
            ))
        else:
            stages.append(FunnelStage(
                stage=name,
                users=users,
                percentage=percentage(users, entry),
                drop_off_rate=percentage(previous - users, previous),
                conversion_rate=percentage(users, previous),
            ))
        previous = users

    return stages


def funnel_transitions(stages: Sequence[FunnelStage]) -> List[FunnelTransition]:
    return [
        FunnelTransition(
            from_stage=before.stage,
            to_stage=after.stage,
            users=after.users,
            rate=after.conversion_rate,
        )
        for before, after in zip(stages, stages[1:])
    ]


def funnel_metrics(
    stages: Sequence[FunnelStage],
    total_revenue: Union[Decimal, float],
    total_orders: int,
) -> FunnelMetrics:
    users = {stage.stage: stage.users for stage in stages}
    visit = users.get(STAGE_VISIT, 0)
    browse = users.get(STAGE_BROWSE, 0)
    cart = users.get(STAGE_ADD_TO_CART, 0)
    checkout = users.get(STAGE_START_CHECKOUT, 0)
    purchase = users.get(STAGE_PURCHASE, 0)

    return FunnelMetrics(
        overall_conversion_rate=percentage(purchase, visit),
        cart_abandonment_rate=percentage(cart - purchase, cart),
        checkout_abandonment_rate=percentage(checkout - purchase, checkout),
        browse_to_cart_rate=percentage(cart, browse),
        cart_to_checkout_rate=percentage(checkout, cart),
        checkout_to_order_rate=percentage(purchase, checkout),
        average_order_value=safe_ratio(total_revenue, total_orders),
        revenue_per_visitor=safe_ratio(total_revenue, visit),
    )


def build_funnel(
    frame: pl.DataFrame,
    total_orders: int,
    total_revenue: Union[Decimal, float] = 0,
    estimates: Optional[Dict[str, float]] = None,
    browse_prefixes: Optional[Sequence[str]] = None,
) -> FunnelReport:
    """
    Build the conversion funnel for a window.

    Args:
        frame: Events frame from `events_frame`
        total_orders: Orders placed in the window
        total_revenue: Line-derived revenue for the window
        estimates: Proportion table for estimated mode
        browse_prefixes: Page paths that count as browsing
    """
    if estimates is None:
        estimates = settings.analytics.funnel_estimates
    if browse_prefixes is None:
        browse_prefixes = settings.analytics.browse_path_prefixes

    if has_stage_events(frame):
        mode = FunnelMode.EVENTS
        counts = measured_counts(frame, total_orders, browse_prefixes)
    else:
        mode = FunnelMode.ESTIMATED
        counts = estimated_counts(unique_visitor_count(frame), total_orders, estimates)
        logger.warning(
            "No stage-tagged events, funnel estimated from placeholder proportions",
            visitors=counts[0],
            orders=total_orders,
        )

    stages = compute_stages(counts)
    logger.debug("Funnel built", mode=mode.value, counts=counts)

    return FunnelReport(
        mode=mode.value,
        estimated=mode is FunnelMode.ESTIMATED,
        stages=stages,
        metrics=funnel_metrics(stages, total_revenue, total_orders),
        transitions=funnel_transitions(stages),
    )
