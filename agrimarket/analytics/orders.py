"""
Order/Revenue Reader

Reads placed orders with their lines and product projections for a reporting
window, plus the point-in-time counts the dashboard shows next to them.

Revenue is always derived from order lines (price * quantity). The
denormalized `orders.total` column is never consulted.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol, Tuple

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agrimarket.database.models import Order, OrderItem, Product, User
from .window import DateWindow

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class OrderLine:
    """One order item with its product projection"""
    product_id: Optional[str]
    product_name: Optional[str]
    category: Optional[str]
    quantity: int
    price: Decimal

    @property
    def revenue(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderRecord:
    """A placed order as seen by reporting"""
    order_id: str
    user_id: str
    created_at: datetime
    items: Tuple[OrderLine, ...] = ()

    @property
    def revenue(self) -> Decimal:
        return order_revenue(self)


@dataclass(frozen=True)
class PeriodTotals:
    """Revenue and order count for one window"""
    revenue: Decimal
    orders: int


def order_revenue(order: OrderRecord) -> Decimal:
    """Sum of price * quantity over the order's lines; 0 for an empty order."""
    return sum((line.revenue for line in order.items), ZERO)


def total_revenue(orders: Iterable[OrderRecord]) -> Decimal:
    return sum((order_revenue(order) for order in orders), ZERO)


class OrderReader(Protocol):
    """Transactional store queries needed by the report"""

    async def orders_in_window(self, window: DateWindow) -> List[OrderRecord]:
        ...

    async def count_users(self) -> int:
        ...

    async def count_new_users(self, window: DateWindow) -> int:
        ...

    async def count_products(self) -> int:
        ...

    async def window_totals(self, window: DateWindow) -> PeriodTotals:
        ...

    async def customer_lifetime_value(self) -> Decimal:
        ...


def _to_line(item: OrderItem) -> OrderLine:
    product = item.product
    return OrderLine(
        product_id=str(item.product_id) if item.product_id is not None else None,
        product_name=product.name if product is not None else None,
        category=product.category if product is not None else None,
        quantity=item.quantity if item.quantity is not None else 1,
        price=Decimal(str(item.price)) if item.price is not None else ZERO,
    )


def _to_record(order: Order) -> OrderRecord:
    return OrderRecord(
        order_id=str(order.id),
        user_id=order.user_id,
        created_at=order.created_at,
        items=tuple(_to_line(item) for item in order.items),
    )


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value))


class SqlOrderReader:
    """
    OrderReader over the marketplace database.

    All queries share one session and run one after another.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _in_window(column, window: DateWindow):
        return column.between(window.start_datetime, window.end_datetime)

    async def orders_in_window(self, window: DateWindow) -> List[OrderRecord]:
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.product))
            .where(self._in_window(Order.created_at, window))
            .order_by(Order.created_at)
        )
        orders = [_to_record(order) for order in result.scalars().all()]
        logger.debug("Orders loaded", window=str(window), orders=len(orders))
        return orders

    async def count_users(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(User))
        return result.scalar_one()

    async def count_new_users(self, window: DateWindow) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(User)
            .where(self._in_window(User.created_at, window))
        )
        return result.scalar_one()

    async def count_products(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Product))
        return result.scalar_one()

    async def window_totals(self, window: DateWindow) -> PeriodTotals:
        orders_result = await self.session.execute(
            select(func.count(Order.id)).where(self._in_window(Order.created_at, window))
        )
        revenue_result = await self.session.execute(
            select(func.sum(OrderItem.price * OrderItem.quantity))
            .join(Order, OrderItem.order_id == Order.id)
            .where(self._in_window(Order.created_at, window))
        )
        return PeriodTotals(
            revenue=_as_decimal(revenue_result.scalar_one()),
            orders=orders_result.scalar_one(),
        )

    async def customer_lifetime_value(self) -> Decimal:
        """Average line-derived revenue across customers with at least one order."""
        result = await self.session.execute(
            select(Order.user_id, func.sum(OrderItem.price * OrderItem.quantity))
            .select_from(Order)
            .outerjoin(OrderItem, OrderItem.order_id == Order.id)
            .group_by(Order.user_id)
        )
        per_customer = [_as_decimal(revenue) for _, revenue in result.all()]
        if not per_customer:
            return ZERO
        return sum(per_customer, ZERO) / len(per_customer)
