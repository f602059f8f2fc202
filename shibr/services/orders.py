"""Customer order lifecycle after placement, and the order views for each account type."""
import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shibr.core.exceptions import NotFoundError, PermissionDeniedError
from shibr.models.order import CustomerOrder, CustomerOrderItem, OrderStatus, PaymentStatus
from shibr.models.product import Product
from shibr.models.rental import RentalProduct
from shibr.models.shelf import Branch
from shibr.models.user import AccountType, User
from shibr.services.workflow import LinearWorkflow

logger = structlog.get_logger()

ORDER_WORKFLOW = LinearWorkflow(
    "order",
    [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.READY,
        OrderStatus.DELIVERED,
    ],
    exits={
        OrderStatus.CANCELLED: (
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.READY,
        ),
        OrderStatus.REFUNDED: (OrderStatus.DELIVERED,),
    },
)


class OrderPeriod(str, enum.Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


PERIOD_DAYS = {OrderPeriod.TODAY: 1, OrderPeriod.WEEK: 7, OrderPeriod.MONTH: 30}


@dataclass
class BrandOrder:
    """An order as a brand sees it: only the lines for its own products."""
    order: CustomerOrder
    items: list[CustomerOrderItem]

    @property
    def brand_total(self) -> float:
        return round(sum(item.subtotal for item in self.items), 2)


@dataclass
class OrderStatistics:
    total_orders: int = 0
    pending_orders: int = 0
    completed_orders: int = 0
    total_revenue: float = 0.0
    average_order_value: float = 0.0


def _in_period(query, period: OrderPeriod):
    if period == OrderPeriod.ALL:
        return query
    since = datetime.utcnow() - timedelta(days=PERIOD_DAYS[period])
    return query.where(CustomerOrder.created_at >= since)


async def get_order(db: AsyncSession, order_id: int) -> CustomerOrder:
    result = await db.execute(
        select(CustomerOrder)
        .options(selectinload(CustomerOrder.items))
        .where(CustomerOrder.id == order_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def check_branch_access(db: AsyncSession, branch_id: int, user: User) -> Branch:
    branch = await db.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Store not found")
    if user.account_type != AccountType.ADMIN and branch.owner_id != user.id:
        raise PermissionDeniedError("Unauthorized to access this store's orders")
    return branch


async def list_branch_orders(
    db: AsyncSession,
    branch_id: int,
    status: OrderStatus | None = None,
) -> list[CustomerOrder]:
    query = (
        select(CustomerOrder)
        .options(selectinload(CustomerOrder.items))
        .where(CustomerOrder.branch_id == branch_id)
    )
    if status:
        query = query.where(CustomerOrder.status == status)
    result = await db.execute(query.order_by(CustomerOrder.created_at.desc()))
    return list(result.scalars().all())


async def list_owner_orders(
    db: AsyncSession,
    owner_id: int,
    period: OrderPeriod = OrderPeriod.ALL,
) -> list[CustomerOrder]:
    """Orders across every branch of a store owner, newest first."""
    query = (
        select(CustomerOrder)
        .options(selectinload(CustomerOrder.items))
        .where(CustomerOrder.branch_id.in_(select(Branch.id).where(Branch.owner_id == owner_id)))
    )
    result = await db.execute(_in_period(query, period).order_by(CustomerOrder.created_at.desc()))
    return list(result.scalars().all())


async def list_brand_orders(
    db: AsyncSession,
    brand_id: int,
    period: OrderPeriod = OrderPeriod.ALL,
) -> list[BrandOrder]:
    """Orders containing the brand's products, each trimmed to the brand's own lines."""
    brand_products = select(Product.id).where(Product.owner_id == brand_id)
    query = (
        select(CustomerOrder)
        .options(selectinload(CustomerOrder.items))
        .where(CustomerOrder.id.in_(
            select(CustomerOrderItem.order_id).where(CustomerOrderItem.product_id.in_(brand_products))
        ))
    )
    result = await db.execute(_in_period(query, period).order_by(CustomerOrder.created_at.desc()))
    product_ids = set((await db.scalars(brand_products)).all())
    return [
        BrandOrder(order, [item for item in order.items if item.product_id in product_ids])
        for order in result.scalars().all()
    ]


async def order_statistics(
    db: AsyncSession,
    user: User,
    period: OrderPeriod = OrderPeriod.ALL,
    branch_id: Optional[int] = None,
) -> OrderStatistics:
    """
    Order counts and paid revenue for the user's scope.

    Store owners see their branches, or one of them with `branch_id`; admins
    see every branch. A brand's revenue only counts its own lines.
    """
    if user.account_type == AccountType.BRAND_OWNER:
        brand_orders = await list_brand_orders(db, user.id, period)
        orders = [entry.order for entry in brand_orders]
        values = {entry.order.id: entry.brand_total for entry in brand_orders}
    else:
        if branch_id is not None:
            await check_branch_access(db, branch_id, user)
            orders = list(await _scoped_orders(db, CustomerOrder.branch_id == branch_id, period))
        elif user.account_type == AccountType.STORE_OWNER:
            orders = await list_owner_orders(db, user.id, period)
        else:
            orders = list(await _scoped_orders(db, None, period))
        values = {order.id: order.total for order in orders}

    stats = OrderStatistics(total_orders=len(orders))
    if not orders:
        return stats
    stats.pending_orders = sum(1 for order in orders if order.status == OrderStatus.PENDING)
    stats.completed_orders = sum(1 for order in orders if order.status == OrderStatus.DELIVERED)
    revenue = sum(values[order.id] for order in orders if order.payment_status == PaymentStatus.PAID)
    stats.total_revenue = round(revenue, 2)
    stats.average_order_value = round(revenue / len(orders), 2)
    return stats


async def _scoped_orders(db: AsyncSession, criterion, period: OrderPeriod):
    query = select(CustomerOrder)
    if criterion is not None:
        query = query.where(criterion)
    return (await db.scalars(_in_period(query, period))).all()


async def _restore_stock(db: AsyncSession, order: CustomerOrder) -> None:
    for item in order.items:
        rental_product = await db.get(RentalProduct, item.rental_product_id)
        if rental_product is not None:
            rental_product.quantity += item.quantity
        product = await db.get(Product, item.product_id)
        if product is not None:
            product.total_sales = max(0, (product.total_sales or 0) - item.quantity)
            product.total_revenue = max(0.0, (product.total_revenue or 0) - item.subtotal)


async def update_order_status(
    db: AsyncSession,
    order: CustomerOrder,
    new_status: OrderStatus,
    user: User,
) -> CustomerOrder:
    """Move an order one step; cancelling puts the units back on the shelf."""
    await check_branch_access(db, order.branch_id, user)
    ORDER_WORKFLOW.check(order.status, new_status)

    now = datetime.utcnow()
    order.status = new_status
    if new_status == OrderStatus.CONFIRMED:
        order.confirmed_at = now
    elif new_status == OrderStatus.DELIVERED:
        order.delivered_at = now
        order.payment_status = PaymentStatus.PAID
    elif new_status == OrderStatus.CANCELLED:
        order.cancelled_at = now
        await _restore_stock(db, order)
    elif new_status == OrderStatus.REFUNDED:
        order.payment_status = PaymentStatus.REFUNDED

    await db.flush()
    logger.info(
        "order_status_updated",
        order_number=order.order_number,
        status=new_status.value,
        user_id=user.id,
    )
    return order
