"""Aggregates for the admin dashboard."""
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shibr.core.config import settings
from shibr.core.redis import RedisClient
from shibr.models.order import CustomerOrder, OrderStatus
from shibr.models.rental import ClearanceStatus, RentalClearance, RentalRequest, RentalStatus
from shibr.models.shelf import Shelf, ShelfStatus
from shibr.models.user import AccountType, User

logger = structlog.get_logger()

STATS_CACHE_KEY = "admin:stats"


async def _count_by(db: AsyncSession, column, enum_cls) -> dict[str, int]:
    result = await db.execute(select(column, func.count()).group_by(column))
    counts = {member.value: 0 for member in enum_cls}
    for value, count in result.all():
        if value is not None:
            counts[enum_cls(value).value] = count
    return counts


async def compute_stats(db: AsyncSession) -> dict:
    users = await _count_by(db, User.account_type, AccountType)
    shelves = await _count_by(db, Shelf.status, ShelfStatus)
    rentals = await _count_by(db, RentalRequest.status, RentalStatus)

    active_clearances = await db.scalar(
        select(func.count(RentalClearance.id)).where(
            RentalClearance.status.notin_([ClearanceStatus.NOT_STARTED, ClearanceStatus.CLOSED])
        )
    )
    order_count, revenue = (await db.execute(
        select(func.count(CustomerOrder.id), func.coalesce(func.sum(CustomerOrder.total), 0)).where(
            CustomerOrder.status.notin_([OrderStatus.CANCELLED, OrderStatus.REFUNDED])
        )
    )).one()

    return {
        "users": users,
        "total_users": sum(users.values()),
        "shelves": shelves,
        "total_shelves": sum(shelves.values()),
        "rentals": rentals,
        "active_clearances": active_clearances or 0,
        "orders": order_count or 0,
        "revenue": round(float(revenue or 0), 2),
        "currency": settings.CURRENCY,
    }


async def get_stats(db: AsyncSession, redis: RedisClient) -> dict:
    """Dashboard stats, served from Redis while fresh."""
    cached = await redis.get_json(STATS_CACHE_KEY)
    if cached:
        return cached

    stats = await compute_stats(db)
    await redis.set_json(STATS_CACHE_KEY, stats, expire=settings.STATS_CACHE_SECONDS)
    logger.info("admin_stats_computed", total_users=stats["total_users"], orders=stats["orders"])
    return stats


async def list_users(
    db: AsyncSession,
    account_type: AccountType,
    page: int = 1,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
) -> tuple[list[User], int]:
    query = select(User).where(User.account_type == account_type)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            User.full_name.ilike(pattern),
            User.email.ilike(pattern),
            User.store_name.ilike(pattern),
            User.brand_name.ilike(pattern),
        ))

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    query = query.order_by(User.created_at.desc(), User.id.desc())
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    return list(result.scalars().all()), total or 0


async def list_rental_approvals(
    db: AsyncSession,
    status: Optional[RentalStatus] = None,
    page: int = 1,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
) -> tuple[list[RentalRequest], int]:
    query = select(RentalRequest)
    if status:
        query = query.where(RentalRequest.status == status)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    query = query.order_by(RentalRequest.created_at.desc(), RentalRequest.id.desc()).options(
        selectinload(RentalRequest.products)
    )
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    return list(result.scalars().all()), total or 0
