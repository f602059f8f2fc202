"""Admin dashboard endpoints."""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.config import settings
from shibr.core.database import get_db
from shibr.core.redis import RedisClient, get_redis
from shibr.core.security import require_admin
from shibr.models.rental import ClearanceStatus, RentalStatus
from shibr.models.user import AccountType, User
from shibr.schemas.admin import (
    PlatformSettings, PlatformSettingsUpdate, PurgeResult, RentalPage,
    StatsResponse, UserPage,
)
from shibr.schemas.rental import ClearanceResponse, RentalRequestResponse
from shibr.schemas.user import UserResponse
from shibr.services import admin, notifications, platform
from shibr.services.clearance import list_clearances

router = APIRouter(dependencies=[Depends(require_admin)])
logger = structlog.get_logger()


def _pages(total: int, page_size: int) -> int:
    return (total + page_size - 1) // page_size


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
):
    """Platform-wide counters, cached briefly."""
    return await admin.get_stats(db, redis)


async def _user_page(db, account_type, page, page_size, search) -> UserPage:
    users, total = await admin.list_users(db, account_type, page, page_size, search)
    return UserPage(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        page_size=page_size,
        pages=_pages(total, page_size),
    )


@router.get("/stores", response_model=UserPage)
async def list_store_owners(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    return await _user_page(db, AccountType.STORE_OWNER, page, page_size, search)


@router.get("/brands", response_model=UserPage)
async def list_brand_owners(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    return await _user_page(db, AccountType.BRAND_OWNER, page, page_size, search)


@router.get("/rentals", response_model=RentalPage)
async def list_rental_approvals(
    status: Optional[RentalStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    """Rental requests across the platform, newest first."""
    rentals, total = await admin.list_rental_approvals(db, status, page, page_size)
    return RentalPage(
        items=[RentalRequestResponse.model_validate(r) for r in rentals],
        total=total,
        page=page,
        page_size=page_size,
        pages=_pages(total, page_size),
    )


@router.get("/clearances", response_model=list[ClearanceResponse])
async def list_all_clearances(
    status: Optional[ClearanceStatus] = None,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await list_clearances(db, user, status)


@router.get("/settings", response_model=PlatformSettings)
async def get_platform_settings(db: AsyncSession = Depends(get_db)):
    return await platform.get_settings(db)


@router.put("/settings", response_model=PlatformSettings)
async def update_platform_settings(
    body: PlatformSettingsUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Change fee and pricing limits; omitted fields keep their value."""
    values = await platform.update_settings(db, body.model_dump(exclude_none=True))
    logger.info("platform_settings_updated", **values)
    return values


@router.post("/notifications/purge", response_model=PurgeResult)
async def purge_notifications(
    days: int = Query(30, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """Delete read notifications older than `days`."""
    return PurgeResult(deleted=await notifications.purge_old(db, days))
