"""Shelf listing and marketplace endpoints."""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.config import settings
from shibr.core.database import get_db
from shibr.core.security import require_store_owner
from shibr.models.shelf import Branch, Shelf, ShelfStatus
from shibr.models.user import User
from shibr.schemas.catalog import ShelfCreate, ShelfList, ShelfResponse, ShelfUpdate
from shibr.services import platform
from shibr.services.pricing import price_with_platform_fee

router = APIRouter()
logger = structlog.get_logger()


async def _check_pricing(db: AsyncSession, monthly_price: float, discount: float) -> float:
    """Validate against the platform limits and return the price brands see."""
    limits = await platform.get_settings(db)
    if monthly_price < limits[platform.MINIMUM_SHELF_PRICE]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Monthly price must be at least {limits[platform.MINIMUM_SHELF_PRICE]:.2f} {settings.CURRENCY}",
        )
    if discount > limits[platform.MAXIMUM_DISCOUNT]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Discount cannot exceed {limits[platform.MAXIMUM_DISCOUNT]:g}%",
        )
    return price_with_platform_fee(monthly_price, limits[platform.PLATFORM_FEE])


@router.get("/", response_model=ShelfList)
async def list_marketplace_shelves(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    city: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    branch_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    """List approved, available shelves with filters."""
    query = select(Shelf).where(
        Shelf.status == ShelfStatus.APPROVED,
        Shelf.is_available.is_(True),
    )

    if city:
        query = query.where(Shelf.city.ilike(city))
    if min_price is not None:
        query = query.where(Shelf.monthly_price >= min_price)
    if max_price is not None:
        query = query.where(Shelf.monthly_price <= max_price)
    if branch_id:
        query = query.where(Shelf.branch_id == branch_id)

    # Get total count
    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    # Apply pagination
    query = query.order_by(Shelf.created_at.desc(), Shelf.id.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)

    return ShelfList(
        items=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size,
    )


@router.get("/mine", response_model=list[ShelfResponse])
async def list_my_shelves(
    user: User = Depends(require_store_owner),
    db: AsyncSession = Depends(get_db),
):
    """List every shelf the current store owner has listed."""
    result = await db.execute(
        select(Shelf).where(Shelf.owner_id == user.id).order_by(Shelf.created_at.desc())
    )
    return result.scalars().all()


@router.get("/{shelf_id}", response_model=ShelfResponse)
async def get_shelf(
    shelf_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get shelf by ID."""
    shelf = await db.get(Shelf, shelf_id)
    if not shelf:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shelf not found",
        )
    return shelf


@router.post("/", response_model=ShelfResponse, status_code=status.HTTP_201_CREATED)
async def create_shelf(
    shelf_data: ShelfCreate,
    user: User = Depends(require_store_owner),
    db: AsyncSession = Depends(get_db),
):
    """List a shelf in one of the current store owner's branches."""
    branch = await db.get(Branch, shelf_data.branch_id)
    if not branch or branch.owner_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Branch not found",
        )

    final_price = await _check_pricing(db, shelf_data.monthly_price, shelf_data.discount_percentage)
    shelf = Shelf(
        **shelf_data.model_dump(),
        owner_id=user.id,
        city=branch.city,
        final_price=final_price,
        is_available=True,
        status=ShelfStatus.APPROVED,
    )
    db.add(shelf)
    await db.flush()

    logger.info("shelf_created", shelf_id=shelf.id, branch_id=branch.id, monthly_price=shelf.monthly_price)
    return shelf


@router.patch("/{shelf_id}", response_model=ShelfResponse)
async def update_shelf(
    shelf_id: int,
    shelf_data: ShelfUpdate,
    user: User = Depends(require_store_owner),
    db: AsyncSession = Depends(get_db),
):
    """Update a shelf listing."""
    shelf = await db.get(Shelf, shelf_id)
    if not shelf:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shelf not found",
        )
    if shelf.owner_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to update this shelf",
        )

    changes = shelf_data.model_dump(exclude_unset=True)
    if "monthly_price" in changes or "discount_percentage" in changes:
        shelf.final_price = await _check_pricing(
            db,
            changes.get("monthly_price", shelf.monthly_price),
            changes.get("discount_percentage", shelf.discount_percentage or 0),
        )
    if changes.get("is_available") and shelf.status == ShelfStatus.RENTED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A rented shelf cannot be made available",
        )
    for field, value in changes.items():
        setattr(shelf, field, value)
    await db.flush()

    logger.info("shelf_updated", shelf_id=shelf.id)
    return shelf


@router.delete("/{shelf_id}", status_code=status.HTTP_204_NO_CONTENT)
async def archive_shelf(
    shelf_id: int,
    user: User = Depends(require_store_owner),
    db: AsyncSession = Depends(get_db),
):
    """Archive a shelf listing."""
    shelf = await db.get(Shelf, shelf_id)
    if not shelf:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shelf not found",
        )
    if shelf.owner_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to delete this shelf",
        )
    if shelf.status == ShelfStatus.RENTED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot archive a rented shelf",
        )

    shelf.status = ShelfStatus.ARCHIVED
    shelf.is_available = False
    logger.info("shelf_archived", shelf_id=shelf.id)
