"""Product endpoints for brand owners."""
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.config import settings
from shibr.core.database import get_db
from shibr.core.security import require_brand_owner
from shibr.models.product import Product
from shibr.models.user import User
from shibr.schemas.catalog import ProductCreate, ProductResponse, ProductUpdate

router = APIRouter()
logger = structlog.get_logger()


async def _own_product(db: AsyncSession, product_id: int, user: User) -> Product:
    product = await db.get(Product, product_id)
    if not product or not product.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )
    if product.owner_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to manage this product",
        )
    return product


@router.get("/", response_model=list[ProductResponse])
async def list_my_products(
    user: User = Depends(require_brand_owner),
    db: AsyncSession = Depends(get_db),
):
    """List the current brand owner's active products."""
    result = await db.execute(
        select(Product)
        .where(Product.owner_id == user.id, Product.is_active.is_(True))
        .order_by(Product.created_at.desc())
    )
    return result.scalars().all()


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    user: User = Depends(require_brand_owner),
    db: AsyncSession = Depends(get_db),
):
    """Create a new product."""
    product = Product(
        **product_data.model_dump(),
        owner_id=user.id,
        currency=settings.CURRENCY,
        total_sales=0,
        total_revenue=0.0,
        is_active=True,
    )
    db.add(product)
    await db.flush()

    logger.info("product_created", product_id=product.id, owner_id=user.id)
    return product


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    user: User = Depends(require_brand_owner),
    db: AsyncSession = Depends(get_db),
):
    """Get one of the current brand owner's products."""
    return await _own_product(db, product_id, user)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    user: User = Depends(require_brand_owner),
    db: AsyncSession = Depends(get_db),
):
    """Update a product."""
    product = await _own_product(db, product_id, user)
    for field, value in product_data.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    await db.flush()

    logger.info("product_updated", product_id=product.id)
    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    user: User = Depends(require_brand_owner),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a product."""
    product = await _own_product(db, product_id, user)
    product.is_active = False
    logger.info("product_deleted", product_id=product.id)
