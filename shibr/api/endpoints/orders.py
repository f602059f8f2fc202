"""Customer order endpoints for store owners, brands and admins."""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.database import get_db
from shibr.core.security import (
    get_current_user, require_account_type, require_brand_owner, require_store_owner,
)
from shibr.models.order import OrderStatus
from shibr.models.user import AccountType, User
from shibr.schemas.storefront import (
    BrandOrderResponse, OrderItemResponse, OrderResponse, OrderStatisticsResponse, OrderStatusUpdate,
)
from shibr.services import orders
from shibr.services.orders import OrderPeriod

router = APIRouter()

store_or_admin = require_account_type(AccountType.STORE_OWNER, AccountType.ADMIN)


@router.get("/branch/{branch_id}", response_model=list[OrderResponse])
async def list_branch_orders(
    branch_id: int,
    status: Optional[OrderStatus] = None,
    user: User = Depends(store_or_admin),
    db: AsyncSession = Depends(get_db),
):
    """List a branch's orders, newest first."""
    await orders.check_branch_access(db, branch_id, user)
    return await orders.list_branch_orders(db, branch_id, status)


@router.get("/store", response_model=list[OrderResponse])
async def list_store_orders(
    period: OrderPeriod = OrderPeriod.ALL,
    user: User = Depends(require_store_owner),
    db: AsyncSession = Depends(get_db),
):
    """Orders across all of the store owner's branches."""
    return await orders.list_owner_orders(db, user.id, period)


@router.get("/brand", response_model=list[BrandOrderResponse])
async def list_brand_orders(
    period: OrderPeriod = OrderPeriod.ALL,
    user: User = Depends(require_brand_owner),
    db: AsyncSession = Depends(get_db),
):
    """Orders that sold the brand's products, showing only its own lines."""
    return [
        BrandOrderResponse(
            id=entry.order.id,
            order_number=entry.order.order_number,
            branch_id=entry.order.branch_id,
            status=entry.order.status,
            payment_status=entry.order.payment_status,
            created_at=entry.order.created_at,
            brand_total=entry.brand_total,
            items=[OrderItemResponse.model_validate(item) for item in entry.items],
        )
        for entry in await orders.list_brand_orders(db, user.id, period)
    ]


@router.get("/stats", response_model=OrderStatisticsResponse)
async def order_statistics(
    period: OrderPeriod = OrderPeriod.ALL,
    branch_id: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await orders.order_statistics(db, user, period, branch_id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    user: User = Depends(store_or_admin),
    db: AsyncSession = Depends(get_db),
):
    """Get order by ID."""
    order = await orders.get_order(db, order_id)
    await orders.check_branch_access(db, order.branch_id, user)
    return order


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    user: User = Depends(store_or_admin),
    db: AsyncSession = Depends(get_db),
):
    """Move an order to its next status, or cancel or refund it."""
    order = await orders.get_order(db, order_id)
    return await orders.update_order_status(db, order, body.status, user)
