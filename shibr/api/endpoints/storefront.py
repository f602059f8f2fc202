"""Public storefront and shopping cart endpoints."""
import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.config import settings
from shibr.core.database import get_db
from shibr.core.exceptions import NotFoundError
from shibr.services import checkout
from shibr.services.cart import Cart
from shibr.services.sessions import SessionStore, get_session_store
from shibr.services.storefront import get_active_branch, get_branch_stock
from shibr.schemas.storefront import (
    CartCreate, CartItemAdd, CartItemUpdate, CartResponse,
    CheckoutRequest, CheckoutResponse, OrderResponse, PlaceOrderRequest,
    StorefrontProduct, StorefrontResponse,
)

router = APIRouter()
logger = structlog.get_logger()


def cart_response(cart_id: str, cart: Cart, removed: list[int] | None = None) -> CartResponse:
    totals = cart.totals().as_dict()
    return CartResponse(
        cart_id=cart_id,
        branch_id=cart.branch_id,
        items=[
            {
                "product_id": item.product_id,
                "name": item.name,
                "price": item.price,
                "quantity": item.quantity,
                "max_quantity": item.max_quantity,
                "subtotal": item.subtotal,
            }
            for item in cart.items.values()
        ],
        total_items=cart.total_items,
        removed_product_ids=removed or [],
        **totals,
    )


@router.get("/store/{branch_id}", response_model=StorefrontResponse)
async def get_storefront(
    branch_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Products on the branch's shelves with live stock."""
    branch = await get_active_branch(db, branch_id)
    stock = await get_branch_stock(db, branch.id)
    return StorefrontResponse(
        branch_id=branch.id,
        store_name=branch.name,
        city=branch.city,
        currency=settings.CURRENCY,
        products=[
            StorefrontProduct(
                product_id=line.product_id,
                name=line.name,
                description=line.description,
                category=line.category,
                price=line.price,
                quantity=line.quantity,
            )
            for line in stock.values()
            if line.quantity > 0
        ],
    )


@router.post("/carts", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def create_cart(
    body: CartCreate,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Open an empty cart for a branch."""
    branch = await get_active_branch(db, body.branch_id)
    cart_id = store.new_cart_id()
    cart = Cart(branch_id=branch.id)
    await store.save_cart(cart_id, cart)

    logger.info("cart_created", cart_id=cart_id, branch_id=branch.id)
    return cart_response(cart_id, cart)


@router.get("/carts/{cart_id}", response_model=CartResponse)
async def get_cart(
    cart_id: str,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Read the cart, re-clamped against live stock."""
    cart = await checkout.load_cart(store, cart_id)
    removed = await checkout.refresh_cart(db, cart)
    await store.save_cart(cart_id, cart)
    return cart_response(cart_id, cart, removed)


@router.post("/carts/{cart_id}/items", response_model=CartResponse)
async def add_cart_item(
    cart_id: str,
    body: CartItemAdd,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Add units of a product; the line is clamped to shelf stock."""
    cart = await checkout.load_cart(store, cart_id)
    stock = await get_branch_stock(db, cart.branch_id)
    line = stock.get(body.product_id)
    if line is None:
        raise NotFoundError("Product is not available in this store")

    removed = await checkout.refresh_cart(db, cart)
    cart.add_item(line.product_id, line.name, line.price, line.quantity, body.quantity)
    await store.save_cart(cart_id, cart)

    logger.info("cart_item_added", cart_id=cart_id, product_id=line.product_id, quantity=body.quantity)
    return cart_response(cart_id, cart, removed)


@router.patch("/carts/{cart_id}/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    cart_id: str,
    product_id: int,
    body: CartItemUpdate,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Set a line's quantity; 0 removes the line."""
    cart = await checkout.load_cart(store, cart_id)
    stock = await get_branch_stock(db, cart.branch_id)
    line = stock.get(product_id)
    cart.update_quantity(product_id, body.quantity, line.quantity if line else 0)
    removed = await checkout.refresh_cart(db, cart)
    await store.save_cart(cart_id, cart)
    return cart_response(cart_id, cart, removed)


@router.delete("/carts/{cart_id}/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(
    cart_id: str,
    product_id: int,
    store: SessionStore = Depends(get_session_store),
):
    """Remove a line from the cart."""
    cart = await checkout.load_cart(store, cart_id)
    cart.remove_item(product_id)
    await store.save_cart(cart_id, cart)
    return cart_response(cart_id, cart)


@router.delete("/carts/{cart_id}/items", response_model=CartResponse)
async def clear_cart(
    cart_id: str,
    store: SessionStore = Depends(get_session_store),
):
    """Empty the cart."""
    cart = await checkout.load_cart(store, cart_id)
    cart.clear()
    await store.save_cart(cart_id, cart)
    return cart_response(cart_id, cart)


@router.post("/carts/{cart_id}/checkout", response_model=CheckoutResponse)
async def submit_checkout(
    cart_id: str,
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Hand the order payload to the payment step."""
    payload = await checkout.start_checkout(db, store, cart_id, body.customer_name, body.customer_phone)
    return CheckoutResponse(
        redirect_url=checkout.payment_redirect(payload["branch_id"]),
        order=payload,
    )


@router.post("/carts/{cart_id}/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    cart_id: str,
    body: PlaceOrderRequest,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Payment step: turn the pending checkout into an order."""
    return await checkout.place_order(db, store, cart_id, body.payment_method, body.notes)
