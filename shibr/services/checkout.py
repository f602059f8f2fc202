"""
Checkout: turns a cart into a pending order payload, then into an order.

Starting checkout stores the payload in the session store and sends the
shopper on to the payment step; no order row exists until the payment step
calls `place_order`.
"""
import time
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from shibr.models.chat import NotificationType
from shibr.models.order import CustomerOrder, CustomerOrderItem, PaymentMethod
from shibr.models.product import Product
from shibr.models.rental import RentalProduct
from shibr.services import otp
from shibr.services.cart import Cart
from shibr.services.notifications import notify
from shibr.services.pricing import calculate_totals, line_subtotal
from shibr.services.sessions import SessionStore
from shibr.services.storefront import (
    get_active_branch, get_branch_stock, stock_levels, stock_prices,
)

logger = structlog.get_logger()


async def load_cart(store: SessionStore, cart_id: str) -> Cart:
    cart = await store.load_cart(cart_id)
    if cart is None:
        raise NotFoundError("Cart not found")
    return cart


async def refresh_cart(db: AsyncSession, cart: Cart) -> list[int]:
    """Re-clamp the cart against live stock and prices. Returns dropped product ids."""
    stock = await get_branch_stock(db, cart.branch_id)
    return cart.refresh(stock_levels(stock), stock_prices(stock))


def payment_redirect(branch_id: int) -> str:
    return f"/store/{branch_id}/payment"


async def check_phone_verified(db: AsyncSession, store: SessionStore, cart_id: str, phone: str) -> None:
    """The phone must have been verified from this very cart."""
    verified = await store.verified_phone(cart_id)
    if verified != otp.normalize_phone(phone) or not await otp.is_verified(db, phone):
        raise PermissionDeniedError("Please verify your phone number before checkout")


async def start_checkout(
    db: AsyncSession,
    store: SessionStore,
    cart_id: str,
    customer_name: str,
    customer_phone: str,
) -> dict:
    """Validate the shopper and cart, then hand the order payload to the payment step."""
    cart = await load_cart(store, cart_id)
    branch = await get_active_branch(db, cart.branch_id)

    customer_name = (customer_name or "").strip()
    if not customer_name:
        raise BusinessRuleError("Name is required")
    if not customer_phone:
        raise BusinessRuleError("Phone number is required")
    if not otp.is_valid_local_phone(customer_phone):
        raise BusinessRuleError("Invalid phone number format")
    await check_phone_verified(db, store, cart_id, customer_phone)

    await refresh_cart(db, cart)
    await store.save_cart(cart_id, cart)
    if cart.is_empty:
        raise BusinessRuleError("Your cart is empty")

    totals = cart.totals()
    payload = {
        "branch_id": branch.id,
        "store_name": branch.name,
        "customer_name": customer_name,
        "customer_phone": customer_phone,
        "items": [
            {
                "product_id": item.product_id,
                "name": item.name,
                "price": item.price,
                "quantity": item.quantity,
            }
            for item in cart.items.values()
        ],
        **totals.as_dict(),
        "timestamp": int(time.time() * 1000),
    }
    await store.save_pending_order(cart_id, payload)

    logger.info(
        "checkout_started",
        cart_id=cart_id,
        branch_id=branch.id,
        items=cart.total_items,
        total=payload["total"],
    )
    return payload


async def next_order_number(db: AsyncSession) -> str:
    count = await db.scalar(select(func.count(CustomerOrder.id)))
    return f"ORD-{(count or 0) + 1:06d}"


async def place_order(
    db: AsyncSession,
    store: SessionStore,
    cart_id: str,
    payment_method: PaymentMethod,
    notes: Optional[str] = None,
) -> CustomerOrder:
    """Create the order from the pending payload, taking units off the shelves."""
    pending = await store.load_pending_order(cart_id)
    if not pending:
        raise NotFoundError("No pending checkout for this cart")

    branch = await get_active_branch(db, pending["branch_id"])
    await check_phone_verified(db, store, cart_id, pending["customer_phone"])

    stock = await get_branch_stock(db, branch.id)
    for item in pending["items"]:
        line = stock.get(item["product_id"])
        if line is None or line.quantity < item["quantity"]:
            raise BusinessRuleError(f"Insufficient stock for {item['name']}")

    order = CustomerOrder(
        order_number=await next_order_number(db),
        branch_id=branch.id,
        customer_name=pending["customer_name"],
        customer_phone=pending["customer_phone"],
        payment_method=payment_method,
        notes=notes,
        subtotal=0.0,
        tax=0.0,
        total=0.0,
    )

    subtotal = 0
    for item in pending["items"]:
        line = stock[item["product_id"]]
        remaining = item["quantity"]
        for rental_product_id, available in line.sources:
            if remaining == 0:
                break
            take = min(available, remaining)
            if take == 0:
                continue
            rental_product = await db.get(RentalProduct, rental_product_id)
            rental_product.quantity -= take
            line_total = line_subtotal(line.price, take)
            subtotal += line_total
            order.items.append(CustomerOrderItem(
                product_id=line.product_id,
                rental_product_id=rental_product_id,
                product_name=line.name,
                price=line.price,
                quantity=take,
                subtotal=float(line_total),
            ))
            remaining -= take

        product = await db.get(Product, line.product_id)
        product.total_sales = (product.total_sales or 0) + item["quantity"]
        product.total_revenue = (product.total_revenue or 0) + float(line_subtotal(line.price, item["quantity"]))

    totals = calculate_totals(subtotal)
    order.subtotal = float(totals.subtotal)
    order.tax = float(totals.tax)
    order.total = float(totals.total)

    db.add(order)
    await db.flush()

    await notify(
        db,
        user_id=branch.owner_id,
        type=NotificationType.NEW_ORDER,
        title="New order",
        message=f"Order {order.order_number} received at {branch.name}",
        action_url=f"/store-dashboard/orders/{order.id}",
    )
    await otp.clear_codes(db, pending["customer_phone"])
    await store.clear_phone_verified(cart_id)
    await store.delete_pending_order(cart_id)
    await store.delete_cart(cart_id)

    logger.info(
        "order_placed",
        order_number=order.order_number,
        branch_id=branch.id,
        total=order.total,
    )
    return order
