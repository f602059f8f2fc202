"""
Post-rental clearance.

A clearance walks one completed rental through a fixed sequence: count what
sold, ship the rest back to the brand, work out who is owed what, pay the
store its commission and close with a clearance document.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shibr.core.config import settings
from shibr.core.exceptions import NotFoundError, PermissionDeniedError
from shibr.models.chat import NotificationType
from shibr.models.order import (
    Payment, PaymentMethod, PaymentStatus, PaymentType, TransferStatus,
)
from shibr.models.product import Product
from shibr.models.rental import (
    ClearanceStatus, RentalClearance, RentalRequest,
)
from shibr.models.user import AccountType, User
from shibr.services.notifications import notify
from shibr.services.pricing import calculate_totals, to_money
from shibr.services.workflow import LinearWorkflow

logger = structlog.get_logger()

CLEARANCE_WORKFLOW = LinearWorkflow("clearance", list(ClearanceStatus))

STORE = "store"
BRAND = "brand"
ADMIN = "admin"


def _check_actor(rental: RentalRequest, user: User, *actors: str) -> None:
    if ADMIN in actors and user.account_type == AccountType.ADMIN:
        return
    if STORE in actors and user.id == rental.store_owner_id:
        return
    if BRAND in actors and user.id == rental.brand_owner_id:
        return
    raise PermissionDeniedError("You are not allowed to perform this clearance step")


def check_viewer(rental: RentalRequest, user: User) -> None:
    _check_actor(rental, user, STORE, BRAND, ADMIN)


def build_snapshot(rental: RentalRequest, products: dict[int, Product]) -> list[dict]:
    """Per product: what went on the shelf, what sold and what is left."""
    snapshot = []
    for rental_product in rental.products:
        product = products.get(rental_product.product_id)
        if product is None:
            continue
        initial = rental_product.original_quantity
        remaining = max(0, rental_product.quantity)
        sold = max(0, initial - remaining)
        sales_value = to_money(Decimal(str(product.price)) * sold)
        snapshot.append({
            "product_id": product.id,
            "product_name": product.name,
            "initial_quantity": initial,
            "sold_quantity": sold,
            "remaining_quantity": remaining,
            "unit_price": product.price,
            "total_sales_value": float(sales_value),
            "total_sales_with_tax": float(calculate_totals(sales_value).total),
        })
    return snapshot


def calculate_settlement(
    snapshot: list[dict],
    platform_rate: Optional[float] = None,
    store_rate: Optional[float] = None,
) -> dict:
    """
    Split the rental's pre-tax sales between platform, store and brand.

    The store is paid its commission. The brand gets the sales minus both
    commissions, plus the value of the unsold stock that goes back to it.
    """
    if platform_rate is None:
        platform_rate = settings.DEFAULT_PLATFORM_COMMISSION_RATE
    if store_rate is None:
        store_rate = settings.DEFAULT_STORE_COMMISSION_RATE

    total_sales = sum(
        (Decimal(str(item["unit_price"])) * item["sold_quantity"] for item in snapshot),
        Decimal("0"),
    )
    return_value = sum(
        (Decimal(str(item["unit_price"])) * item["remaining_quantity"] for item in snapshot),
        Decimal("0"),
    )
    platform_commission = total_sales * Decimal(str(platform_rate)) / 100
    store_commission = total_sales * Decimal(str(store_rate)) / 100
    brand_sales_revenue = total_sales - platform_commission - store_commission

    return {
        "total_sales": float(to_money(total_sales)),
        "total_sold_units": sum(item["sold_quantity"] for item in snapshot),
        "total_returned_units": sum(item["remaining_quantity"] for item in snapshot),
        "platform_commission_rate": platform_rate,
        "platform_commission_amount": float(to_money(platform_commission)),
        "store_commission_rate": store_rate,
        "store_commission_amount": float(to_money(store_commission)),
        "store_payout_amount": float(to_money(store_commission)),
        "brand_sales_revenue": float(to_money(brand_sales_revenue)),
        "return_inventory_value": float(to_money(return_value)),
        "brand_total_amount": float(to_money(brand_sales_revenue + return_value)),
    }


def document_number(clearance_id: int) -> str:
    return f"CLR-{clearance_id:08d}"


async def get_clearance(db: AsyncSession, clearance_id: int) -> tuple[RentalClearance, RentalRequest]:
    clearance = await db.get(RentalClearance, clearance_id)
    if clearance is None:
        raise NotFoundError("Clearance not found")
    result = await db.execute(
        select(RentalRequest)
        .options(selectinload(RentalRequest.products))
        .where(RentalRequest.id == clearance.rental_request_id)
    )
    return clearance, result.scalar_one()


async def _advance(
    db: AsyncSession,
    clearance: RentalClearance,
    target: ClearanceStatus,
) -> None:
    CLEARANCE_WORKFLOW.check(clearance.status, target)
    clearance.status = target


async def _tell(
    db: AsyncSession,
    rental: RentalRequest,
    user_id: int,
    message: str,
) -> None:
    await notify(
        db,
        user_id=user_id,
        type=NotificationType.CLEARANCE_UPDATE,
        title="Clearance update",
        message=message,
        rental_request_id=rental.id,
    )


async def initiate_clearance(
    db: AsyncSession,
    rental: RentalRequest,
    user: Optional[User] = None,
) -> RentalClearance:
    """
    Open the clearance for a completed rental with an inventory snapshot.

    `user` is None when the rental ended on its own.
    """
    existing = await db.scalar(
        select(RentalClearance).where(RentalClearance.rental_request_id == rental.id)
    )
    if existing is not None:
        return existing

    products = {}
    for rental_product in rental.products:
        product = await db.get(Product, rental_product.product_id)
        if product is not None:
            products[product.id] = product

    clearance = RentalClearance(
        rental_request_id=rental.id,
        status=ClearanceStatus.NOT_STARTED,
        initiated_by=user.id if user is not None else None,
    )
    await _advance(db, clearance, ClearanceStatus.PENDING_INVENTORY_CHECK)
    clearance.inventory_snapshot = build_snapshot(rental, products)
    clearance.initiated_at = datetime.utcnow()
    db.add(clearance)
    await db.flush()

    await _tell(db, rental, rental.store_owner_id, "Please confirm the remaining inventory on the shelf")
    logger.info("clearance_initiated", clearance_id=clearance.id, rental_id=rental.id)
    return clearance


async def confirm_inventory(db: AsyncSession, clearance_id: int, user: User) -> RentalClearance:
    clearance, rental = await get_clearance(db, clearance_id)
    _check_actor(rental, user, STORE, ADMIN)
    await _advance(db, clearance, ClearanceStatus.PENDING_RETURN_SHIPMENT)
    clearance.inventory_confirmed_at = datetime.utcnow()
    await _tell(db, rental, rental.brand_owner_id, "Inventory confirmed. Remaining products will be shipped back")
    await db.flush()
    logger.info("clearance_inventory_confirmed", clearance_id=clearance.id)
    return clearance


async def submit_return_shipment(
    db: AsyncSession,
    clearance_id: int,
    user: User,
    carrier: str,
    tracking_number: str,
    expected_delivery: Optional[date] = None,
    notes: Optional[str] = None,
) -> RentalClearance:
    clearance, rental = await get_clearance(db, clearance_id)
    _check_actor(rental, user, STORE)
    await _advance(db, clearance, ClearanceStatus.RETURN_SHIPPED)
    clearance.return_carrier = carrier
    clearance.return_tracking_number = tracking_number
    clearance.return_expected_delivery = expected_delivery
    clearance.return_notes = notes
    clearance.return_shipped_at = datetime.utcnow()
    await _tell(
        db, rental, rental.brand_owner_id,
        f"Your products were shipped back with {carrier}, tracking number {tracking_number}",
    )
    await db.flush()
    logger.info("clearance_return_shipped", clearance_id=clearance.id, carrier=carrier)
    return clearance


async def confirm_return_receipt(
    db: AsyncSession,
    clearance_id: int,
    user: User,
    condition: str,
    notes: Optional[str] = None,
) -> RentalClearance:
    clearance, rental = await get_clearance(db, clearance_id)
    _check_actor(rental, user, BRAND)
    await _advance(db, clearance, ClearanceStatus.RETURN_RECEIVED)
    clearance.return_condition = condition
    clearance.receipt_notes = notes
    clearance.return_received_at = datetime.utcnow()
    await _tell(db, rental, rental.store_owner_id, "The brand confirmed receipt of the returned products")
    await db.flush()
    logger.info("clearance_return_received", clearance_id=clearance.id, condition=condition)
    return clearance


async def submit_for_settlement(db: AsyncSession, clearance_id: int, user: User) -> RentalClearance:
    clearance, rental = await get_clearance(db, clearance_id)
    _check_actor(rental, user, STORE, ADMIN)
    await _advance(db, clearance, ClearanceStatus.PENDING_SETTLEMENT)
    clearance.settlement_requested_at = datetime.utcnow()
    await db.flush()
    logger.info("clearance_settlement_requested", clearance_id=clearance.id)
    return clearance


async def approve_settlement(db: AsyncSession, clearance_id: int, user: User) -> RentalClearance:
    clearance, rental = await get_clearance(db, clearance_id)
    _check_actor(rental, user, ADMIN)
    await _advance(db, clearance, ClearanceStatus.SETTLEMENT_APPROVED)
    clearance.settlement = calculate_settlement(
        clearance.inventory_snapshot or [],
        rental.platform_commission_rate,
        rental.store_commission_rate,
    )
    clearance.settlement_approved_at = datetime.utcnow()
    for party in (rental.store_owner_id, rental.brand_owner_id):
        await _tell(db, rental, party, "The settlement for your rental has been approved")
    await db.flush()
    logger.info(
        "clearance_settlement_approved",
        clearance_id=clearance.id,
        total_sales=clearance.settlement["total_sales"],
    )
    return clearance


async def create_settlement_payment(
    db: AsyncSession,
    clearance_id: int,
    user: User,
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
) -> tuple[RentalClearance, Optional[Payment]]:
    """Record the store's commission payout; nothing is paid out on zero sales."""
    clearance, rental = await get_clearance(db, clearance_id)
    _check_actor(rental, user, ADMIN)
    await _advance(db, clearance, ClearanceStatus.PAYMENT_COMPLETED)

    settlement = clearance.settlement or {}
    payout = settlement.get("store_payout_amount", 0)
    payment = None
    if payout > 0:
        payment = Payment(
            type=PaymentType.STORE_SETTLEMENT,
            rental_request_id=rental.id,
            clearance_id=clearance.id,
            to_user_id=rental.store_owner_id,
            amount=payout,
            status=PaymentStatus.PENDING,
            transfer_status=TransferStatus.PENDING,
            payment_method=payment_method,
            breakdown={
                key: settlement.get(key)
                for key in (
                    "total_sales",
                    "platform_commission_rate",
                    "platform_commission_amount",
                    "store_commission_rate",
                    "store_commission_amount",
                )
            },
            description=f"Store commission payout for rental period ending {rental.end_date.isoformat()}",
        )
        db.add(payment)
        await _tell(db, rental, rental.store_owner_id, f"A settlement payout of {payout:.2f} {settings.CURRENCY} was issued")

    clearance.payment_completed_at = datetime.utcnow()
    await db.flush()
    logger.info("clearance_payment_created", clearance_id=clearance.id, payout=payout)
    return clearance, payment


async def close_clearance(db: AsyncSession, clearance_id: int, user: User) -> RentalClearance:
    clearance, rental = await get_clearance(db, clearance_id)
    _check_actor(rental, user, ADMIN)
    await _advance(db, clearance, ClearanceStatus.CLOSED)

    now = datetime.utcnow()
    clearance.closed_at = now
    clearance.document = {
        "document_number": document_number(clearance.id),
        "generated_at": now.isoformat(),
        "rental_id": rental.id,
        "rental_period": {
            "start": rental.start_date.isoformat(),
            "end": rental.end_date.isoformat(),
        },
        "brand_owner_id": rental.brand_owner_id,
        "store_owner_id": rental.store_owner_id,
        "products": clearance.inventory_snapshot or [],
        "settlement": clearance.settlement,
        "return_shipment": {
            "carrier": clearance.return_carrier,
            "tracking_number": clearance.return_tracking_number,
            "expected_delivery": (
                clearance.return_expected_delivery.isoformat()
                if clearance.return_expected_delivery else None
            ),
            "condition": clearance.return_condition,
        },
        "clearance_initiated": clearance.initiated_at.isoformat() if clearance.initiated_at else None,
        "clearance_completed": now.isoformat(),
    }
    for party in (rental.store_owner_id, rental.brand_owner_id):
        await _tell(db, rental, party, f"Clearance {document_number(clearance.id)} is closed")
    await db.flush()
    logger.info("clearance_closed", clearance_id=clearance.id)
    return clearance


async def list_clearances(
    db: AsyncSession,
    user: User,
    status: Optional[ClearanceStatus] = None,
) -> list[RentalClearance]:
    query = select(RentalClearance).join(
        RentalRequest, RentalClearance.rental_request_id == RentalRequest.id
    )
    if user.account_type == AccountType.BRAND_OWNER:
        query = query.where(RentalRequest.brand_owner_id == user.id)
    elif user.account_type == AccountType.STORE_OWNER:
        query = query.where(RentalRequest.store_owner_id == user.id)
    if status:
        query = query.where(RentalClearance.status == status)
    result = await db.execute(query.order_by(RentalClearance.id.desc()))
    return list(result.scalars().all())
