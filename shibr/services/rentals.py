"""
Rental request workflow.

pending -> accepted -> payment_pending -> active -> completed, with
`rejected` (from pending) and `cancelled` (before activation) as side exits.
Each function here is one action; it checks the transition, records the
effect on shelves and stock, and tells the other party through a
notification and a system message in the rental's conversation.

A shelf is held by at most one request in accepted, payment_pending or
active. A renewal is a new request for the same shelf that takes over the
active rental's shelf stock when it is paid.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shibr.core.config import settings
from shibr.core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from shibr.models.chat import Conversation, MessageType, Notification, NotificationType
from shibr.models.order import Payment, PaymentMethod, PaymentStatus, PaymentType
from shibr.models.product import Product
from shibr.models.rental import (
    OPEN_RENTAL_STATUSES, RentalClearance, RentalProduct, RentalRequest, RentalStatus,
)
from shibr.models.shelf import Shelf, ShelfStatus
from shibr.models.user import AccountType, User
from shibr.services import chat
from shibr.services.clearance import initiate_clearance
from shibr.services.notifications import notify
from shibr.services.workflow import LinearWorkflow

logger = structlog.get_logger()

RENTAL_WORKFLOW = LinearWorkflow(
    "rental request",
    [
        RentalStatus.PENDING,
        RentalStatus.ACCEPTED,
        RentalStatus.PAYMENT_PENDING,
        RentalStatus.ACTIVE,
        RentalStatus.COMPLETED,
    ],
    exits={
        RentalStatus.REJECTED: (RentalStatus.PENDING,),
        RentalStatus.CANCELLED: OPEN_RENTAL_STATUSES,
    },
)

SHELF_HOLDING_STATUSES = (
    RentalStatus.ACCEPTED,
    RentalStatus.PAYMENT_PENDING,
    RentalStatus.ACTIVE,
)
REMINDER_WINDOW_DAYS = 7


@dataclass
class ProductSelection:
    product_id: int
    quantity: int


def count_months(start: date, end: date) -> int:
    """Calendar months touched by the period, at least one."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day >= start.day:
        months += 1
    return max(1, months)


def add_months(day: date, months: int) -> date:
    """Same day `months` later, clamped to the end of a shorter month."""
    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("s" if count > 1 else "")


async def get_rental(db: AsyncSession, rental_id: int) -> RentalRequest:
    result = await db.execute(
        select(RentalRequest)
        .options(selectinload(RentalRequest.products))
        .where(RentalRequest.id == rental_id)
    )
    rental = result.scalar_one_or_none()
    if rental is None:
        raise NotFoundError("Rental request not found")
    return rental


def check_party(rental: RentalRequest, user: User, *roles: str) -> None:
    """Allow admins and the named parties ("brand", "store") of the rental."""
    if user.account_type == AccountType.ADMIN:
        return
    if "brand" in roles and user.id == rental.brand_owner_id:
        return
    if "store" in roles and user.id == rental.store_owner_id:
        return
    raise PermissionDeniedError("You are not allowed to act on this rental request")


async def _validate_products(
    db: AsyncSession,
    brand_owner_id: int,
    selections: list[ProductSelection],
) -> None:
    for selection in selections:
        if selection.quantity <= 0:
            raise BusinessRuleError("Product quantities must be positive")
        product = await db.get(Product, selection.product_id)
        if product is None or product.owner_id != brand_owner_id or not product.is_active:
            raise BusinessRuleError(f"Product {selection.product_id} is not available")
        if selection.quantity > product.quantity:
            raise BusinessRuleError(f"Not enough stock for {product.name}")


def _replace_selection(rental: RentalRequest, selections: list[ProductSelection]) -> None:
    rental.products.clear()
    for selection in selections:
        rental.products.append(RentalProduct(
            product_id=selection.product_id,
            original_quantity=selection.quantity,
            quantity=selection.quantity,
        ))


async def _conversation(db: AsyncSession, rental: RentalRequest) -> Optional[Conversation]:
    if rental.conversation_id is None:
        return None
    return await db.get(Conversation, rental.conversation_id)


async def _say(
    db: AsyncSession,
    rental: RentalRequest,
    sender_id: int,
    text: str,
    message_type: MessageType = MessageType.SYSTEM,
) -> None:
    conversation = await _conversation(db, rental)
    if conversation is not None:
        await chat.post_system_message(db, conversation, sender_id, text, message_type)


async def _holding_request(
    db: AsyncSession,
    shelf_id: int,
    *exclude_ids: Optional[int],
) -> Optional[RentalRequest]:
    """Another request that currently holds the shelf, if any."""
    query = select(RentalRequest).where(
        RentalRequest.shelf_id == shelf_id,
        RentalRequest.status.in_(SHELF_HOLDING_STATUSES),
    )
    excluded = [rental_id for rental_id in exclude_ids if rental_id is not None]
    if excluded:
        query = query.where(RentalRequest.id.not_in(excluded))
    result = await db.execute(query.limit(1))
    return result.scalars().first()


async def _close_conversation(db: AsyncSession, rental: RentalRequest) -> None:
    # Renewals share the live rental's conversation.
    if rental.renewal_of_id is None:
        await chat.archive(db, rental.conversation_id)


async def create_request(
    db: AsyncSession,
    brand: User,
    shelf_id: int,
    start_date: date,
    end_date: date,
    products: list[ProductSelection],
    product_type: Optional[str] = None,
    product_description: Optional[str] = None,
    additional_notes: Optional[str] = None,
) -> tuple[RentalRequest, bool]:
    """
    Create a rental request, or update the brand's open one for the shelf.

    Returns the request and whether an existing request was updated.
    """
    shelf = await db.get(Shelf, shelf_id)
    if shelf is None:
        raise NotFoundError("Shelf not found")
    if shelf.owner_id == brand.id:
        raise BusinessRuleError("You cannot rent your own shelf")
    if start_date >= end_date:
        raise BusinessRuleError("End date must be after start date")
    await _validate_products(db, brand.id, products)

    result = await db.execute(
        select(RentalRequest)
        .options(selectinload(RentalRequest.products))
        .where(
            RentalRequest.brand_owner_id == brand.id,
            RentalRequest.shelf_id == shelf_id,
            RentalRequest.status.in_(OPEN_RENTAL_STATUSES),
            RentalRequest.renewal_of_id.is_(None),
        )
    )
    existing = result.scalars().first()
    if await _holding_request(db, shelf_id, existing.id if existing else None):
        raise BusinessRuleError("This shelf is already reserved by another rental")
    product_count = sum(selection.quantity for selection in products)

    if existing is not None:
        existing.start_date = start_date
        existing.end_date = end_date
        existing.product_type = product_type
        existing.product_description = product_description
        existing.product_count = product_count
        existing.additional_notes = additional_notes
        _replace_selection(existing, products)
        await db.flush()
        await _say(db, existing, brand.id, "Rental request details have been updated")
        logger.info("rental_request_updated", rental_id=existing.id, brand_id=brand.id)
        return existing, True

    if shelf.status != ShelfStatus.APPROVED or not shelf.is_available:
        raise BusinessRuleError("Shelf is not available for rent")

    months = count_months(start_date, end_date)
    conversation = await chat.open_conversation(db, brand.id, shelf.owner_id, shelf.id)
    rental = RentalRequest(
        shelf_id=shelf.id,
        brand_owner_id=brand.id,
        store_owner_id=shelf.owner_id,
        conversation_id=conversation.id,
        start_date=start_date,
        end_date=end_date,
        product_type=product_type,
        product_description=product_description,
        product_count=product_count,
        additional_notes=additional_notes,
        monthly_price=shelf.monthly_price,
        total_price=shelf.monthly_price * months,
        platform_commission_rate=settings.DEFAULT_PLATFORM_COMMISSION_RATE,
        store_commission_rate=settings.DEFAULT_STORE_COMMISSION_RATE,
        status=RentalStatus.PENDING,
        expires_at=datetime.utcnow() + timedelta(hours=settings.RENTAL_REQUEST_EXPIRY_HOURS),
    )
    _replace_selection(rental, products)
    db.add(rental)
    await db.flush()

    await notify(
        db,
        user_id=shelf.owner_id,
        type=NotificationType.RENTAL_REQUEST,
        title="New rental request",
        message=f"{brand.display_name} wants to rent your shelf {shelf.shelf_name}",
        rental_request_id=rental.id,
        conversation_id=conversation.id,
        action_url="/store-dashboard/orders",
    )
    await chat.post_system_message(
        db, conversation, brand.id,
        "New rental request sent for the shelf",
        MessageType.RENTAL_REQUEST,
    )
    logger.info(
        "rental_request_created",
        rental_id=rental.id,
        shelf_id=shelf.id,
        brand_id=brand.id,
        months=months,
        total_price=rental.total_price,
    )
    return rental, False


async def renew_rental(
    db: AsyncSession,
    rental: RentalRequest,
    user: User,
    additional_months: int,
) -> RentalRequest:
    """Ask the store owner to extend an active rental; creates a pending renewal request."""
    if user.id != rental.brand_owner_id:
        raise PermissionDeniedError("Only the renting brand can renew this rental")
    if rental.status != RentalStatus.ACTIVE:
        raise BusinessRuleError("Only active rentals can be renewed")
    open_renewal = await db.scalar(
        select(func.count(RentalRequest.id)).where(
            RentalRequest.renewal_of_id == rental.id,
            RentalRequest.status.in_(OPEN_RENTAL_STATUSES),
        )
    )
    if open_renewal:
        raise BusinessRuleError("A renewal request is already open for this rental")

    renewal = RentalRequest(
        shelf_id=rental.shelf_id,
        brand_owner_id=rental.brand_owner_id,
        store_owner_id=rental.store_owner_id,
        conversation_id=rental.conversation_id,
        renewal_of_id=rental.id,
        start_date=rental.end_date,
        end_date=add_months(rental.end_date, additional_months),
        product_type=rental.product_type,
        product_description=rental.product_description,
        product_count=rental.product_count,
        additional_notes=f"Renewal of rental #{rental.id}",
        monthly_price=rental.monthly_price,
        total_price=rental.monthly_price * additional_months,
        platform_commission_rate=rental.platform_commission_rate,
        store_commission_rate=rental.store_commission_rate,
        status=RentalStatus.PENDING,
        expires_at=datetime.utcnow() + timedelta(hours=settings.RENTAL_REQUEST_EXPIRY_HOURS),
    )
    db.add(renewal)
    await db.flush()

    months = _plural(additional_months, "month")
    await notify(
        db,
        user_id=rental.store_owner_id,
        type=NotificationType.RENTAL_REQUEST,
        title="Renewal request",
        message=f"The brand owner wants to renew their rental for {months} more.",
        rental_request_id=renewal.id,
        conversation_id=rental.conversation_id,
        action_url=f"/store-dashboard/orders/{renewal.id}",
    )
    await _say(
        db, renewal, rental.brand_owner_id,
        f"I would like to renew the rental for {months} more.",
        MessageType.RENTAL_REQUEST,
    )
    logger.info("rental_renewal_requested", rental_id=rental.id, renewal_id=renewal.id, months=additional_months)
    return renewal


async def accept_request(
    db: AsyncSession,
    rental: RentalRequest,
    user: User,
    response: Optional[str] = None,
) -> RentalRequest:
    """Accept a request; every other pending request for the shelf is rejected."""
    check_party(rental, user, "store")
    RENTAL_WORKFLOW.check(rental.status, RentalStatus.ACCEPTED)
    if await _holding_request(db, rental.shelf_id, rental.id, rental.renewal_of_id):
        raise BusinessRuleError("This shelf is already reserved by another rental")

    now = datetime.utcnow()
    rental.status = RentalStatus.ACCEPTED
    rental.store_owner_response = response or "Request accepted"
    rental.responded_at = now

    result = await db.execute(
        select(RentalRequest).where(
            RentalRequest.shelf_id == rental.shelf_id,
            RentalRequest.status == RentalStatus.PENDING,
            RentalRequest.id != rental.id,
        )
    )
    for other in result.scalars().all():
        other.status = RentalStatus.REJECTED
        other.store_owner_response = "Another rental request was accepted for this shelf"
        other.responded_at = now
        await notify(
            db,
            user_id=other.brand_owner_id,
            type=NotificationType.RENTAL_REJECTED,
            title="Request auto-rejected",
            message="Another request was accepted for the same shelf",
            rental_request_id=other.id,
        )
        await _say(
            db, other, rental.store_owner_id,
            "Sorry, another rental request has been accepted for this shelf.",
            MessageType.RENTAL_REJECTED,
        )
        await _close_conversation(db, other)
        logger.info("rental_request_auto_rejected", rental_id=other.id, accepted_id=rental.id)

    await notify(
        db,
        user_id=rental.brand_owner_id,
        type=NotificationType.RENTAL_ACCEPTED,
        title="Your request was accepted",
        message="Your shelf rental request has been accepted. Please complete payment",
        rental_request_id=rental.id,
        action_url="/brand-dashboard/shelves",
    )
    await _say(
        db, rental, rental.store_owner_id,
        response or "Rental request accepted! Please complete payment to activate the rental.",
        MessageType.RENTAL_ACCEPTED,
    )
    await db.flush()
    logger.info("rental_request_accepted", rental_id=rental.id, store_owner_id=user.id)
    return rental


async def reject_request(
    db: AsyncSession,
    rental: RentalRequest,
    user: User,
    response: Optional[str] = None,
) -> RentalRequest:
    check_party(rental, user, "store")
    RENTAL_WORKFLOW.check(rental.status, RentalStatus.REJECTED)

    rental.status = RentalStatus.REJECTED
    rental.store_owner_response = response or "Request rejected"
    rental.responded_at = datetime.utcnow()

    await notify(
        db,
        user_id=rental.brand_owner_id,
        type=NotificationType.RENTAL_REJECTED,
        title="Your request was rejected",
        message=rental.store_owner_response,
        rental_request_id=rental.id,
    )
    await _say(
        db, rental, rental.store_owner_id,
        response or "Rental request rejected.",
        MessageType.RENTAL_REJECTED,
    )
    await _close_conversation(db, rental)
    await db.flush()
    logger.info("rental_request_rejected", rental_id=rental.id, store_owner_id=user.id)
    return rental


async def cancel_request(db: AsyncSession, rental: RentalRequest, user: User) -> RentalRequest:
    check_party(rental, user, "brand")
    RENTAL_WORKFLOW.check(rental.status, RentalStatus.CANCELLED)

    rental.status = RentalStatus.CANCELLED
    await _say(db, rental, rental.brand_owner_id, "Rental request cancelled by the brand.")
    await _close_conversation(db, rental)
    await db.flush()
    logger.info("rental_request_cancelled", rental_id=rental.id, brand_id=user.id)
    return rental


async def request_payment(db: AsyncSession, rental: RentalRequest, user: User) -> RentalRequest:
    """The brand starts paying for an accepted request."""
    check_party(rental, user, "brand")
    RENTAL_WORKFLOW.check(rental.status, RentalStatus.PAYMENT_PENDING)

    rental.status = RentalStatus.PAYMENT_PENDING
    await db.flush()
    logger.info("rental_payment_requested", rental_id=rental.id)
    return rental


async def confirm_payment(
    db: AsyncSession,
    rental: RentalRequest,
    user: User,
    payment_method: PaymentMethod = PaymentMethod.CARD,
    reference: Optional[str] = None,
) -> RentalRequest:
    """
    Record the rental payment, rent out the shelf and stock it.

    A paid renewal completes the rental it renews and takes over its shelf
    stock instead of drawing from the brand's warehouse.
    """
    check_party(rental, user, "brand")
    RENTAL_WORKFLOW.check(rental.status, RentalStatus.ACTIVE)

    shelf = await db.get(Shelf, rental.shelf_id)
    if shelf is None:
        raise NotFoundError("Shelf not found")

    now = datetime.utcnow()
    if rental.renewal_of_id is not None:
        previous = await get_rental(db, rental.renewal_of_id)
        if previous.status != RentalStatus.ACTIVE:
            raise BusinessRuleError("The rental being renewed has already ended")
        for rental_product in list(previous.products):
            rental.products.append(rental_product)
        previous.status = RentalStatus.COMPLETED
        previous.completed_at = now
    else:
        if shelf.status == ShelfStatus.RENTED:
            raise BusinessRuleError("Shelf is already rented")
        for rental_product in rental.products:
            product = await db.get(Product, rental_product.product_id)
            if product is None or product.quantity < rental_product.original_quantity:
                name = product.name if product is not None else rental_product.product_id
                raise BusinessRuleError(f"Not enough stock for {name}")
            product.quantity -= rental_product.original_quantity
            rental_product.quantity = rental_product.original_quantity

    db.add(Payment(
        type=PaymentType.RENTAL_PAYMENT,
        rental_request_id=rental.id,
        from_user_id=rental.brand_owner_id,
        to_user_id=rental.store_owner_id,
        amount=rental.total_price,
        status=PaymentStatus.COMPLETED,
        payment_method=payment_method,
        reference=reference,
        description=f"Shelf rental payment for request {rental.id}",
    ))

    rental.status = RentalStatus.ACTIVE
    rental.activated_at = now
    shelf.status = ShelfStatus.RENTED
    shelf.is_available = False
    shelf.renter_id = rental.brand_owner_id
    shelf.rental_start_date = rental.start_date
    shelf.rental_end_date = rental.end_date

    await notify(
        db,
        user_id=rental.store_owner_id,
        type=NotificationType.RENTAL_ACTIVATED,
        title="Rental activated",
        message=f"Payment received for shelf {shelf.shelf_name}",
        rental_request_id=rental.id,
    )
    await _say(db, rental, rental.brand_owner_id, "Payment completed. The rental is now active.")
    await db.flush()
    logger.info(
        "rental_activated",
        rental_id=rental.id,
        shelf_id=shelf.id,
        amount=rental.total_price,
        renewal_of=rental.renewal_of_id,
    )
    return rental


async def _finish(db: AsyncSession, rental: RentalRequest, user: Optional[User]) -> RentalClearance:
    """Complete an active rental, free its shelf and open the clearance."""
    RENTAL_WORKFLOW.check(rental.status, RentalStatus.COMPLETED)
    rental.status = RentalStatus.COMPLETED
    rental.completed_at = datetime.utcnow()

    shelf = await db.get(Shelf, rental.shelf_id)
    if shelf is not None:
        shelf.status = ShelfStatus.APPROVED
        shelf.is_available = True
        shelf.renter_id = None
        shelf.rental_start_date = None
        shelf.rental_end_date = None

    await notify(
        db,
        user_id=rental.brand_owner_id,
        type=NotificationType.RENTAL_COMPLETED,
        title="Rental completed",
        message="Your rental period has ended. The clearance process has started",
        rental_request_id=rental.id,
        action_url="/brand-dashboard/clearances",
    )
    if user is None:
        await notify(
            db,
            user_id=rental.store_owner_id,
            type=NotificationType.RENTAL_COMPLETED,
            title="Rental completed",
            message="The rental period has ended. The shelf is now available",
            rental_request_id=rental.id,
            action_url="/store-dashboard/clearances",
        )
        await _say(
            db, rental, rental.store_owner_id,
            "The rental period has been completed successfully. Thank you for using our platform!",
        )
    await db.flush()
    return await initiate_clearance(db, rental, user)


async def complete_rental(db: AsyncSession, rental: RentalRequest, user: User):
    """End an active rental, free the shelf and open its clearance."""
    check_party(rental, user, "store")
    clearance = await _finish(db, rental, user)
    logger.info("rental_completed", rental_id=rental.id, clearance_id=clearance.id)
    return rental, clearance


async def complete_ended(db: AsyncSession, today: Optional[date] = None) -> int:
    """Complete active rentals whose period is over."""
    today = today or datetime.utcnow().date()
    result = await db.execute(
        select(RentalRequest)
        .options(selectinload(RentalRequest.products))
        .where(
            RentalRequest.status == RentalStatus.ACTIVE,
            RentalRequest.end_date <= today,
        )
    )
    ended = list(result.scalars().all())
    for rental in ended:
        clearance = await _finish(db, rental, None)
        logger.info("rental_completed_automatically", rental_id=rental.id, clearance_id=clearance.id)
    return len(ended)


async def send_ending_reminders(db: AsyncSession, today: Optional[date] = None) -> int:
    """
    Remind both parties of active rentals ending within the reminder window.

    At most one reminder per rental per day. Returns the number of rentals
    reminded.
    """
    today = today or datetime.utcnow().date()
    result = await db.execute(
        select(RentalRequest).where(
            RentalRequest.status == RentalStatus.ACTIVE,
            RentalRequest.end_date > today,
            RentalRequest.end_date <= today + timedelta(days=REMINDER_WINDOW_DAYS),
        )
    )
    day_start = datetime.combine(today, time.min)
    reminded = 0
    for rental in result.scalars().all():
        already_sent = await db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == rental.brand_owner_id,
                Notification.rental_request_id == rental.id,
                Notification.type == NotificationType.RENTAL_ENDING_SOON,
                Notification.created_at >= day_start,
            )
        )
        if already_sent:
            continue

        days = _plural((rental.end_date - today).days, "day")
        await notify(
            db,
            user_id=rental.brand_owner_id,
            type=NotificationType.RENTAL_ENDING_SOON,
            title="Rental ending soon",
            message=f"Your rental will end in {days}. Consider renewing if you'd like to continue.",
            rental_request_id=rental.id,
            conversation_id=rental.conversation_id,
            action_url="/brand-dashboard/shelves",
        )
        await notify(
            db,
            user_id=rental.store_owner_id,
            type=NotificationType.RENTAL_ENDING_SOON,
            title="Rental ending soon",
            message=f"A rental on your shelf will end in {days}.",
            rental_request_id=rental.id,
            conversation_id=rental.conversation_id,
            action_url="/store-dashboard/orders",
        )
        reminded += 1

    if reminded:
        logger.info("rental_reminders_sent", count=reminded)
    return reminded


async def expire_stale(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Reject pending requests whose response window has passed."""
    now = now or datetime.utcnow()
    result = await db.execute(
        select(RentalRequest).where(
            RentalRequest.status == RentalStatus.PENDING,
            RentalRequest.expires_at < now,
        )
    )
    expired = list(result.scalars().all())
    for rental in expired:
        rental.status = RentalStatus.REJECTED
        rental.store_owner_response = "Request expired without a response"
        rental.responded_at = now
        await notify(
            db,
            user_id=rental.brand_owner_id,
            type=NotificationType.RENTAL_EXPIRED,
            title="Request expired",
            message="The store owner did not respond within 48 hours",
            rental_request_id=rental.id,
        )
        await _close_conversation(db, rental)
    await db.flush()
    if expired:
        logger.info("rental_requests_expired", count=len(expired))
    return len(expired)


async def list_for_user(
    db: AsyncSession,
    user: User,
    status: Optional[RentalStatus] = None,
) -> list[RentalRequest]:
    query = select(RentalRequest).options(selectinload(RentalRequest.products))
    if user.account_type == AccountType.BRAND_OWNER:
        query = query.where(RentalRequest.brand_owner_id == user.id)
    elif user.account_type == AccountType.STORE_OWNER:
        query = query.where(RentalRequest.store_owner_id == user.id)
    if status:
        query = query.where(RentalRequest.status == status)
    result = await db.execute(query.order_by(RentalRequest.created_at.desc(), RentalRequest.id.desc()))
    return list(result.scalars().all())
