"""Rental request endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.database import get_db
from shibr.core.security import get_current_user, require_admin, require_brand_owner
from shibr.models.rental import RentalStatus
from shibr.models.user import User
from shibr.schemas.rental import (
    ClearanceResponse, CompleteEndedResult, ExpireResult, ReminderResult, RentalCompleteResult,
    RentalPaymentIn, RentalRenewIn, RentalRequestCreate, RentalRequestResponse, RentalRequestResult,
    RentalResponseIn,
)
from shibr.services import rentals
from shibr.services.rentals import ProductSelection

router = APIRouter()


@router.post("/", response_model=RentalRequestResult, status_code=status.HTTP_201_CREATED)
async def create_rental_request(
    body: RentalRequestCreate,
    user: User = Depends(require_brand_owner),
    db: AsyncSession = Depends(get_db),
):
    """Request a shelf, or update the open request for it."""
    rental, is_update = await rentals.create_request(
        db,
        user,
        shelf_id=body.shelf_id,
        start_date=body.start_date,
        end_date=body.end_date,
        products=[ProductSelection(p.product_id, p.quantity) for p in body.products],
        product_type=body.product_type,
        product_description=body.product_description,
        additional_notes=body.additional_notes,
    )
    return RentalRequestResult(
        request=RentalRequestResponse.model_validate(rental),
        is_update=is_update,
    )


@router.get("/", response_model=list[RentalRequestResponse])
async def list_rental_requests(
    status: Optional[RentalStatus] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Requests the current user is a party to (all of them for admins)."""
    return await rentals.list_for_user(db, user, status)


@router.post("/expire", response_model=ExpireResult)
async def expire_rental_requests(
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Reject pending requests older than the response window."""
    return ExpireResult(expired=await rentals.expire_stale(db))


@router.post("/complete-ended", response_model=CompleteEndedResult)
async def complete_ended_rentals(
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Complete active rentals past their end date and open their clearances."""
    return CompleteEndedResult(completed=await rentals.complete_ended(db))


@router.post("/send-reminders", response_model=ReminderResult)
async def send_rental_reminders(
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ReminderResult(reminded=await rentals.send_ending_reminders(db))


@router.get("/{rental_id}", response_model=RentalRequestResponse)
async def get_rental_request(
    rental_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get rental request by ID."""
    rental = await rentals.get_rental(db, rental_id)
    rentals.check_party(rental, user, "brand", "store")
    return rental


@router.post("/{rental_id}/accept", response_model=RentalRequestResponse)
async def accept_rental_request(
    rental_id: int,
    body: RentalResponseIn = RentalResponseIn(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rental = await rentals.get_rental(db, rental_id)
    return await rentals.accept_request(db, rental, user, body.response)


@router.post("/{rental_id}/reject", response_model=RentalRequestResponse)
async def reject_rental_request(
    rental_id: int,
    body: RentalResponseIn = RentalResponseIn(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rental = await rentals.get_rental(db, rental_id)
    return await rentals.reject_request(db, rental, user, body.response)


@router.post("/{rental_id}/cancel", response_model=RentalRequestResponse)
async def cancel_rental_request(
    rental_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rental = await rentals.get_rental(db, rental_id)
    return await rentals.cancel_request(db, rental, user)


@router.post("/{rental_id}/request-payment", response_model=RentalRequestResponse)
async def request_rental_payment(
    rental_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rental = await rentals.get_rental(db, rental_id)
    return await rentals.request_payment(db, rental, user)


@router.post("/{rental_id}/confirm-payment", response_model=RentalRequestResponse)
async def confirm_rental_payment(
    rental_id: int,
    body: RentalPaymentIn = RentalPaymentIn(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Activate the rental once the brand has paid."""
    rental = await rentals.get_rental(db, rental_id)
    return await rentals.confirm_payment(db, rental, user, body.payment_method, body.reference)


@router.post("/{rental_id}/complete", response_model=RentalCompleteResult)
async def complete_rental(
    rental_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """End the rental and start its clearance."""
    rental = await rentals.get_rental(db, rental_id)
    rental, clearance = await rentals.complete_rental(db, rental, user)
    return RentalCompleteResult(
        request=RentalRequestResponse.model_validate(rental),
        clearance=ClearanceResponse.model_validate(clearance),
    )


@router.post("/{rental_id}/renew", response_model=RentalRequestResponse, status_code=status.HTTP_201_CREATED)
async def renew_rental(
    rental_id: int,
    body: RentalRenewIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Ask the store owner to extend an active rental."""
    rental = await rentals.get_rental(db, rental_id)
    renewal = await rentals.renew_rental(db, rental, user, body.additional_months)
    return await rentals.get_rental(db, renewal.id)
