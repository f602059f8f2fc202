"""Rental clearance endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.database import get_db
from shibr.core.security import get_current_user
from shibr.models.rental import ClearanceStatus
from shibr.models.user import User
from shibr.schemas.rental import (
    ClearanceResponse, ReturnReceiptIn, ReturnShipmentIn, SettlementPaymentIn,
)
from shibr.services import clearance as clearances

router = APIRouter()


@router.get("/", response_model=list[ClearanceResponse])
async def list_clearances(
    status: Optional[ClearanceStatus] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Clearances for the current user's rentals (all of them for admins)."""
    return await clearances.list_clearances(db, user, status)


@router.get("/{clearance_id}", response_model=ClearanceResponse)
async def get_clearance(
    clearance_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    clearance, rental = await clearances.get_clearance(db, clearance_id)
    clearances.check_viewer(rental, user)
    return clearance


@router.post("/{clearance_id}/confirm-inventory", response_model=ClearanceResponse)
async def confirm_inventory(
    clearance_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await clearances.confirm_inventory(db, clearance_id, user)


@router.post("/{clearance_id}/return-shipment", response_model=ClearanceResponse)
async def submit_return_shipment(
    clearance_id: int,
    body: ReturnShipmentIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Store owner ships the unsold products back to the brand."""
    return await clearances.submit_return_shipment(
        db, clearance_id, user,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        expected_delivery=body.expected_delivery,
        notes=body.notes,
    )


@router.post("/{clearance_id}/confirm-receipt", response_model=ClearanceResponse)
async def confirm_return_receipt(
    clearance_id: int,
    body: ReturnReceiptIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Brand owner confirms the returned products arrived."""
    return await clearances.confirm_return_receipt(db, clearance_id, user, body.condition, body.notes)


@router.post("/{clearance_id}/submit-settlement", response_model=ClearanceResponse)
async def submit_for_settlement(
    clearance_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await clearances.submit_for_settlement(db, clearance_id, user)


@router.post("/{clearance_id}/approve-settlement", response_model=ClearanceResponse)
async def approve_settlement(
    clearance_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await clearances.approve_settlement(db, clearance_id, user)


@router.post("/{clearance_id}/settlement-payment", response_model=ClearanceResponse)
async def create_settlement_payment(
    clearance_id: int,
    body: SettlementPaymentIn = SettlementPaymentIn(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    clearance, _ = await clearances.create_settlement_payment(db, clearance_id, user, body.payment_method)
    return clearance


@router.post("/{clearance_id}/close", response_model=ClearanceResponse)
async def close_clearance(
    clearance_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Close the clearance and issue its document."""
    return await clearances.close_clearance(db, clearance_id, user)
