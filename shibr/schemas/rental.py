"""Rental request, clearance and review schemas."""
from datetime import date, datetime
from typing import Any, Optional, List
from pydantic import BaseModel, Field, ConfigDict, model_validator

from shibr.models.order import PaymentMethod
from shibr.models.rental import ClearanceStatus, RentalStatus


class ProductSelectionIn(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class RentalRequestCreate(BaseModel):
    """Schema for requesting a shelf."""
    shelf_id: int
    start_date: date
    end_date: date
    products: List[ProductSelectionIn] = []
    product_type: Optional[str] = Field(None, max_length=100)
    product_description: Optional[str] = None
    additional_notes: Optional[str] = None

    @model_validator(mode="after")
    def period_valid(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class RentalResponseIn(BaseModel):
    """Store owner's answer to a request."""
    response: Optional[str] = Field(None, max_length=1000)


class RentalPaymentIn(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CARD
    reference: Optional[str] = Field(None, max_length=100)


class RentalProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    original_quantity: int
    quantity: int


class RentalRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    shelf_id: int
    brand_owner_id: int
    store_owner_id: int
    conversation_id: Optional[int] = None
    renewal_of_id: Optional[int] = None
    start_date: date
    end_date: date
    product_type: Optional[str] = None
    product_description: Optional[str] = None
    product_count: Optional[int] = None
    additional_notes: Optional[str] = None
    monthly_price: float
    total_price: float
    platform_commission_rate: Optional[float] = None
    store_commission_rate: Optional[float] = None
    status: RentalStatus
    store_owner_response: Optional[str] = None
    created_at: datetime
    responded_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    products: List[RentalProductResponse] = []


class RentalRequestResult(BaseModel):
    """Create result; `is_update` is set when an open request was updated."""
    request: RentalRequestResponse
    is_update: bool


class ExpireResult(BaseModel):
    expired: int


class CompleteEndedResult(BaseModel):
    completed: int


class ReminderResult(BaseModel):
    reminded: int


class RentalRenewIn(BaseModel):
    additional_months: int = Field(..., ge=1, le=12)


class ReturnShipmentIn(BaseModel):
    carrier: str = Field(..., min_length=1, max_length=100)
    tracking_number: str = Field(..., min_length=1, max_length=100)
    expected_delivery: Optional[date] = None
    notes: Optional[str] = None


class ReturnReceiptIn(BaseModel):
    condition: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None


class SettlementPaymentIn(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER


class ClearanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rental_request_id: int
    status: ClearanceStatus
    inventory_snapshot: Optional[List[dict[str, Any]]] = None
    settlement: Optional[dict[str, Any]] = None
    document: Optional[dict[str, Any]] = None
    return_carrier: Optional[str] = None
    return_tracking_number: Optional[str] = None
    return_expected_delivery: Optional[date] = None
    return_notes: Optional[str] = None
    return_condition: Optional[str] = None
    receipt_notes: Optional[str] = None
    initiated_at: Optional[datetime] = None
    inventory_confirmed_at: Optional[datetime] = None
    return_shipped_at: Optional[datetime] = None
    return_received_at: Optional[datetime] = None
    settlement_requested_at: Optional[datetime] = None
    settlement_approved_at: Optional[datetime] = None
    payment_completed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class RentalCompleteResult(BaseModel):
    request: RentalRequestResponse
    clearance: ClearanceResponse


class ReviewCreate(BaseModel):
    rental_request_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rental_request_id: int
    reviewer_id: int
    reviewed_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class UserReviews(BaseModel):
    user_id: int
    average_rating: float
    reviews: List[ReviewResponse]
