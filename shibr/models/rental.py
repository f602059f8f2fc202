"""Rental request, shelf stock, clearance and review models."""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Float, Date, JSON,
    DateTime, ForeignKey, Enum as SQLEnum, Index, CheckConstraint
)
from sqlalchemy.orm import relationship
import enum

from shibr.core.database import Base


class RentalStatus(str, enum.Enum):
    """Rental request status."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    PAYMENT_PENDING = "payment_pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


OPEN_RENTAL_STATUSES = (
    RentalStatus.PENDING,
    RentalStatus.ACCEPTED,
    RentalStatus.PAYMENT_PENDING,
)


class ClearanceStatus(str, enum.Enum):
    """Clearance status, in workflow order."""
    NOT_STARTED = "not_started"
    PENDING_INVENTORY_CHECK = "pending_inventory_check"
    PENDING_RETURN_SHIPMENT = "pending_return_shipment"
    RETURN_SHIPPED = "return_shipped"
    RETURN_RECEIVED = "return_received"
    PENDING_SETTLEMENT = "pending_settlement"
    SETTLEMENT_APPROVED = "settlement_approved"
    PAYMENT_COMPLETED = "payment_completed"
    CLOSED = "closed"


class RentalRequest(Base):
    """A brand owner's application to place products on a shelf."""

    __tablename__ = "rental_requests"

    id = Column(Integer, primary_key=True, index=True)
    shelf_id = Column(Integer, ForeignKey("shelves.id"), nullable=False, index=True)
    brand_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    store_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), index=True)
    renewal_of_id = Column(Integer, ForeignKey("rental_requests.id"), index=True)

    # Period
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    # Request details
    product_type = Column(String(100))
    product_description = Column(Text)
    product_count = Column(Integer, default=0)
    additional_notes = Column(Text)

    # Pricing
    monthly_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    platform_commission_rate = Column(Float)
    store_commission_rate = Column(Float)

    status = Column(SQLEnum(RentalStatus), default=RentalStatus.PENDING, index=True)
    store_owner_response = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    responded_at = Column(DateTime)
    expires_at = Column(DateTime, index=True)
    activated_at = Column(DateTime)
    completed_at = Column(DateTime)

    # Relationships
    products = relationship(
        "RentalProduct", back_populates="rental_request", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('idx_rental_shelf_status', 'shelf_id', 'status'),
        CheckConstraint('brand_owner_id != store_owner_id', name='rental_parties_different'),
        CheckConstraint('end_date > start_date', name='rental_period_valid'),
    )

    def __repr__(self):
        return f"<RentalRequest {self.id} {self.status}>"


class RentalProduct(Base):
    """A product placed on a rented shelf; `quantity` is live shelf stock."""

    __tablename__ = "rental_products"

    id = Column(Integer, primary_key=True, index=True)
    rental_request_id = Column(Integer, ForeignKey("rental_requests.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    original_quantity = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)

    # Relationships
    rental_request = relationship("RentalRequest", back_populates="products")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='shelf_quantity_non_negative'),
    )

    def __repr__(self):
        return f"<RentalProduct {self.product_id} x{self.quantity}>"


class RentalClearance(Base):
    """Post-rental settlement and close-out record."""

    __tablename__ = "rental_clearances"

    id = Column(Integer, primary_key=True, index=True)
    rental_request_id = Column(
        Integer, ForeignKey("rental_requests.id"), unique=True, nullable=False, index=True
    )
    status = Column(SQLEnum(ClearanceStatus), default=ClearanceStatus.NOT_STARTED, index=True)
    initiated_by = Column(Integer, ForeignKey("users.id"))

    inventory_snapshot = Column(JSON)
    settlement = Column(JSON)
    document = Column(JSON)

    # Return shipment (store -> brand)
    return_carrier = Column(String(100))
    return_tracking_number = Column(String(100))
    return_expected_delivery = Column(Date)
    return_notes = Column(Text)
    return_condition = Column(String(50))
    receipt_notes = Column(Text)

    # Step timestamps
    initiated_at = Column(DateTime)
    inventory_confirmed_at = Column(DateTime)
    return_shipped_at = Column(DateTime)
    return_received_at = Column(DateTime)
    settlement_requested_at = Column(DateTime)
    settlement_approved_at = Column(DateTime)
    payment_completed_at = Column(DateTime)
    closed_at = Column(DateTime)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<RentalClearance {self.id} {self.status}>"


class Review(Base):
    """Rating left by one rental party for the other."""

    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    rental_request_id = Column(Integer, ForeignKey("rental_requests.id"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reviewed_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    rating = Column(Integer, nullable=False)  # 1-5 stars
    comment = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='rating_range'),
        CheckConstraint('reviewer_id != reviewed_id', name='reviewer_reviewed_different'),
        Index('idx_review_rental_reviewer', 'rental_request_id', 'reviewer_id', unique=True),
    )

    def __repr__(self):
        return f"<Review {self.id}>"
