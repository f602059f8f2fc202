"""Branch and shelf models."""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, Date,
    DateTime, ForeignKey, Enum as SQLEnum, Index, CheckConstraint
)
from sqlalchemy.orm import relationship
import enum

from shibr.core.database import Base


class ShelfStatus(str, enum.Enum):
    """Shelf listing status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RENTED = "rented"
    ARCHIVED = "archived"


class Branch(Base):
    """A physical store branch; its QR code opens the storefront."""

    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    city = Column(String(100), nullable=False, index=True)
    address = Column(String(300))
    latitude = Column(Float)
    longitude = Column(Float)
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    shelves = relationship("Shelf", back_populates="branch")

    def __repr__(self):
        return f"<Branch {self.name}>"


class Shelf(Base):
    """Rentable display unit inside a branch."""

    __tablename__ = "shelves"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    shelf_name = Column(String(200), nullable=False)
    city = Column(String(100), nullable=False, index=True)

    # Pricing
    monthly_price = Column(Float, nullable=False)
    discount_percentage = Column(Float, default=0)
    final_price = Column(Float)  # monthly price plus platform fee

    # Availability
    available_from = Column(Date, nullable=False)
    is_available = Column(Boolean, default=True, index=True)

    # Dimensions (cm)
    length = Column(Float)
    width = Column(Float)
    depth = Column(Float)

    # Details
    product_type = Column(String(100))
    description = Column(Text)

    status = Column(SQLEnum(ShelfStatus), default=ShelfStatus.APPROVED, index=True)

    # Current rental
    renter_id = Column(Integer, ForeignKey("users.id"), index=True)
    rental_start_date = Column(Date)
    rental_end_date = Column(Date)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    branch = relationship("Branch", back_populates="shelves")

    __table_args__ = (
        Index('idx_shelf_status_city', 'status', 'city'),
        CheckConstraint('monthly_price > 0', name='shelf_price_positive'),
    )

    def __repr__(self):
        return f"<Shelf {self.shelf_name}>"
