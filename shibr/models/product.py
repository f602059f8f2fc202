"""Product model."""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean,
    DateTime, ForeignKey, Index, CheckConstraint
)

from shibr.core.database import Base


class Product(Base):
    """A brand owner's product. `quantity` is warehouse stock not yet on a shelf."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False, index=True)
    code = Column(String(100), nullable=False)
    description = Column(Text)
    category = Column(String(100))

    # Pricing (pre-tax)
    price = Column(Float, nullable=False)
    cost = Column(Float)
    currency = Column(String(3), default="SAR")

    # Stock
    quantity = Column(Integer, default=0, nullable=False)
    sku = Column(String(100))

    # Sales counters
    total_sales = Column(Integer, default=0)
    total_revenue = Column(Float, default=0.0)

    is_active = Column(Boolean, default=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('idx_product_owner_active', 'owner_id', 'is_active'),
        CheckConstraint('price > 0', name='product_price_positive'),
        CheckConstraint('quantity >= 0', name='product_quantity_non_negative'),
    )

    def __repr__(self):
        return f"<Product {self.name}>"
