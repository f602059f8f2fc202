"""Customer order and payment models."""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Float, JSON,
    DateTime, ForeignKey, Enum as SQLEnum, Index, CheckConstraint
)
from sqlalchemy.orm import relationship
import enum

from shibr.core.database import Base


class OrderStatus(str, enum.Enum):
    """Customer order status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    """Payment method."""
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    APPLE_PAY = "apple_pay"


class PaymentStatus(str, enum.Enum):
    """Payment status."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    COMPLETED = "completed"


class PaymentType(str, enum.Enum):
    """What a platform payment record is for."""
    RENTAL_PAYMENT = "rental_payment"
    STORE_SETTLEMENT = "store_settlement"


class TransferStatus(str, enum.Enum):
    """Payout transfer status."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class CustomerOrder(Base):
    """Storefront order placed by a shopper at a branch."""

    __tablename__ = "customer_orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(20), unique=True, nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)

    # Customer
    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=False)

    # Totals
    subtotal = Column(Float, nullable=False)
    tax = Column(Float, nullable=False)
    total = Column(Float, nullable=False)

    status = Column(SQLEnum(OrderStatus), default=OrderStatus.PENDING, index=True)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING)
    notes = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    confirmed_at = Column(DateTime)
    delivered_at = Column(DateTime)
    cancelled_at = Column(DateTime)

    # Relationships
    items = relationship("CustomerOrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_order_branch_status', 'branch_id', 'status'),
        CheckConstraint('total >= subtotal', name='order_total_includes_tax'),
    )

    def __repr__(self):
        return f"<CustomerOrder {self.order_number}>"


class CustomerOrderItem(Base):
    """Order line; `rental_product_id` points at the shelf stock it was taken from."""

    __tablename__ = "customer_order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("customer_orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    rental_product_id = Column(Integer, ForeignKey("rental_products.id"), nullable=False)
    product_name = Column(String(200), nullable=False)
    price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Float, nullable=False)

    # Relationships
    order = relationship("CustomerOrder", back_populates="items")

    __table_args__ = (
        CheckConstraint('quantity > 0', name='order_item_quantity_positive'),
    )

    def __repr__(self):
        return f"<CustomerOrderItem {self.product_id} x{self.quantity}>"


class Payment(Base):
    """Platform payment record: rental fees in, settlements out."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(SQLEnum(PaymentType), nullable=False, index=True)
    rental_request_id = Column(Integer, ForeignKey("rental_requests.id"), nullable=False, index=True)
    clearance_id = Column(Integer, ForeignKey("rental_clearances.id"), index=True)
    from_user_id = Column(Integer, ForeignKey("users.id"))
    to_user_id = Column(Integer, ForeignKey("users.id"))

    amount = Column(Float, nullable=False)
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, index=True)
    transfer_status = Column(SQLEnum(TransferStatus))
    payment_method = Column(SQLEnum(PaymentMethod))
    reference = Column(String(100))
    breakdown = Column(JSON)
    description = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint('amount > 0', name='payment_amount_positive'),
    )

    def __repr__(self):
        return f"<Payment {self.id} {self.type}>"
