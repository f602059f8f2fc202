"""Storefront, cart, checkout and order schemas."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from shibr.models.order import OrderStatus, PaymentMethod, PaymentStatus


class StorefrontProduct(BaseModel):
    """A product on sale at a branch with its live shelf stock."""
    product_id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: float
    quantity: int


class StorefrontResponse(BaseModel):
    branch_id: int
    store_name: str
    city: str
    currency: str
    products: List[StorefrontProduct]


class CartCreate(BaseModel):
    branch_id: int


class CartItemAdd(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=0)


class CartItemResponse(BaseModel):
    product_id: int
    name: str
    price: float
    quantity: int
    max_quantity: int
    subtotal: float


class CartResponse(BaseModel):
    cart_id: str
    branch_id: int
    items: List[CartItemResponse]
    total_items: int
    subtotal: float
    tax: float
    total: float
    removed_product_ids: List[int] = []


class OTPSendRequest(BaseModel):
    phone: str = Field(..., max_length=20)
    name: Optional[str] = Field(None, max_length=100)


class OTPVerifyRequest(BaseModel):
    """A verified phone counts for checkout of `cart_id` only."""
    cart_id: str = Field(..., max_length=64)
    phone: str = Field(..., max_length=20)
    code: str = Field(..., max_length=10)


class OTPResponse(BaseModel):
    """Inline success/failure result shown next to the phone field."""
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class CheckoutRequest(BaseModel):
    customer_name: str = Field(..., max_length=100)
    customer_phone: str = Field(..., max_length=20)


class PendingOrderItem(BaseModel):
    product_id: int
    name: str
    price: float
    quantity: int


class PendingOrder(BaseModel):
    """Order payload handed to the payment step."""
    branch_id: int
    store_name: str
    customer_name: str
    customer_phone: str
    items: List[PendingOrderItem]
    subtotal: float
    tax: float
    total: float
    timestamp: int


class CheckoutResponse(BaseModel):
    success: bool = True
    redirect_url: str
    order: PendingOrder


class PlaceOrderRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CARD
    notes: Optional[str] = Field(None, max_length=500)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    rental_product_id: int
    product_name: str
    price: float
    quantity: int
    subtotal: float


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    branch_id: int
    customer_name: str
    customer_phone: str
    subtotal: float
    tax: float
    total: float
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    notes: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class BrandOrderResponse(BaseModel):
    """An order restricted to the requesting brand's lines."""
    id: int
    order_number: str
    branch_id: int
    status: OrderStatus
    payment_status: PaymentStatus
    created_at: datetime
    brand_total: float
    items: List[OrderItemResponse] = []


class OrderStatisticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_orders: int
    pending_orders: int
    completed_orders: int
    total_revenue: float
    average_order_value: float
