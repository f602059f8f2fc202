"""Branch, shelf and product schemas."""
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from shibr.models.shelf import ShelfStatus


class BranchBase(BaseModel):
    """Base branch schema."""
    name: str = Field(..., min_length=2, max_length=200)
    city: str = Field(..., min_length=2, max_length=100)
    address: Optional[str] = Field(None, max_length=300)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class BranchCreate(BranchBase):
    pass


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    city: Optional[str] = Field(None, min_length=2, max_length=100)
    address: Optional[str] = Field(None, max_length=300)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_active: Optional[bool] = None


class BranchResponse(BranchBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    is_active: bool
    created_at: datetime


class ShelfBase(BaseModel):
    """Base shelf schema."""
    shelf_name: str = Field(..., min_length=1, max_length=200)
    monthly_price: float = Field(..., gt=0)
    discount_percentage: float = Field(0, ge=0, le=100)
    available_from: date
    length: Optional[float] = Field(None, gt=0)
    width: Optional[float] = Field(None, gt=0)
    depth: Optional[float] = Field(None, gt=0)
    product_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class ShelfCreate(ShelfBase):
    """Schema for listing a shelf in one of the owner's branches."""
    branch_id: int


class ShelfUpdate(BaseModel):
    shelf_name: Optional[str] = Field(None, min_length=1, max_length=200)
    monthly_price: Optional[float] = Field(None, gt=0)
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    available_from: Optional[date] = None
    is_available: Optional[bool] = None
    product_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class ShelfResponse(ShelfBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    branch_id: int
    city: str
    final_price: Optional[float] = None
    is_available: bool
    status: ShelfStatus
    renter_id: Optional[int] = None
    rental_start_date: Optional[date] = None
    rental_end_date: Optional[date] = None
    created_at: datetime


class ShelfList(BaseModel):
    """Paginated marketplace listing."""
    items: List[ShelfResponse]
    total: int
    page: int
    page_size: int
    pages: int


class ProductBase(BaseModel):
    """Base product schema."""
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: float = Field(..., gt=0)
    cost: Optional[float] = Field(None, ge=0)
    quantity: int = Field(0, ge=0)
    sku: Optional[str] = Field(None, max_length=100)


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: Optional[float] = Field(None, gt=0)
    cost: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    sku: Optional[str] = Field(None, max_length=100)


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    currency: str
    total_sales: int
    total_revenue: float
    is_active: bool
    created_at: datetime
