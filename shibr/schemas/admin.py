"""Admin dashboard schemas."""
from typing import Optional, List
from pydantic import BaseModel, Field

from shibr.schemas.rental import RentalRequestResponse
from shibr.schemas.user import UserResponse


class StatsResponse(BaseModel):
    users: dict[str, int]
    total_users: int
    shelves: dict[str, int]
    total_shelves: int
    rentals: dict[str, int]
    active_clearances: int
    orders: int
    revenue: float
    currency: str


class UserPage(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    page_size: int
    pages: int


class RentalPage(BaseModel):
    items: List[RentalRequestResponse]
    total: int
    page: int
    page_size: int
    pages: int


class PlatformSettings(BaseModel):
    platform_fee_percentage: float
    minimum_shelf_price: float
    maximum_discount_percentage: float


class PlatformSettingsUpdate(BaseModel):
    platform_fee_percentage: Optional[float] = Field(None, ge=0, le=100)
    minimum_shelf_price: Optional[float] = Field(None, ge=0)
    maximum_discount_percentage: Optional[float] = Field(None, ge=0, le=100)


class PurgeResult(BaseModel):
    deleted: int
