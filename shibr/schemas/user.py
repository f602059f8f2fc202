"""User and authentication schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator, model_validator

from shibr.models.user import AccountType, Language


class UserBase(BaseModel):
    """Base user schema."""
    email: EmailStr
    full_name: str = Field(..., min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    store_name: Optional[str] = Field(None, max_length=200)
    brand_name: Optional[str] = Field(None, max_length=200)
    business_registration: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=300)
    preferred_language: Language = Language.ARABIC


class UserCreate(UserBase):
    """Schema for registering a store or brand owner."""
    password: str = Field(..., min_length=8, max_length=100)
    account_type: AccountType

    @field_validator("account_type")
    @classmethod
    def no_self_service_admins(cls, v: AccountType) -> AccountType:
        if v == AccountType.ADMIN:
            raise ValueError("Admin accounts cannot be registered")
        return v

    @model_validator(mode="after")
    def business_name_required(self):
        if self.account_type == AccountType.STORE_OWNER and not self.store_name:
            raise ValueError("store_name is required for store owners")
        if self.account_type == AccountType.BRAND_OWNER and not self.brand_name:
            raise ValueError("brand_name is required for brand owners")
        return self


class UserUpdate(BaseModel):
    """Schema for updating the current user's profile."""
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    store_name: Optional[str] = Field(None, max_length=200)
    brand_name: Optional[str] = Field(None, max_length=200)
    business_registration: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=300)
    preferred_language: Optional[Language] = None


class UserResponse(UserBase):
    """Schema for user response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_type: AccountType
    is_active: bool
    is_verified: bool
    created_at: datetime
    last_login: Optional[datetime] = None


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class Token(BaseModel):
    """Schema for authentication token."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
