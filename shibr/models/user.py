"""User model."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SQLEnum
import enum

from shibr.core.database import Base


class AccountType(str, enum.Enum):
    """Account types."""
    STORE_OWNER = "store_owner"
    BRAND_OWNER = "brand_owner"
    ADMIN = "admin"


class Language(str, enum.Enum):
    """Preferred interface language."""
    ARABIC = "ar"
    ENGLISH = "en"


class User(Base):
    """User model for store owners, brand owners and admins."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(20))

    # Account
    account_type = Column(SQLEnum(AccountType), nullable=False, index=True)
    store_name = Column(String(200))
    brand_name = Column(String(200))
    business_registration = Column(String(100))
    website = Column(String(300))
    preferred_language = Column(SQLEnum(Language), default=Language.ARABIC)

    # Status
    is_active = Column(Boolean, default=True)
    is_verified = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime)

    @property
    def display_name(self) -> str:
        return self.store_name or self.brand_name or self.full_name

    def __repr__(self):
        return f"<User {self.email}>"
