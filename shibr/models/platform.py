"""Platform settings and verification code models."""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, Boolean,
    DateTime, Enum as SQLEnum, Index
)
import enum

from shibr.core.database import Base


class PlatformSetting(Base):
    """Admin-editable numeric setting stored as a key/value pair."""

    __tablename__ = "platform_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Float, nullable=False)
    description = Column(String(300))
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<PlatformSetting {self.key}={self.value}>"


class OTPPurpose(str, enum.Enum):
    """What a one-time code verifies."""
    CHECKOUT = "checkout"
    SIGNUP = "signup"


class VerificationOTP(Base):
    """One-time code sent to a phone number. Only the code hash is stored."""

    __tablename__ = "verification_otps"

    id = Column(Integer, primary_key=True, index=True)
    purpose = Column(SQLEnum(OTPPurpose), nullable=False)
    identifier = Column(String(20), nullable=False)  # normalized phone number
    code_hash = Column(String(64), nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('idx_otp_purpose_identifier', 'purpose', 'identifier'),
    )

    def __repr__(self):
        return f"<VerificationOTP {self.purpose} {self.identifier}>"
