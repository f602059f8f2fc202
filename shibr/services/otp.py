"""One-time phone verification codes."""
import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.config import settings
from shibr.models.platform import OTPPurpose, VerificationOTP
from shibr.services.messaging import OTPProvider

logger = structlog.get_logger()

LOCAL_PHONE_RE = re.compile(r"^05[0-9]{8}$")
COUNTRY_CODE = "966"
# Records older than this are purged. Also the hourly request window and how long a verification counts.
RETENTION = timedelta(hours=1)


@dataclass
class OTPResult:
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


def is_valid_local_phone(phone: str) -> bool:
    """Saudi mobile number in local format: 05 followed by 8 digits."""
    return bool(LOCAL_PHONE_RE.match(phone or ""))


def normalize_phone(phone: str) -> str:
    """Digits only, international form starting with 966."""
    cleaned = re.sub(r"\D", "", phone)
    if cleaned.startswith("0"):
        cleaned = cleaned[1:]
    if not cleaned.startswith(COUNTRY_CODE):
        cleaned = COUNTRY_CODE + cleaned
    return cleaned


def generate_otp(length: int = settings.OTP_LENGTH) -> str:
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


def hash_code(identifier: str, code: str) -> str:
    return hmac.new(
        settings.SECRET_KEY.encode("utf-8"),
        f"{identifier}:{code}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


async def _latest(db: AsyncSession, identifier: str, purpose: OTPPurpose) -> Optional[VerificationOTP]:
    result = await db.execute(
        select(VerificationOTP)
        .where(VerificationOTP.purpose == purpose, VerificationOTP.identifier == identifier)
        .order_by(VerificationOTP.created_at.desc(), VerificationOTP.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def send_code(
    db: AsyncSession,
    provider: OTPProvider,
    phone: str,
    purpose: OTPPurpose = OTPPurpose.CHECKOUT,
    name: str = "",
) -> OTPResult:
    """Issue a new code for `phone`, subject to the hourly limit and resend cooldown."""
    identifier = normalize_phone(phone)
    now = datetime.utcnow()

    await db.execute(
        delete(VerificationOTP).where(
            VerificationOTP.purpose == purpose,
            VerificationOTP.identifier == identifier,
            VerificationOTP.created_at < now - RETENTION,
        )
    )

    # every code issued in the window counts, spent or not
    recent_count = await db.scalar(
        select(func.count(VerificationOTP.id)).where(
            VerificationOTP.purpose == purpose,
            VerificationOTP.identifier == identifier,
            VerificationOTP.created_at >= now - RETENTION,
        )
    )
    if recent_count >= settings.OTP_MAX_REQUESTS_PER_HOUR:
        logger.warning("otp_hourly_limit_reached", phone=identifier, purpose=purpose.value)
        return OTPResult(success=False, error="Too many verification attempts. Please try again later.")

    latest = await _latest(db, identifier, purpose)
    cooldown = timedelta(seconds=settings.OTP_RESEND_COOLDOWN_SECONDS)
    if latest is not None and now - latest.created_at < cooldown:
        return OTPResult(success=False, error="Please wait before requesting a new code")

    # a new code retires every earlier one
    await db.execute(
        update(VerificationOTP)
        .where(
            VerificationOTP.purpose == purpose,
            VerificationOTP.identifier == identifier,
            VerificationOTP.expires_at > now,
        )
        .values(expires_at=now)
    )

    code = generate_otp()
    db.add(VerificationOTP(
        purpose=purpose,
        identifier=identifier,
        code_hash=hash_code(identifier, code),
        attempts=0,
        verified=False,
        created_at=now,
        expires_at=now + timedelta(minutes=settings.OTP_EXPIRY_MINUTES),
    ))
    await db.flush()

    await provider.send_code(identifier, code, name)
    logger.info("otp_issued", phone=identifier, purpose=purpose.value)
    return OTPResult(success=True, message="Verification code sent to your WhatsApp")


async def verify_code(
    db: AsyncSession,
    phone: str,
    code: str,
    purpose: OTPPurpose = OTPPurpose.CHECKOUT,
) -> OTPResult:
    """
    Check `code` against the most recent code issued for `phone`.

    Spent and expired codes are kept until purged so they still count
    towards the hourly limit.
    """
    if not code or len(code) != settings.OTP_LENGTH or not code.isdigit():
        return OTPResult(success=False, error=f"Enter the {settings.OTP_LENGTH}-digit code")

    identifier = normalize_phone(phone)
    record = await _latest(db, identifier, purpose)
    if record is None:
        return OTPResult(success=False, error="Invalid verification code")

    matches = hmac.compare_digest(record.code_hash, hash_code(identifier, code))
    if record.verified and matches:
        return OTPResult(success=True, message="Phone number verified successfully")

    if record.attempts >= settings.OTP_MAX_ATTEMPTS:
        return OTPResult(success=False, error="Too many failed attempts. Please request a new code")

    if record.expires_at <= datetime.utcnow():
        return OTPResult(success=False, error="Verification code has expired")

    if not matches:
        record.attempts += 1
        if record.attempts >= settings.OTP_MAX_ATTEMPTS:
            await db.flush()
            logger.warning("otp_attempts_exhausted", phone=identifier, purpose=purpose.value)
            return OTPResult(success=False, error="Too many failed attempts. Please request a new code")
        await db.flush()
        return OTPResult(success=False, error="Invalid verification code")

    record.verified = True
    await db.flush()
    logger.info("otp_verified", phone=identifier, purpose=purpose.value)
    return OTPResult(success=True, message="Phone number verified successfully")


async def is_verified(
    db: AsyncSession,
    phone: str,
    purpose: OTPPurpose = OTPPurpose.CHECKOUT,
) -> bool:
    """True when the latest code for `phone` was verified within the retention window."""
    record = await _latest(db, normalize_phone(phone), purpose)
    if record is None or not record.verified:
        return False
    return record.created_at >= datetime.utcnow() - RETENTION


async def clear_codes(db: AsyncSession, phone: str, purpose: OTPPurpose = OTPPurpose.CHECKOUT) -> None:
    await db.execute(
        delete(VerificationOTP).where(
            VerificationOTP.purpose == purpose,
            VerificationOTP.identifier == normalize_phone(phone),
        )
    )
