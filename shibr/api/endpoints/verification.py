"""Checkout phone verification endpoints."""
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.config import settings
from shibr.core.database import get_db
from shibr.core.redis import RedisClient, get_redis
from shibr.services import checkout, otp
from shibr.services.messaging import OTPProvider, get_otp_provider
from shibr.services.sessions import SessionStore, get_session_store
from shibr.schemas.storefront import OTPResponse, OTPSendRequest, OTPVerifyRequest

router = APIRouter()
logger = structlog.get_logger()

IP_WINDOW_SECONDS = 60 * 60


async def throttle_by_ip(
    request: Request,
    redis: RedisClient = Depends(get_redis),
) -> None:
    """Cap verification requests per client IP; open when Redis is down."""
    client_ip = request.client.host if request.client else "unknown"
    hits = await redis.hit(f"otp_ip:{client_ip}", IP_WINDOW_SECONDS)
    if hits > settings.OTP_RATE_LIMIT_PER_IP_HOUR:
        logger.warning("otp_ip_throttled", client_host=client_ip, hits=hits)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many verification requests. Please try again later.",
        )


@router.post("/otp/send", response_model=OTPResponse, dependencies=[Depends(throttle_by_ip)])
async def send_otp(
    body: OTPSendRequest,
    db: AsyncSession = Depends(get_db),
    provider: OTPProvider = Depends(get_otp_provider),
):
    """Send a verification code to the shopper's WhatsApp."""
    if not otp.is_valid_local_phone(body.phone):
        return OTPResponse(success=False, error="Invalid phone number format")

    result = await otp.send_code(db, provider, body.phone, name=body.name or "")
    return OTPResponse(success=result.success, message=result.message, error=result.error)


@router.post("/otp/verify", response_model=OTPResponse, dependencies=[Depends(throttle_by_ip)])
async def verify_otp(
    body: OTPVerifyRequest,
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Check the code the shopper typed in and remember the phone on their cart."""
    await checkout.load_cart(store, body.cart_id)
    if not otp.is_valid_local_phone(body.phone):
        return OTPResponse(success=False, error="Invalid phone number format")

    result = await otp.verify_code(db, body.phone, body.code.strip())
    if result.success:
        await store.mark_phone_verified(body.cart_id, otp.normalize_phone(body.phone))
    return OTPResponse(success=result.success, message=result.message, error=result.error)
