"""
WhatsApp delivery of verification codes.

Providers: Karzoun Cloud API (production) and Stub (development and tests).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

import httpx
import structlog

from shibr.core.config import settings
from shibr.core.exceptions import OTPDeliveryError

logger = structlog.get_logger()


@dataclass
class ProviderResponse:
    """Response from provider after sending a message."""

    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    raw_response: dict[str, Any] = field(default_factory=dict)


class OTPProvider(ABC):
    """Sends a verification code template to a phone number."""

    @abstractmethod
    async def send_code(self, phone: str, code: str, name: str = "") -> ProviderResponse:
        """Send `code` to `phone` (international format, digits only)."""

    async def close(self) -> None:
        return None


class StubOTPProvider(OTPProvider):
    """Logs codes instead of sending them and keeps an outbox for inspection."""

    def __init__(self):
        self.outbox: list[dict[str, Any]] = []

    async def send_code(self, phone: str, code: str, name: str = "") -> ProviderResponse:
        message_id = f"stub_msg_{uuid4().hex[:16]}"
        self.outbox.append({
            "phone": phone,
            "code": code,
            "name": name,
            "message_id": message_id,
            "timestamp": datetime.utcnow().isoformat(),
        })
        logger.info("otp_stub_send", phone=phone, message_id=message_id)
        return ProviderResponse(success=True, message_id=message_id)

    def last_code(self, phone: str) -> Optional[str]:
        for entry in reversed(self.outbox):
            if entry["phone"] == phone:
                return entry["code"]
        return None


class KarzounOTPProvider(OTPProvider):
    """Karzoun Cloud API: template message with the code as first parameter."""

    def __init__(
        self,
        token: str,
        sender_id: str,
        template_name: str,
        api_url: str = settings.KARZOUN_API_URL,
        timeout: float = 15.0,
    ):
        self.token = token
        self.sender_id = sender_id
        self.template_name = template_name
        self.api_url = api_url
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def send_code(self, phone: str, code: str, name: str = "") -> ProviderResponse:
        params = {
            "token": self.token,
            "sender_id": self.sender_id,
            "phone": phone,
            "template": self.template_name,
            "param_1": code,
            "url_button": code,
        }
        client = await self._get_client()
        try:
            response = await client.get(self.api_url, params=params)
        except httpx.RequestError as e:
            logger.error("otp_provider_request_failed", phone=phone, error=str(e))
            raise OTPDeliveryError("Failed to send verification code")

        if response.status_code >= 400:
            logger.error(
                "otp_provider_http_error",
                phone=phone,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise OTPDeliveryError("Failed to send verification code")

        data = response.json()
        if data.get("error"):
            error = data["error"]
            message = error if isinstance(error, str) else error.get("message", str(error))
            logger.error("otp_provider_rejected", phone=phone, error=message)
            raise OTPDeliveryError(f"Failed to send verification code: {message}")

        message_id = str(data.get("message_id") or data.get("id") or "unknown")
        logger.info("otp_sent", phone=phone, message_id=message_id)
        return ProviderResponse(success=True, message_id=message_id, raw_response=data)


def build_otp_provider() -> OTPProvider:
    if settings.OTP_PROVIDER == "karzoun":
        if not (settings.KARZOUN_API_TOKEN and settings.KARZOUN_SENDER_ID and settings.KARZOUN_TEMPLATE_NAME):
            raise RuntimeError(
                "Karzoun credentials are not configured: set KARZOUN_API_TOKEN, "
                "KARZOUN_SENDER_ID and KARZOUN_TEMPLATE_NAME"
            )
        return KarzounOTPProvider(
            token=settings.KARZOUN_API_TOKEN,
            sender_id=settings.KARZOUN_SENDER_ID,
            template_name=settings.KARZOUN_TEMPLATE_NAME,
        )
    return StubOTPProvider()


_provider: Optional[OTPProvider] = None


async def get_otp_provider() -> OTPProvider:
    """Dependency for the configured OTP provider."""
    global _provider
    if _provider is None:
        _provider = build_otp_provider()
    return _provider


async def close_otp_provider() -> None:
    global _provider
    if _provider is not None:
        await _provider.close()
        _provider = None
