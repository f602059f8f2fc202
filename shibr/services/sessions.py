"""Server-side session storage for carts and pending checkout payloads."""
import uuid
from typing import Any, Optional

import structlog

from shibr.core.config import settings
from shibr.core.exceptions import ShibrError
from shibr.core.redis import RedisClient, redis_client
from shibr.services.cart import Cart

logger = structlog.get_logger()

CART_PREFIX = "cart:"
PENDING_ORDER_PREFIX = "pending_order:"
VERIFIED_PHONE_PREFIX = "verified_phone:"


class SessionStoreUnavailable(ShibrError):
    status_code = 503


class SessionStore:
    """Keeps JSON session documents in Redis with a TTL."""

    def __init__(self, client: RedisClient, ttl: int = settings.CART_TTL_SECONDS):
        self.client = client
        self.ttl = ttl

    async def load(self, key: str) -> Optional[Any]:
        return await self.client.get_json(key)

    async def save(self, key: str, value: Any) -> None:
        if not await self.client.set_json(key, value, expire=self.ttl):
            logger.error("session_store_unavailable", key=key)
            raise SessionStoreUnavailable("Session storage is unavailable")

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    # Carts

    @staticmethod
    def new_cart_id() -> str:
        return uuid.uuid4().hex

    async def load_cart(self, cart_id: str) -> Optional[Cart]:
        data = await self.load(CART_PREFIX + cart_id)
        if not data:
            return None
        return Cart.from_dict(data)

    async def save_cart(self, cart_id: str, cart: Cart) -> None:
        await self.save(CART_PREFIX + cart_id, cart.to_dict())

    async def delete_cart(self, cart_id: str) -> None:
        await self.delete(CART_PREFIX + cart_id)

    # Pending orders handed from checkout to the payment step

    async def load_pending_order(self, cart_id: str) -> Optional[dict]:
        return await self.load(PENDING_ORDER_PREFIX + cart_id)

    async def save_pending_order(self, cart_id: str, payload: dict) -> None:
        await self.save(PENDING_ORDER_PREFIX + cart_id, payload)

    async def delete_pending_order(self, cart_id: str) -> None:
        await self.delete(PENDING_ORDER_PREFIX + cart_id)

    # The phone verified from a cart

    async def mark_phone_verified(self, cart_id: str, phone: str) -> None:
        await self.save(VERIFIED_PHONE_PREFIX + cart_id, phone)

    async def verified_phone(self, cart_id: str) -> Optional[str]:
        return await self.load(VERIFIED_PHONE_PREFIX + cart_id)

    async def clear_phone_verified(self, cart_id: str) -> None:
        await self.delete(VERIFIED_PHONE_PREFIX + cart_id)


async def get_session_store() -> SessionStore:
    """Dependency for the session store."""
    return SessionStore(redis_client)
