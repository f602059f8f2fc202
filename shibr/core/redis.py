"""
Redis access for session documents, cached aggregates and throttle counters.

Every operation degrades when Redis is not connected: reads miss, writes
report failure and counters read 0, which leaves throttles open.
"""
import json
from typing import Any, Optional

import structlog
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from shibr.core.config import settings

logger = structlog.get_logger()


class RedisClient:
    """JSON documents and counters over a shared async connection pool."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis: Optional[aioredis.Redis] = None

    @property
    def connected(self) -> bool:
        return self.redis is not None

    async def connect(self) -> None:
        client = aioredis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning("redis_unavailable", url=self.url, error=str(e))
            await client.aclose()
            return
        self.redis = client
        logger.info("redis_connected")

    async def disconnect(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    async def ping(self) -> bool:
        if self.redis is None:
            return False
        return bool(await self.redis.ping())

    async def get_json(self, key: str) -> Optional[Any]:
        """Decoded document stored under `key`, or None."""
        if self.redis is None:
            return None
        raw = await self.redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        """Store `value` as JSON. Returns False when nothing was written."""
        if self.redis is None:
            return False
        await self.redis.set(key, json.dumps(value, default=str), ex=expire)
        return True

    async def delete(self, key: str) -> bool:
        if self.redis is None:
            return False
        await self.redis.delete(key)
        return True

    async def incr(self, key: str, amount: int = 1) -> int:
        if self.redis is None:
            return 0
        return await self.redis.incrby(key, amount)

    async def expire(self, key: str, seconds: int) -> bool:
        if self.redis is None:
            return False
        return await self.redis.expire(key, seconds)

    async def hit(self, key: str, window_seconds: int) -> int:
        """
        Count one hit in a fixed window.

        The window starts at the first hit. Returns the number of hits in the
        current window, or 0 when Redis is not connected.
        """
        count = await self.incr(key)
        if count == 1:
            await self.expire(key, window_seconds)
        return count


redis_client = RedisClient()


async def get_redis() -> RedisClient:
    """Dependency for the shared Redis client."""
    return redis_client
