"""Redis connection used by the distributed rate limiter."""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from insightify.settings import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Lazily connected async Redis handle.

    When Redis is disabled or unreachable the client stays unconnected and
    callers fall back to in-process behaviour.
    """

    def __init__(self, url: str | None = None, enabled: bool | None = None) -> None:
        self.url = url or settings.redis_url
        self.enabled = settings.redis_enabled if enabled is None else enabled
        self._client: aioredis.Redis | None = None

    @property
    def client(self) -> aioredis.Redis | None:
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Open the connection and verify it with a ping."""
        if not self.enabled:
            logger.info("Redis disabled - using in-memory rate limiting")
            return
        if self._client is not None:
            return
        client = aioredis.from_url(self.url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning(f"Redis connection failed: {e}. Continuing without Redis.")
            await client.aclose()
            return
        self._client = client
        logger.info("Redis connected")

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


redis_client = RedisClient()
