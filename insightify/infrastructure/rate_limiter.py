"""Sliding-window rate limiting for the collector endpoints.

Uses Redis sorted sets when a Redis connection is available so limits hold
across instances, otherwise an in-process window per key.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from insightify.infrastructure.redis import RedisClient, redis_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Requests allowed per window for one endpoint family."""

    requests: int
    window_seconds: int
    key_prefix: str = "rl"


@dataclass(frozen=True)
class RateLimitResult:
    limited: bool
    remaining: int
    reset_seconds: int


RATE_LIMITS = {
    # Tracking snippet batches, keyed per project and client IP
    "collect": RateLimitConfig(requests=300, window_seconds=60, key_prefix="rl:collect"),
    "default": RateLimitConfig(requests=100, window_seconds=60, key_prefix="rl:api"),
}


class InMemoryRateLimiter:
    """Single-instance limiter keeping request times per key.

    Keys whose window has fully expired are dropped by a periodic prune so
    the map only holds recently seen clients.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        prune_interval: float = 60,
    ) -> None:
        self._clock = clock
        self._hits: dict[str, tuple[int, deque[float]]] = {}
        self._lock = asyncio.Lock()
        self.prune_interval = prune_interval
        self._last_prune = clock()

    async def hit(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            if now - self._last_prune >= self.prune_interval:
                self._prune(now)

            full_key = f"{config.key_prefix}:{key}"
            entry = self._hits.get(full_key)
            if entry is None:
                entry = self._hits[full_key] = (config.window_seconds, deque())
            hits = entry[1]
            while hits and hits[0] <= now - config.window_seconds:
                hits.popleft()

            if len(hits) >= config.requests:
                reset = int(hits[0] + config.window_seconds - now)
                return RateLimitResult(True, 0, max(1, reset))

            hits.append(now)
            return RateLimitResult(False, config.requests - len(hits), config.window_seconds)

    def _prune(self, now: float) -> None:
        stale = [
            key
            for key, (window_seconds, hits) in self._hits.items()
            if not hits or hits[-1] <= now - window_seconds
        ]
        for key in stale:
            del self._hits[key]
        self._last_prune = now

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    def reset(self) -> None:
        self._hits.clear()


class RedisRateLimiter:
    """Distributed limiter over a Redis sorted set per key."""

    def __init__(self, redis: RedisClient) -> None:
        self.redis = redis

    async def hit(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        client = self.redis.client
        if client is None:
            return RateLimitResult(False, config.requests, config.window_seconds)

        full_key = f"{config.key_prefix}:{key}"
        now = time.time()
        try:
            pipe = client.pipeline()
            pipe.zremrangebyscore(full_key, 0, now - config.window_seconds)
            pipe.zcard(full_key)
            pipe.zadd(full_key, {str(now): now})
            pipe.expire(full_key, config.window_seconds + 1)
            _, count, _, _ = await pipe.execute()

            if count >= config.requests:
                oldest = await client.zrange(full_key, 0, 0, withscores=True)
                reset = int(oldest[0][1] + config.window_seconds - now) if oldest else config.window_seconds
                return RateLimitResult(True, 0, max(1, reset))
            return RateLimitResult(False, config.requests - count - 1, config.window_seconds)
        except (RedisError, OSError) as e:
            # Fail open
            logger.warning(f"Redis rate limit check failed: {e}")
            return RateLimitResult(False, config.requests, config.window_seconds)


in_memory_limiter = InMemoryRateLimiter()
redis_limiter = RedisRateLimiter(redis_client)


async def check_rate_limit(key: str, config: RateLimitConfig) -> RateLimitResult:
    """Check and count one request against the active backend."""
    if redis_client.is_connected:
        return await redis_limiter.hit(key, config)
    return await in_memory_limiter.hit(key, config)


def get_client_ip(request: Request) -> str:
    """Client IP, honouring proxy headers set by the load balancer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def project_client_key(request: Request) -> str:
    """Rate limit key scoped to the project in the path and the client IP."""
    project_id = request.path_params.get("project_id", "-")
    return f"{project_id}:{get_client_ip(request)}"


def rate_limit(
    config_name: str = "default",
    key_func: Callable[[Request], str] | None = None,
):
    """FastAPI dependency enforcing a named rate limit.

    Args:
        config_name: Key into RATE_LIMITS
        key_func: Extracts the limit key from the request; client IP by default

    Returns:
        Dependency raising HTTP 429 once the window is exhausted
    """
    config = RATE_LIMITS.get(config_name, RATE_LIMITS["default"])
    key_for = key_func or get_client_ip

    async def rate_limit_dependency(request: Request) -> None:
        key = key_for(request)
        result = await check_rate_limit(key, config)
        request.state.rate_limit_remaining = result.remaining

        if result.limited:
            logger.warning(
                f"Rate limit exceeded for {key} on {request.url.path}",
                extra={"limit": config.requests, "window_seconds": config.window_seconds},
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Try again in {result.reset_seconds} seconds.",
                headers={
                    "Retry-After": str(result.reset_seconds),
                    "X-RateLimit-Limit": str(config.requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return rate_limit_dependency
