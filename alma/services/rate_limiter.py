"""Sliding-window rate limiter backed by Redis sorted sets.

Each caller key owns a sorted set of request timestamps. A check adds the
new request, prunes timestamps older than the window and counts what is
left in one transaction, then takes the request back out if it went over.

The limiter fails open: with no ``redis_url`` configured, or when Redis
errors, every request is allowed.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass

import redis.asyncio as redis
from redis.exceptions import RedisError

from alma.config import settings
from alma.services.metrics import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    # False when the decision was made without consulting the backend
    enforced: bool = True

    def headers(self, now: float | None = None) -> dict[str, str]:
        """``X-RateLimit-*`` headers; Reset is seconds until the window frees up."""
        now = time.time() if now is None else now
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(max(int(round(self.reset_at - now)), 0)),
        }


class SlidingWindowRateLimiter:
    """Per-key sliding window shared across processes through Redis."""

    def __init__(
        self,
        max_requests: int | None = None,
        window_seconds: int | None = None,
        *,
        client: redis.Redis | None = None,
        prefix: str | None = None,
    ):
        self._max_requests = max_requests or settings.rate_limit_per_minute
        self._window = window_seconds or settings.rate_limit_window
        self._prefix = prefix or settings.rate_limit_prefix
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(settings.redis_url)

    def _get_client(self) -> redis.Redis | None:
        if self._client is None and settings.redis_url:
            self._client = redis.from_url(settings.redis_url, decode_responses=True)
            logger.info("Rate limiter connected to Redis backend")
        return self._client

    def _unlimited(self, now: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=self._max_requests,
            remaining=self._max_requests,
            reset_at=now + self._window,
            enforced=False,
        )

    async def check(self, key: str) -> RateLimitResult:
        """Count one request for *key* and decide whether it may proceed.

        Recording, pruning and counting happen in one MULTI. A request that
        lands over the limit is removed again.
        """
        now = time.time()
        client = self._get_client()
        if client is None:
            return self._unlimited(now)

        redis_key = f"{self._prefix}:{key}"
        member = f"{now}:{uuid.uuid4().hex}"
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(redis_key, 0, now - self._window)
                pipe.zadd(redis_key, {member: now})
                pipe.zcard(redis_key)
                pipe.zrange(redis_key, 0, 0, withscores=True)
                pipe.expire(redis_key, self._window)
                _, _, count, oldest, _ = await pipe.execute()

            reset_at = (oldest[0][1] + self._window) if oldest else now + self._window

            if count > self._max_requests:
                await client.zrem(redis_key, member)
                metrics.inc_rate_limited()
                return RateLimitResult(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    reset_at=reset_at,
                )
        except RedisError as exc:
            metrics.inc_rate_limiter_error()
            logger.warning("Rate limiter backend error, allowing request: %s", exc)
            return self._unlimited(now)

        return RateLimitResult(
            allowed=True,
            limit=self._max_requests,
            remaining=max(self._max_requests - count, 0),
            reset_at=reset_at,
        )

    def reset(self, client: redis.Redis | None = None) -> None:
        """Drop (or replace) the backend client; used for test isolation."""
        self._client = client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        self._client = None


rate_limiter = SlidingWindowRateLimiter()
