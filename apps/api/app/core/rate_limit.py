"""Rate limiting.

Two mechanisms live here:

- ``limiter``: slowapi, decorating the read endpoints with plain "N/period" limits.
- ``TokenBucket``: the windowed token bucket that guards the write endpoints.
  A bucket holds at most ``max_tokens``; every full ``window_ms`` that elapses
  since the last refill adds ``max_tokens`` in one jump (capped), and each
  allowed request consumes one token.

Bucket state lives in process memory by default, so every instance enforces its
own limit. Setting ``RATE_LIMIT_BACKEND=redis`` moves the buckets into Redis so
that all instances share them.
"""

import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import WatchError
from slowapi import Limiter
from starlette.requests import Request

from app.core.config import settings
from app.core.errors import RateLimited

logger = logging.getLogger(__name__)


def _get_real_client_ip(request: Request) -> str:
    """Extract the real client IP behind Cloudflare Tunnel / reverse proxy."""
    return (
        request.headers.get("CF-Connecting-IP")
        or request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        or (request.client.host if request.client else "unknown")
    )


limiter = Limiter(key_func=_get_real_client_ip, enabled=settings.rate_limit_enabled)


def ip_key(request: Request, scope: str) -> str:
    """Bucket key for one endpoint and one client."""
    return f"{scope}:{_get_real_client_ip(request)}"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Bucket:
    tokens: int
    last_refill_ms: int


def take_token(
    bucket: Bucket | None,
    *,
    max_tokens: int,
    window_ms: int,
    now: int,
) -> tuple[Bucket, bool]:
    """Refill ``bucket`` as of ``now`` and try to consume one token.

    Returns the new bucket state and whether the request is allowed.
    """
    if bucket is None:
        bucket = Bucket(tokens=max_tokens, last_refill_ms=now)

    elapsed = now - bucket.last_refill_ms
    refill = (elapsed // window_ms) * max_tokens if elapsed > 0 else 0
    tokens = min(max_tokens, bucket.tokens + refill)
    last = now if refill > 0 else bucket.last_refill_ms

    if tokens <= 0:
        return Bucket(tokens=tokens, last_refill_ms=last), False
    return Bucket(tokens=tokens - 1, last_refill_ms=last), True


class BucketStore(Protocol):
    async def consume(self, key: str, *, max_tokens: int, window_ms: int, now: int) -> bool: ...

    async def reset(self) -> None: ...


class MemoryBucketStore:
    """Process-local buckets. The lock makes refill-and-consume atomic per call."""

    def __init__(self) -> None:
        self._buckets: dict[str, Bucket] = {}
        self._lock = threading.Lock()

    async def consume(self, key: str, *, max_tokens: int, window_ms: int, now: int) -> bool:
        with self._lock:
            bucket, allowed = take_token(
                self._buckets.get(key),
                max_tokens=max_tokens,
                window_ms=window_ms,
                now=now,
            )
            self._buckets[key] = bucket
        return allowed

    async def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


class RedisBucketStore:
    """Buckets shared between instances, one Redis hash per key.

    Uses WATCH/MULTI so a concurrent writer on the same key forces a retry
    instead of a lost update.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str = "ratelimit:") -> None:
        self.redis = redis
        self.prefix = prefix

    async def consume(self, key: str, *, max_tokens: int, window_ms: int, now: int) -> bool:
        redis_key = f"{self.prefix}{key}"
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(redis_key)
                    raw = await pipe.hgetall(redis_key)
                    current = (
                        Bucket(tokens=int(raw["tokens"]), last_refill_ms=int(raw["last"]))
                        if raw
                        else None
                    )
                    bucket, allowed = take_token(
                        current, max_tokens=max_tokens, window_ms=window_ms, now=now
                    )
                    pipe.multi()
                    pipe.hset(
                        redis_key,
                        mapping={"tokens": bucket.tokens, "last": bucket.last_refill_ms},
                    )
                    # An idle bucket is full again after one window anyway
                    pipe.pexpire(redis_key, window_ms)
                    await pipe.execute()
                    return allowed
                except WatchError:
                    logger.debug("Rate limit bucket %s changed concurrently, retrying", redis_key)
                    continue

    async def reset(self) -> None:
        async for key in self.redis.scan_iter(match=f"{self.prefix}*"):
            await self.redis.delete(key)


_store: BucketStore | None = None


def get_bucket_store() -> BucketStore:
    """Return the configured bucket store, creating it on first use."""
    global _store  # noqa: PLW0603
    if _store is None:
        if settings.rate_limit_backend == "redis":
            client = aioredis.Redis.from_url(str(settings.redis_url), decode_responses=True)
            _store = RedisBucketStore(client)
        else:
            _store = MemoryBucketStore()
    return _store


def set_bucket_store(store: BucketStore | None) -> None:
    """Replace the bucket store (``None`` re-reads settings on next use)."""
    global _store  # noqa: PLW0603
    _store = store


class TokenBucket:
    """A named limit: ``max_tokens`` requests per ``window_ms`` per key."""

    def __init__(
        self,
        *,
        max_tokens: int,
        window_ms: int,
        store: BucketStore | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if max_tokens < 1 or window_ms < 1:
            raise ValueError("max_tokens and window_ms must be positive")
        self.max_tokens = max_tokens
        self.window_ms = window_ms
        self._store = store
        self._clock = clock

    @property
    def store(self) -> BucketStore:
        return self._store or get_bucket_store()

    async def allow(self, key: str) -> bool:
        return await self.store.consume(
            key,
            max_tokens=self.max_tokens,
            window_ms=self.window_ms,
            now=self._clock(),
        )


def rate_limit(
    scope: str,
    *,
    max_tokens: int,
    window_ms: int,
) -> Callable[[Request], Awaitable[None]]:
    """Build a route dependency enforcing a token bucket per (scope, client IP)."""
    bucket = TokenBucket(max_tokens=max_tokens, window_ms=window_ms)

    async def _enforce(request: Request) -> None:
        if not settings.rate_limit_enabled:
            return
        key = ip_key(request, scope)
        if not await bucket.allow(key):
            logger.warning("Rate limit exceeded for %s", key)
            raise RateLimited("Too many requests, please try again later")

    return _enforce
