"""
Rate Limiting Module

Sliding-window rate limiting backed by Redis sorted sets, falling back to
in-memory storage when Redis is unavailable.

Applied to:
- Admin login (brute force protection)
- Admin status decisions (prevents mass operations)
"""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import HTTPException, Request, status
from redis.asyncio import Redis

from admissions.core.redis import get_redis

logger = logging.getLogger(__name__)

# In-memory fallback, {key: [timestamp, ...]}. Not shared across processes.
_memory_store: dict[str, list[float]] = {}
# {key: time after which the key holds no live entries}
_memory_expires: dict[str, float] = {}
_last_sweep = 0.0

MEMORY_SWEEP_INTERVAL_SECONDS = 60


class RateLimitExceeded(HTTPException):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_rate_limit_redis(
    client: Redis,
    key: str,
    limit: int,
    window_seconds: int,
) -> bool:
    """
    Check rate limit using a Redis sorted set as a sliding window.

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    now = time.time()
    window_start = now - window_seconds

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, window_start)
    pipe.zcard(key)
    pipe.zadd(key, {str(now): now})
    pipe.expire(key, window_seconds)

    results = await pipe.execute()
    current_count = results[1]

    return current_count < limit


def _sweep_memory_store(now: float) -> None:
    """Drop keys whose whole window has passed."""
    global _last_sweep
    if now - _last_sweep < MEMORY_SWEEP_INTERVAL_SECONDS:
        return
    _last_sweep = now

    expired = [key for key, expires_at in _memory_expires.items() if expires_at <= now]
    for key in expired:
        _memory_store.pop(key, None)
        _memory_expires.pop(key, None)

    if expired:
        logger.debug(f"Evicted {len(expired)} expired rate limit keys")


def _check_rate_limit_memory(key: str, limit: int, window_seconds: int) -> bool:
    """In-process fallback used when Redis is unavailable."""
    now = time.time()
    window_start = now - window_seconds
    _sweep_memory_store(now)

    entries = [ts for ts in _memory_store.get(key, []) if ts > window_start]

    if len(entries) >= limit:
        _memory_store[key] = entries
        _memory_expires[key] = (entries[-1] if entries else now) + window_seconds
        return False

    entries.append(now)
    _memory_store[key] = entries
    _memory_expires[key] = now + window_seconds
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check whether a request is within rate limits.

    Tries Redis first, falls back to in-memory storage.

    Args:
        key: Unique key for this rate limit (e.g., "admin:decide:<admin_id>")
        limit: Maximum requests allowed in the window
        window_seconds: Time window in seconds

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    client = get_redis()

    if client is not None:
        try:
            return await _check_rate_limit_redis(client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_rate_limit_memory(key, limit, window_seconds)


def rate_limit(
    action: str,
    limit: int = 10,
    window_seconds: int = 60,
) -> Callable[[Request], Awaitable[None]]:
    """
    Dependency factory enforcing a rate limit on an endpoint.

    The key uses the authenticated admin ID when the auth dependency has
    already run (request.state.admin_id), otherwise the client IP.

    Usage:
        @router.post("/login", dependencies=[Depends(rate_limit("login", 5, 60))])

    Raises:
        RateLimitExceeded: When rate limit is exceeded (HTTP 429)
    """

    async def dependency(request: Request) -> None:
        admin_id = getattr(request.state, "admin_id", None)
        if admin_id:
            key = f"rate_limit:{action}:admin:{admin_id}"
        else:
            client_ip = request.client.host if request.client else "unknown"
            key = f"rate_limit:{action}:ip:{client_ip}"

        if not await check_rate_limit(key, limit, window_seconds):
            logger.warning(f"Rate limit exceeded for {key}: {limit}/{window_seconds}s")
            raise RateLimitExceeded(limit, window_seconds)

    return dependency


__all__ = [
    "rate_limit",
    "check_rate_limit",
    "RateLimitExceeded",
]
