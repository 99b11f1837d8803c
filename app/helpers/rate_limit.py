"""
Fixed-window rate limiting on Redis.
"""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.logging import get_logger

logger = get_logger(__name__)


async def allow(redis: Redis, scope: str, *parts: str, max_attempts: int, window_sec: int) -> bool:
    """
    Count one attempt for (scope, *parts) and tell whether it is within limits.

    Usage:
        if not await allow(redis, "login", email, client_ip, max_attempts=10, window_sec=60):
            raise HTTPException(status_code=429, detail="Too many requests")

    Redis outages fail open.
    """
    key = "rl:" + ":".join([scope, *[str(p).lower() for p in parts]])
    try:
        attempts = await redis.incr(key)
        if attempts == 1:
            await redis.expire(key, window_sec)
    except RedisError as e:
        logger.warning(f"Rate limiter unavailable for {scope}: {e}")
        return True
    return attempts <= max_attempts
