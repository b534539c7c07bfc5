"""Redis fixed-window rate limiter for submissions."""

import logging
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "snaps:ratelimit:"

# INCR and set the window expiry on first hit, atomically
HIT_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


class RateLimiter:
    """
    Allows at most ``limit`` hits per key in each ``window_seconds`` window.

    If Redis cannot be reached the hit is allowed and the error logged.
    """

    def __init__(
        self,
        redis_url: str,
        limit: int,
        window_seconds: int,
        enabled: bool = True,
    ):
        self.redis_url = redis_url
        self.limit = limit
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = await redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()
            self._redis = None

    async def hit(self, key: str) -> bool:
        """
        Record a hit for a client key.

        Args:
            key: Client identifier (usually the remote address)

        Returns:
            True if the request may proceed, False if it is over the limit
        """
        if not self.enabled:
            return True

        try:
            redis_client = await self._get_redis()
            count = await redis_client.eval(
                HIT_SCRIPT,
                1,
                f"{KEY_PREFIX}{key}",
                str(self.window_seconds),
            )
        except Exception as e:
            logger.error(f"Rate limiter unavailable, allowing request: {e}")
            return True

        if int(count) > self.limit:
            logger.info(f"Rate limit exceeded for {key} ({count}/{self.limit})")
            return False
        return True

    async def reset(self, key: str) -> None:
        """Clear the counter for a key."""
        redis_client = await self._get_redis()
        await redis_client.delete(f"{KEY_PREFIX}{key}")
