from __future__ import annotations

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from retos.core.config import get_settings

logger = structlog.get_logger(__name__)

# INCR and set the TTL only when the key is new: fixed window.
FIXED_WINDOW_LUA = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


class RedisRateLimiter:
    def __init__(self, redis_client: Redis, *, prefix: str = "ratelimit") -> None:
        self.redis_client = redis_client
        self.prefix = prefix

    async def hit(self, identifier: str, *, limit: int, window_seconds: int) -> bool:
        """Count one request; return False once the window's limit is exceeded.

        Fails open when Redis is unreachable.
        """
        key = f"{self.prefix}:{identifier}"
        try:
            count = await self.redis_client.eval(FIXED_WINDOW_LUA, 1, key, int(window_seconds))
        except RedisError as exc:
            logger.warning("rate_limit_backend_unavailable", key=key, error=type(exc).__name__)
            return True
        return int(count) <= int(limit)


_limiter: RedisRateLimiter | None = None


def get_rate_limiter() -> RedisRateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = RedisRateLimiter(Redis.from_url(get_settings().redis_url))
    return _limiter
