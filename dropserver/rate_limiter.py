# dropserver/rate_limiter.py
import logging

from redis.exceptions import RedisError

from dropserver.errors import TransientStoreError

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate_limit:"


class RateLimiter:
    """
    Fixed-window request counter per reporter identity, backed by Redis.

    INCR is atomic on the server, so two concurrent batches for the same
    identity always observe distinct counts. EXPIRE NX follows every increment:
    it only attaches a TTL when the key has none, so the window never slides,
    and a key left without a TTL by a failed EXPIRE gets one on the next
    request. NX needs Redis 7+.
    """

    def __init__(self, redis, max_requests=100, window_seconds=60):
        self.redis = redis
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @staticmethod
    def key_for(identity: str) -> str:
        return f"{KEY_PREFIX}{identity}"

    async def check_and_increment(self, identity: str) -> int:
        key = self.key_for(identity)
        try:
            count = await self.redis.incr(key)
            await self.redis.expire(key, self.window_seconds, nx=True)
        except RedisError as e:
            # Fail closed: no counter, no writes
            logger.error("Rate limiter store error for %s: %s", identity, e)
            raise TransientStoreError() from e
        return count

    def is_exceeded(self, count: int) -> bool:
        return count > self.max_requests
