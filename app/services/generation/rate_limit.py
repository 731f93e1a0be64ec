"""
Per-account fixed-window limit on generation requests.

InMemoryRateLimiter keeps counters in this process only: valid for a single
instance. With several API processes use the redis backend so the limit is
global per account.
"""
import logging
import threading
import time
from typing import Callable, Protocol

import redis

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def hit(self, key: str) -> bool:
        """Count one request for key. True if it is within the limit."""
        ...


class InMemoryRateLimiter:
    def __init__(self, limit: int = 10, window_seconds: int = 60, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            count, reset_at = self._counters.get(key, (0, now + self.window_seconds))
            # Lazy reset: first request after expiry opens a new window at 1.
            if now >= reset_at:
                count = 0
                reset_at = now + self.window_seconds
            count += 1
            self._counters[key] = (count, reset_at)
        return count <= self.limit

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()


class RedisRateLimiter:
    def __init__(self, client: redis.Redis, limit: int = 10, window_seconds: int = 60, prefix: str = "gen_rate"):
        self.client = client
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix

    def hit(self, key: str) -> bool:
        redis_key = f"{self.prefix}:{key}"
        try:
            # One MULTI/EXEC: the window TTL is set with the first increment or not at all.
            with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, self.window_seconds, nx=True)
                current, _ = pipe.execute()
        except redis.RedisError as e:
            logger.warning("rate_limit_redis_error", extra={"user_id": key, "error": str(e)})
            return True  # Fail open - generation still gated by the ledger
        return current <= self.limit


def build_rate_limiter(settings) -> RateLimiter:
    limit = settings.generation_rate_limit_requests
    window = settings.generation_rate_limit_window_seconds
    if settings.rate_limit_backend == "redis":
        client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        return RedisRateLimiter(client, limit=limit, window_seconds=window)
    return InMemoryRateLimiter(limit=limit, window_seconds=window)
