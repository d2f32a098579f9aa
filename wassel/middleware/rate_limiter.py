"""
Rate Limiter - sliding window request rate limiting.

Two backends behind the same `check_rate_limit` call:
- Redis sorted sets driven by an atomic Lua script (shared across processes)
- An in-process timestamp window when no Redis client is configured

Fail-open: if Redis errors, the request is allowed and the error logged.

Usage:
    limiter = RateLimiter(redis_client=services.redis)

    allowed, info = await limiter.check_rate_limit(
        key="sms:+15551234567",
        limit=5,
        window_seconds=60,
    )

    if not allowed:
        raise HTTPException(429, detail="Rate limit exceeded")
"""

import time
from collections import deque
from collections.abc import Callable

from wassel.infrastructure.observability.logging import get_logger
from wassel.services.redis_client import RedisClient

logger = get_logger(__name__)


class RateLimiter:
    """
    Sliding window rate limiter.

    Tracks exact request timestamps, so a caller that used its whole budget
    at 10:00:00 with a 60s window gets capacity back from 10:01:00 onwards,
    one slot per expired timestamp.
    """

    # Returns: {allowed (0 or 1), current_count, oldest_timestamp or 0}
    RATE_LIMIT_LUA_SCRIPT = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window_seconds = tonumber(ARGV[2])
    local current_time = tonumber(ARGV[3])
    local unique_id = ARGV[4]

    local window_start = current_time - window_seconds
    redis.call('ZREMRANGEBYSCORE', key, 0, window_start)

    local current_count = redis.call('ZCARD', key)

    if current_count >= limit then
        local oldest_entries = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        local oldest_timestamp = 0
        if #oldest_entries > 0 then
            oldest_timestamp = tonumber(oldest_entries[2])
        end
        return {0, current_count, oldest_timestamp}
    end

    redis.call('ZADD', key, current_time, unique_id)
    redis.call('EXPIRE', key, window_seconds * 2)

    return {1, current_count + 1, 0}
    """

    def __init__(
        self,
        default_limit: int = 100,
        window_seconds: int = 60,
        fail_open: bool = True,
        redis_client: RedisClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.default_limit = default_limit
        self.window_seconds = window_seconds
        self.fail_open = fail_open
        self.redis = redis_client
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}

    async def check_rate_limit(
        self,
        key: str,
        limit: int | None = None,
        window_seconds: int | None = None,
    ) -> tuple[bool, dict]:
        """
        Check and count one request against `key`.

        Returns:
            Tuple of (allowed, info) where info carries limit, remaining,
            retry_after (seconds, only when rejected) and window_seconds.
        """
        limit = limit or self.default_limit
        window_seconds = window_seconds or self.window_seconds

        if self.redis is None:
            return self._check_local(key, limit, window_seconds)

        try:
            return await self._check_redis(key, limit, window_seconds)
        except Exception as e:
            logger.error(
                "Rate limiter Redis error",
                error=str(e),
                error_type=type(e).__name__,
                key=key,
                limit=limit,
            )
            if self.fail_open:
                return True, self._create_info_dict(
                    allowed=True, limit=limit, remaining=limit, error="rate_limiter_error"
                )
            return False, self._create_info_dict(
                allowed=False, limit=limit, remaining=0, error="rate_limiter_error"
            )

    def _check_local(self, key: str, limit: int, window_seconds: int) -> tuple[bool, dict]:
        now = self._clock()
        window = self._windows.setdefault(key, deque())

        window_start = now - window_seconds
        while window and window[0] <= window_start:
            window.popleft()

        if len(window) >= limit:
            retry_after = max(1, int(window[0] + window_seconds - now + 0.999))
            return False, self._create_info_dict(
                allowed=False,
                limit=limit,
                remaining=0,
                retry_after=retry_after,
                window_seconds=window_seconds,
            )

        window.append(now)
        return True, self._create_info_dict(
            allowed=True,
            limit=limit,
            remaining=max(0, limit - len(window)),
            window_seconds=window_seconds,
        )

    async def _check_redis(self, key: str, limit: int, window_seconds: int) -> tuple[bool, dict]:
        current_time = int(self._clock())
        unique_id = f"{current_time}:{time.time_ns()}"

        result = await self.redis.eval_script(
            self.RATE_LIMIT_LUA_SCRIPT,
            [f"ratelimit:{key}"],
            limit,
            window_seconds,
            current_time,
            unique_id,
        )

        allowed = bool(result[0])
        current_count = int(result[1])
        oldest_timestamp = int(result[2]) if result[2] else 0

        if not allowed:
            if oldest_timestamp > 0:
                retry_after = max(1, (oldest_timestamp + window_seconds) - current_time)
            else:
                retry_after = window_seconds
            return False, self._create_info_dict(
                allowed=False,
                limit=limit,
                remaining=0,
                retry_after=retry_after,
                window_seconds=window_seconds,
            )

        return True, self._create_info_dict(
            allowed=True,
            limit=limit,
            remaining=max(0, limit - current_count),
            window_seconds=window_seconds,
        )

    def reset(self, key: str) -> None:
        self._windows.pop(key, None)

    def _create_info_dict(
        self,
        allowed: bool,
        limit: int,
        remaining: int,
        retry_after: int | None = None,
        window_seconds: int | None = None,
        error: str | None = None,
    ) -> dict:
        info = {
            "allowed": allowed,
            "limit": limit,
            "remaining": remaining,
            "retry_after": retry_after,
        }

        if window_seconds is not None:
            info["window_seconds"] = window_seconds

        if error:
            info["error"] = error

        return info
