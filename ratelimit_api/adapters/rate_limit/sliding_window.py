"""Sliding window log rate limiter.

Keeps one timestamp per admitted request and counts only those newer than
``now - window_ms``. Exact, with no boundary burst, at the cost of
O(max_requests) storage and work per check.

Example (max_requests=5, window_ms=60000):
    Requests at t=0s, 10s, 20s, 30s and 40s are admitted, t=50s is rejected,
    and t=61s is admitted again because the t=0s entry aged out.
"""

from __future__ import annotations

from ratelimit_api.adapters.rate_limit.base import (
    Admission,
    Algorithm,
    RateLimitStrategy,
    validate_limits,
)
from ratelimit_api.adapters.storage.base import TimestampLogValue


class SlidingWindowRateLimiter(RateLimitStrategy):
    """Counts requests inside the trailing window ending at now."""

    algorithm = Algorithm.SLIDING_WINDOW

    async def _live_timestamps(self, key: str, now: int, window_ms: int) -> list[int]:
        window_start = now - window_ms
        # Concurrent writers may append out of order, so filter rather than slice.
        return [ts for ts in await self._read_log(key) if ts > window_start]

    async def consume(
        self,
        client_id: str,
        endpoint_id: str,
        max_requests: int,
        window_ms: int,
    ) -> Admission:
        validate_limits(max_requests, window_ms)
        key = self.key_for(client_id, endpoint_id).storage_key()

        now = self._clock()
        timestamps = await self._live_timestamps(key, now, window_ms)

        limited = len(timestamps) >= max_requests
        if not limited:
            timestamps.append(now)
        # Written on rejection too, so the trimmed log replaces the stored one.
        await self._storage.set(key, TimestampLogValue(tuple(timestamps)), ttl_ms=window_ms)

        return Admission(
            limited=limited,
            remaining=max(0, max_requests - len(timestamps)),
            reset_ms=min(timestamps) + window_ms - now,
        )

    async def remaining_requests(
        self,
        client_id: str,
        endpoint_id: str,
        max_requests: int,
        window_ms: int,
    ) -> int:
        validate_limits(max_requests, window_ms)
        key = self.key_for(client_id, endpoint_id).storage_key()
        timestamps = await self._live_timestamps(key, self._clock(), window_ms)
        return max(0, max_requests - len(timestamps))

    async def reset_time(self, client_id: str, endpoint_id: str, window_ms: int) -> int:
        """Time until the oldest surviving timestamp leaves the window."""
        validate_limits(1, window_ms)
        key = self.key_for(client_id, endpoint_id).storage_key()

        now = self._clock()
        timestamps = await self._live_timestamps(key, now, window_ms)
        if not timestamps:
            return 0
        return min(timestamps) + window_ms - now
