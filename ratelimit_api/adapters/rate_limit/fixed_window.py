"""Fixed window counter rate limiter.

Notes:
- Windows are aligned to the epoch: ``window_id = now // window_ms``.
- O(1) space and time per key.
- Up to ``2 * max_requests`` requests can pass in a short span straddling a
  window boundary (tail of window N plus head of window N+1). That is how the
  algorithm behaves and it is kept as is.
- The new-window reset is two separate writes (counter, then window id). Under
  concurrent requests on the rollover tick several callers may reset, so the
  count can overshoot by the number of racing callers.
"""

from __future__ import annotations

import logging

from ratelimit_api.adapters.rate_limit.base import (
    Admission,
    Algorithm,
    RateLimitStrategy,
    validate_limits,
)
from ratelimit_api.adapters.storage.base import CounterValue

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter(RateLimitStrategy):
    """Counts requests per key in discrete, non-overlapping windows."""

    algorithm = Algorithm.FIXED_WINDOW

    def _keys(self, client_id: str, endpoint_id: str) -> tuple[str, str]:
        key = self.key_for(client_id, endpoint_id)
        return key.storage_key("counter"), key.storage_key("window")

    async def consume(
        self,
        client_id: str,
        endpoint_id: str,
        max_requests: int,
        window_ms: int,
    ) -> Admission:
        validate_limits(max_requests, window_ms)
        counter_key, window_key = self._keys(client_id, endpoint_id)

        now = self._clock()
        current_window = now // window_ms
        reset_ms = (current_window + 1) * window_ms - now
        stored_window = await self._read_counter(window_key)

        if stored_window is None or stored_window != current_window:
            await self._storage.set(counter_key, CounterValue(0), ttl_ms=window_ms)
            await self._storage.set(window_key, CounterValue(current_window), ttl_ms=window_ms)
            logger.debug(
                "rate_limit.fixed_window.rollover",
                extra={"window_id": current_window, "previous_window_id": stored_window},
            )

        count = await self._read_counter(counter_key) or 0
        if count >= max_requests:
            return Admission(limited=True, remaining=0, reset_ms=reset_ms)

        count = await self._storage.increment(counter_key)
        return Admission(limited=False, remaining=max(0, max_requests - count), reset_ms=reset_ms)

    async def remaining_requests(
        self,
        client_id: str,
        endpoint_id: str,
        max_requests: int,
        window_ms: int,
    ) -> int:
        validate_limits(max_requests, window_ms)
        counter_key, window_key = self._keys(client_id, endpoint_id)

        stored_window = await self._read_counter(window_key)
        if stored_window is None or stored_window != self._clock() // window_ms:
            return max_requests

        count = await self._read_counter(counter_key) or 0
        return max(0, max_requests - count)

    async def reset_time(self, client_id: str, endpoint_id: str, window_ms: int) -> int:
        validate_limits(1, window_ms)
        _, window_key = self._keys(client_id, endpoint_id)

        now = self._clock()
        stored_window = await self._read_counter(window_key)
        if stored_window is None or stored_window != now // window_ms:
            return 0

        return (stored_window + 1) * window_ms - now
