"""Rate limiting strategy interfaces.

The admission gate depends on this abstraction (not the concrete algorithms)
so fixed window and sliding window log can run over any storage backend.
"""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from urllib.parse import quote

from ratelimit_api.adapters.storage.base import (
    CounterValue,
    RateLimitStorage,
    TimestampLogValue,
    describe_value,
)
from ratelimit_api.core.errors import InvalidRateLimitConfigError, StorageValueTypeError


Clock = Callable[[], int]


def current_time_ms() -> int:
    """Wall-clock time in integer milliseconds."""
    return time.time_ns() // 1_000_000


class Algorithm(str, Enum):
    """Available limiting algorithms; the value doubles as key namespace."""

    FIXED_WINDOW = "fixed"
    SLIDING_WINDOW = "sliding"


def validate_limits(max_requests: int, window_ms: int) -> None:
    """Reject non-positive limits before any storage access.

    Raises:
        InvalidRateLimitConfigError: If either value is not a positive int.
    """
    for name, value in (("max_requests", max_requests), ("window_ms", window_ms)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidRateLimitConfigError(
                code="invalid_rate_limit_config",
                message=f"{name} must be a positive integer",
                details={"max_requests": max_requests, "window_ms": window_ms},
            )


@dataclass(frozen=True)
class RateLimitConfig:
    """Limit for one (client, endpoint) pair.

    Attributes:
        max_requests: Requests admitted per window.
        window_ms: Window length in milliseconds.
        algorithm: Optional per-endpoint algorithm override.
    """

    max_requests: int
    window_ms: int
    algorithm: Algorithm | None = None

    def __post_init__(self) -> None:
        validate_limits(self.max_requests, self.window_ms)


@dataclass(frozen=True)
class RateLimitKey:
    """Identifies one logical counter: (client, endpoint, algorithm).

    Identifiers are percent-encoded so that ``:`` inside a client or endpoint
    id can never make two different pairs share a storage key.
    """

    client_id: str
    endpoint_id: str
    algorithm: Algorithm

    def storage_key(self, suffix: str | None = None) -> str:
        parts = [
            self.algorithm.value,
            quote(self.client_id, safe=""),
            quote(self.endpoint_id, safe=""),
        ]
        if suffix:
            parts.append(suffix)
        return ":".join(parts)


@dataclass(frozen=True)
class Decision:
    """Outcome of one admission check. Never persisted.

    Attributes:
        limited: True when the request must be rejected.
        remaining: Requests still available in the current window.
        reset_ms: Milliseconds until quota is restored (0 when nothing to wait for).
        limit: Configured max requests.
        window_ms: Configured window length.
        algorithm: Algorithm that produced the decision.
    """

    limited: bool
    remaining: int
    reset_ms: int
    limit: int
    window_ms: int
    algorithm: Algorithm

    @property
    def retry_after_seconds(self) -> int:
        return math.ceil(self.reset_ms / 1000)


@dataclass(frozen=True)
class Admission:
    """Result of one consume call, computed from a single clock reading."""

    limited: bool
    remaining: int
    reset_ms: int


class RateLimitStrategy(ABC):
    """Interface for rate limiting algorithms.

    Implementations keep no state of their own; everything lives in storage.
    They never hold an in-process lock across a storage call.
    """

    algorithm: Algorithm

    def __init__(self, storage: RateLimitStorage, *, clock: Clock = current_time_ms) -> None:
        self._storage = storage
        self._clock = clock

    def key_for(self, client_id: str, endpoint_id: str) -> RateLimitKey:
        return RateLimitKey(client_id, endpoint_id, self.algorithm)

    @abstractmethod
    async def consume(
        self,
        client_id: str,
        endpoint_id: str,
        max_requests: int,
        window_ms: int,
    ) -> Admission:
        """Run one admission check and report the quota it leaves behind.

        Remaining quota and reset delay come from the same storage reads and
        clock reading as the decision itself.

        Raises:
            InvalidRateLimitConfigError: If the limits are not positive.
            StorageUnavailableError: If storage cannot be reached.
        """
        raise NotImplementedError

    async def is_rate_limited(
        self,
        client_id: str,
        endpoint_id: str,
        max_requests: int,
        window_ms: int,
    ) -> bool:
        """Run one admission check, recording the request when admitted.

        Returns:
            True if the request must be rejected, False if it was admitted.
        """
        admission = await self.consume(client_id, endpoint_id, max_requests, window_ms)
        return admission.limited

    @abstractmethod
    async def remaining_requests(
        self,
        client_id: str,
        endpoint_id: str,
        max_requests: int,
        window_ms: int,
    ) -> int:
        """Return how many more requests would be admitted right now."""
        raise NotImplementedError

    @abstractmethod
    async def reset_time(self, client_id: str, endpoint_id: str, window_ms: int) -> int:
        """Return milliseconds until quota is restored, 0 if none is used."""
        raise NotImplementedError

    async def _read_counter(self, key: str) -> int | None:
        value = await self._storage.get(key)
        if value is None:
            return None
        if not isinstance(value, CounterValue):
            raise self._shape_error(key, "counter", describe_value(value))
        return value.value

    async def _read_log(self, key: str) -> tuple[int, ...]:
        value = await self._storage.get(key)
        if value is None:
            return ()
        if not isinstance(value, TimestampLogValue):
            raise self._shape_error(key, "timestamp_log", describe_value(value))
        return value.timestamps

    def _shape_error(self, key: str, expected: str, actual: str) -> StorageValueTypeError:
        return StorageValueTypeError(
            code="storage_value_type_mismatch",
            message=f"{self.algorithm.value} window state has an unexpected shape",
            details={"algorithm": self.algorithm.value, "expected": expected, "actual": actual},
        )
