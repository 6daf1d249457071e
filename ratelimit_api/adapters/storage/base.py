"""Storage interface for rate limit state.

A stored value is either a plain counter or an ordered log of millisecond
timestamps. The two shapes are modelled as a tagged variant so each backend
can refuse operations that do not fit the shape a key already holds.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CounterValue:
    """Non-negative integer counter (request count or window id)."""

    value: int


@dataclass(frozen=True)
class TimestampLogValue:
    """Request timestamps in milliseconds, in insertion order."""

    timestamps: tuple[int, ...] = ()


StoredValue = CounterValue | TimestampLogValue


def describe_value(value: StoredValue | None) -> str:
    """Return the shape name of a stored value for error details."""
    if value is None:
        return "absent"
    if isinstance(value, CounterValue):
        return "counter"
    return "timestamp_log"


class RateLimitStorage(ABC):
    """Interface for rate limit storage backends.

    Every method may suspend on I/O. Only ``increment`` and ``decrement`` are
    atomic; there is no atomicity across keys or across calls.
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> StoredValue | None:
        """Return the value stored under key, or None if it was never written.

        Raises:
            StorageUnavailableError: If the backend cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: StoredValue, *, ttl_ms: int | None = None) -> None:
        """Overwrite key with value.

        Args:
            key: Storage key.
            value: Counter or timestamp log.
            ttl_ms: Optional expiry; the key disappears after this many ms.
        """
        raise NotImplementedError

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically add one to the counter under key (created at 1).

        Returns:
            The counter value after the increment.

        Raises:
            StorageValueTypeError: If key holds a timestamp log.
        """
        raise NotImplementedError

    @abstractmethod
    async def decrement(self, key: str) -> int:
        """Atomically subtract one from the counter under key, floored at zero.

        Returns:
            The counter value after the decrement.
        """
        raise NotImplementedError

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Delete key."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None
