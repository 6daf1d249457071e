"""In-memory rate limit storage.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: every operation runs under one lock and never awaits while
  holding it, so it is safe for both threads and asyncio tasks.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from ratelimit_api.adapters.storage.base import (
    CounterValue,
    RateLimitStorage,
    StoredValue,
    describe_value,
)
from ratelimit_api.core.errors import StorageValueTypeError

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: StoredValue
    expires_at: float | None = None


class InMemoryStorage(RateLimitStorage):
    """Ordered map of rate limit values with optional TTL and LRU cap.

    Attributes:
        max_entries: Maximum number of keys kept (None for unlimited). When the
            cap is hit the least recently used key is dropped, which frees its
            quota; leave unset unless memory matters more than precision.
    """

    backend_name = "memory"

    def __init__(
        self,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the in-memory storage.

        Args:
            max_entries: Optional cap on the number of stored keys.
            clock: Time source in seconds used for TTL expiry.

        Raises:
            ValueError: If max_entries is not positive.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.RLock()
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryStorage(max_entries={self._max_entries}, "
            f"size={len(self._store)}, evictions={self._evictions})"
        )

    @property
    def size(self) -> int:
        """Number of live keys (expired keys are counted until touched)."""
        with self._lock:
            return len(self._store)

    async def get(self, key: str) -> StoredValue | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            return entry.value if entry else None

    async def set(self, key: str, value: StoredValue, *, ttl_ms: int | None = None) -> None:
        with self._lock:
            expires_at = self._clock() + ttl_ms / 1000 if ttl_ms else None
            self._store[key] = _Entry(value=value, expires_at=expires_at)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

    async def increment(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                self._store[key] = _Entry(value=CounterValue(1))
                self._evict_if_over_capacity_locked()
                return 1

            current = self._counter_or_raise(entry, "increment")
            # Expiry is kept, matching INCR semantics on the shared backend.
            entry.value = CounterValue(current + 1)
            return current + 1

    async def decrement(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return 0

            current = self._counter_or_raise(entry, "decrement")
            entry.value = CounterValue(max(0, current - 1))
            return entry.value.value

    async def reset(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    async def clear(self) -> None:
        """Remove all keys. Mostly useful in tests."""
        with self._lock:
            self._store.clear()
            self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight storage metrics without exposing keys."""
        with self._lock:
            return {
                "entries": len(self._store),
                "max_entries": self._max_entries,
                "evictions": self._evictions,
            }

    def _live_entry_locked(self, key: str) -> _Entry | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and self._clock() >= entry.expires_at:
            del self._store[key]
            return None
        self._store.move_to_end(key)
        return entry

    def _counter_or_raise(self, entry: _Entry, operation: str) -> int:
        if not isinstance(entry.value, CounterValue):
            raise StorageValueTypeError(
                code="storage_value_type_mismatch",
                message=f"Cannot {operation} a key that holds a timestamp log",
                details={
                    "backend": self.backend_name,
                    "operation": operation,
                    "expected": "counter",
                    "actual": describe_value(entry.value),
                },
            )
        return entry.value.value

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1
            logger.debug(
                "storage.memory.evicted",
                extra={"size": len(self._store), "max_entries": self._max_entries},
            )
