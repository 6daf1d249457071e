"""Redis-backed rate limit storage shared across processes.

Counters are stored as plain Redis integers so INCR is used directly and
stays atomic across every instance talking to the same server. Timestamp
logs are stored as JSON arrays.

Connection handling is an explicit state machine::

    DISCONNECTED -> CONNECTING -> CONNECTED
         ^              |             |
         +--------------+-------------+   (on connect failure / I/O error)

Nothing is retried inline: a failed call raises StorageUnavailableError and
the next call attempts a fresh connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ratelimit_api.adapters.storage.base import (
    CounterValue,
    RateLimitStorage,
    StoredValue,
    TimestampLogValue,
)
from ratelimit_api.core.errors import StorageUnavailableError, StorageValueTypeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ClientFactory = Callable[[str, float], Redis]

# DECR floored at zero; returns the resulting value.
DECREMENT_FLOOR_SCRIPT = """
    local raw = redis.call('GET', KEYS[1])
    if not raw then
        return 0
    end
    local current = tonumber(raw)
    if current == nil then
        return redis.error_reply('ERR value is not an integer or out of range')
    end
    if current <= 0 then
        redis.call('SET', KEYS[1], 0, 'KEEPTTL')
        return 0
    end
    return redis.call('DECR', KEYS[1])
"""

_CONNECTION_ERRORS = (
    RedisConnectionError,
    RedisTimeoutError,
    asyncio.TimeoutError,
    OSError,
)


class ConnectionState(str, Enum):
    """Lifecycle of the Redis connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def default_client_factory(url: str, timeout_seconds: float) -> Redis:
    """Build a lazily-connecting asyncio Redis client."""
    return Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=timeout_seconds,
        socket_connect_timeout=timeout_seconds,
    )


def encode_value(value: StoredValue) -> str:
    """Serialize a stored value to its Redis string form."""
    if isinstance(value, CounterValue):
        return str(value.value)
    return json.dumps(list(value.timestamps), separators=(",", ":"))


def decode_value(raw: str | bytes | None) -> StoredValue | None:
    """Parse the Redis string form back into a stored value.

    Raises:
        StorageValueTypeError: If the raw value is neither an integer nor a
            JSON array of integers.
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode()

    try:
        if raw.startswith("["):
            return TimestampLogValue(tuple(int(ts) for ts in json.loads(raw)))
        return CounterValue(int(raw))
    except (TypeError, ValueError) as exc:
        raise StorageValueTypeError(
            code="storage_value_unreadable",
            message="Stored value is not a counter or timestamp log",
            details={"backend": "redis"},
        ) from exc


class RedisStorage(RateLimitStorage):
    """Rate limit storage backed by a shared Redis server.

    Example:
        >>> storage = RedisStorage("redis://localhost:6379/0")
        >>> await storage.increment("fixed:client-1:foo:counter")
    """

    backend_name = "redis"

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 0.5,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        """Initialize the Redis storage. No connection is opened here.

        Args:
            url: Redis connection URL.
            timeout_seconds: Bound applied to connecting and to every operation.
            client_factory: Builds a client for (url, timeout_seconds).

        Raises:
            ValueError: If timeout_seconds is not positive.
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._url = url
        self._timeout = timeout_seconds
        self._client_factory = client_factory
        self._client: Redis | None = None
        self._state = ConnectionState.DISCONNECTED

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def get(self, key: str) -> StoredValue | None:
        raw = await self._execute("get", lambda client: client.get(key))
        return decode_value(raw)

    async def set(self, key: str, value: StoredValue, *, ttl_ms: int | None = None) -> None:
        payload = encode_value(value)
        await self._execute("set", lambda client: client.set(key, payload, px=ttl_ms or None))

    async def increment(self, key: str) -> int:
        return int(await self._execute("increment", lambda client: client.incr(key)))

    async def decrement(self, key: str) -> int:
        result = await self._execute(
            "decrement",
            lambda client: client.eval(DECREMENT_FLOOR_SCRIPT, 1, key),
        )
        return int(result)

    async def reset(self, key: str) -> None:
        await self._execute("reset", lambda client: client.delete(key))

    async def close(self) -> None:
        """Close the client and return to DISCONNECTED."""
        client, self._client = self._client, None
        self._state = ConnectionState.DISCONNECTED
        if client is not None:
            await self._close_client(client)

    async def _connect(self) -> Redis:
        if self._state is ConnectionState.CONNECTED and self._client is not None:
            return self._client

        self._state = ConnectionState.CONNECTING
        logger.info("storage.redis.connecting", extra={"redis_url": self._url})
        client = self._client_factory(self._url, self._timeout)
        try:
            await asyncio.wait_for(client.ping(), timeout=self._timeout)
        except (*_CONNECTION_ERRORS, RedisError) as exc:
            # A concurrent connect may already have succeeded; keep its client.
            if self._state is not ConnectionState.CONNECTED or self._client is None:
                self._state = ConnectionState.DISCONNECTED
            await self._close_client(client)
            logger.warning(
                "storage.redis.connect_failed",
                extra={"error_type": type(exc).__name__, "timeout_s": self._timeout},
            )
            raise StorageUnavailableError(
                code="storage_unavailable",
                message="Rate limit storage is unreachable",
                details={"backend": self.backend_name, "operation": "connect"},
            ) from exc

        if self._state is ConnectionState.CONNECTED and self._client is not None:
            # Another task finished connecting first; keep its client.
            await self._close_client(client)
            return self._client

        previous, self._client = self._client, client
        self._state = ConnectionState.CONNECTED
        if previous is not None:
            await self._close_client(previous)
        logger.info("storage.redis.connected")
        return client

    async def _execute(self, operation: str, call: Callable[[Redis], Awaitable[T]]) -> T:
        client = await self._connect()
        try:
            return await asyncio.wait_for(call(client), timeout=self._timeout)
        except ResponseError as exc:
            raise StorageValueTypeError(
                code="storage_value_type_mismatch",
                message=f"Redis rejected {operation} for the stored value type",
                details={"backend": self.backend_name, "operation": operation},
            ) from exc
        except _CONNECTION_ERRORS as exc:
            await self._mark_disconnected(client, operation, exc)
            raise StorageUnavailableError(
                code="storage_unavailable",
                message="Rate limit storage is unreachable",
                details={"backend": self.backend_name, "operation": operation},
            ) from exc
        except RedisError as exc:
            logger.error(
                "storage.redis.error",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise StorageUnavailableError(
                code="storage_error",
                message="Rate limit storage failed",
                details={"backend": self.backend_name, "operation": operation},
            ) from exc

    async def _mark_disconnected(self, client: Redis, operation: str, exc: BaseException) -> None:
        if self._client is client:
            self._client = None
            self._state = ConnectionState.DISCONNECTED
        logger.warning(
            "storage.redis.disconnected",
            extra={
                "operation": operation,
                "error_type": type(exc).__name__,
                "timeout_s": self._timeout,
            },
        )
        await self._close_client(client)

    async def _close_client(self, client: Any) -> None:
        try:
            await client.aclose()
        except (*_CONNECTION_ERRORS, RedisError) as exc:
            logger.debug(
                "storage.redis.close_failed",
                extra={"error_type": type(exc).__name__},
            )
