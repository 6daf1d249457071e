"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before anything imports the settings module so
tests never pick up a developer's .env file or a live Redis URL.
"""

import asyncio
import os
from unittest.mock import Mock

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("RATE_LIMIT_STORAGE", "memory")
os.environ.setdefault("RATE_LIMIT_DEFAULT_STRATEGY", "fixed")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402
from redis.exceptions import ResponseError  # noqa: E402

from ratelimit_api.adapters.storage.in_memory import InMemoryStorage  # noqa: E402


class FakeRedisServer:
    """Shared state behind FakeRedisClient connections.

    Set ``down`` to make every call fail like a refused connection, or
    ``latency`` to delay every call (for timeout and interleaving tests).
    ``ping_plan`` holds one ``(delay_seconds, fails)`` entry per future
    connection, consumed in order, to stage racing connects. Every command
    name is appended to ``calls``.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.down = False
        self.latency = 0.0
        self.clients: list["FakeRedisClient"] = []
        self.ping_plan: list[tuple[float, bool]] = []
        self.calls: list[str] = []

    def client(self, url: str, timeout_seconds: float) -> "FakeRedisClient":
        ping = self.ping_plan.pop(0) if self.ping_plan else (0.0, False)
        client = FakeRedisClient(self, ping)
        self.clients.append(client)
        return client


class FakeRedisClient:
    """Subset of redis.asyncio.Redis used by RedisStorage."""

    def __init__(self, server: FakeRedisServer, ping: tuple[float, bool] = (0.0, False)) -> None:
        self.server = server
        self.ping_delay, self.ping_fails = ping
        self.closed = False

    async def _io(self, command: str) -> None:
        self.server.calls.append(command)
        if self.server.latency:
            await asyncio.sleep(self.server.latency)
        if self.server.down:
            raise RedisConnectionError("Connection refused")

    @staticmethod
    def _as_int(raw: str) -> int:
        try:
            return int(raw)
        except ValueError as exc:
            raise ResponseError("value is not an integer or out of range") from exc

    async def ping(self) -> bool:
        if self.ping_delay:
            await asyncio.sleep(self.ping_delay)
        if self.ping_fails:
            raise RedisConnectionError("Connection reset by peer")
        await self._io("ping")
        return True

    async def get(self, key: str) -> str | None:
        await self._io("get")
        return self.server.data.get(key)

    async def set(self, key: str, value: str, px: int | None = None) -> bool:
        await self._io("set")
        self.server.data[key] = value
        self.server.ttls[key] = px
        return True

    async def incr(self, key: str) -> int:
        await self._io("incr")
        value = self._as_int(self.server.data.get(key, "0")) + 1
        self.server.data[key] = str(value)
        return value

    async def eval(self, script: str, numkeys: int, *keys_and_args: str) -> int:
        await self._io("eval")
        key = keys_and_args[0]
        raw = self.server.data.get(key)
        if raw is None:
            return 0
        value = max(0, self._as_int(raw) - 1)
        self.server.data[key] = str(value)
        return value

    async def delete(self, *keys: str) -> int:
        await self._io("delete")
        removed = 0
        for key in keys:
            if self.server.data.pop(key, None) is not None:
                removed += 1
            self.server.ttls.pop(key, None)
        return removed

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> Mock:
    """Millisecond clock shared by strategies; set ``return_value`` to move time."""
    return Mock(return_value=1_000_000)


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def redis_server() -> FakeRedisServer:
    return FakeRedisServer()
