"""Unit tests for the in-memory storage backend."""

import asyncio
from unittest.mock import Mock

import pytest

from ratelimit_api.adapters.storage.base import CounterValue, TimestampLogValue
from ratelimit_api.adapters.storage.in_memory import InMemoryStorage
from ratelimit_api.core.errors import StorageValueTypeError


@pytest.mark.asyncio
async def test_get_absent_key_returns_none(memory_storage: InMemoryStorage) -> None:
    assert await memory_storage.get("missing") is None


@pytest.mark.asyncio
async def test_set_overwrites_both_shapes(memory_storage: InMemoryStorage) -> None:
    await memory_storage.set("k", CounterValue(3))
    assert await memory_storage.get("k") == CounterValue(3)

    await memory_storage.set("k", TimestampLogValue((1, 2, 3)))
    assert await memory_storage.get("k") == TimestampLogValue((1, 2, 3))


@pytest.mark.asyncio
async def test_increment_creates_at_one(memory_storage: InMemoryStorage) -> None:
    assert await memory_storage.increment("k") == 1
    assert await memory_storage.increment("k") == 2
    assert await memory_storage.get("k") == CounterValue(2)


@pytest.mark.asyncio
async def test_decrement_floors_at_zero(memory_storage: InMemoryStorage) -> None:
    await memory_storage.set("k", CounterValue(1))

    assert await memory_storage.decrement("k") == 0
    assert await memory_storage.decrement("k") == 0
    assert await memory_storage.get("k") == CounterValue(0)


@pytest.mark.asyncio
async def test_decrement_absent_key_stays_absent(memory_storage: InMemoryStorage) -> None:
    assert await memory_storage.decrement("k") == 0
    assert await memory_storage.get("k") is None


@pytest.mark.asyncio
async def test_reset_deletes_key(memory_storage: InMemoryStorage) -> None:
    await memory_storage.increment("k")
    await memory_storage.reset("k")

    assert await memory_storage.get("k") is None
    assert memory_storage.size == 0


@pytest.mark.asyncio
async def test_counter_operations_reject_timestamp_log(memory_storage: InMemoryStorage) -> None:
    await memory_storage.set("k", TimestampLogValue((1,)))

    with pytest.raises(StorageValueTypeError) as exc_info:
        await memory_storage.increment("k")
    assert exc_info.value.details["actual"] == "timestamp_log"

    with pytest.raises(StorageValueTypeError):
        await memory_storage.decrement("k")


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(memory_storage: InMemoryStorage) -> None:
    await asyncio.gather(*(memory_storage.increment("k") for _ in range(200)))

    assert await memory_storage.get("k") == CounterValue(200)


@pytest.mark.asyncio
async def test_ttl_expires_key() -> None:
    clock = Mock(return_value=100.0)
    storage = InMemoryStorage(clock=clock)

    await storage.set("k", CounterValue(1), ttl_ms=1500)
    clock.return_value = 101.0
    assert await storage.get("k") == CounterValue(1)

    clock.return_value = 101.5
    assert await storage.get("k") is None


@pytest.mark.asyncio
async def test_increment_keeps_existing_ttl() -> None:
    clock = Mock(return_value=0.0)
    storage = InMemoryStorage(clock=clock)

    await storage.set("k", CounterValue(0), ttl_ms=1000)
    await storage.increment("k")

    clock.return_value = 2.0
    assert await storage.get("k") is None


@pytest.mark.asyncio
async def test_max_entries_evicts_least_recently_used() -> None:
    storage = InMemoryStorage(max_entries=2)

    await storage.set("a", CounterValue(1))
    await storage.set("b", CounterValue(1))
    await storage.get("a")
    await storage.set("c", CounterValue(1))

    assert await storage.get("b") is None
    assert await storage.get("a") == CounterValue(1)
    assert storage.stats()["evictions"] == 1


@pytest.mark.asyncio
async def test_clear_removes_everything(memory_storage: InMemoryStorage) -> None:
    await memory_storage.increment("a")
    await memory_storage.increment("b")

    await memory_storage.clear()

    assert memory_storage.size == 0


def test_invalid_max_entries() -> None:
    with pytest.raises(ValueError):
        InMemoryStorage(max_entries=0)
