"""Tests for client rate limit configuration lookup."""

import json

import pytest

from ratelimit_api.adapters.rate_limit.base import Algorithm
from ratelimit_api.core.config import Settings
from ratelimit_api.core.errors import (
    ConfigurationMissingError,
    InvalidRateLimitConfigError,
    UnknownClientError,
)
from ratelimit_api.services.client_registry import ClientRegistry, DEFAULT_CLIENTS


@pytest.fixture
def registry() -> ClientRegistry:
    return ClientRegistry(DEFAULT_CLIENTS)


def test_default_clients(registry) -> None:
    assert len(registry) == 2

    foo = registry.resolve("client-1", "foo")
    assert (foo.max_requests, foo.window_ms) == (10, 60_000)

    bar = registry.resolve("client-2", "bar")
    assert (bar.max_requests, bar.window_ms) == (10, 60_000)


def test_unknown_client_is_distinct_from_missing_rule(registry) -> None:
    with pytest.raises(UnknownClientError) as unknown:
        registry.resolve("client-9", "foo")
    with pytest.raises(ConfigurationMissingError) as missing:
        registry.resolve("client-1", "baz")

    assert unknown.value.code == "unknown_client"
    assert missing.value.code == "no_rate_limit_config"
    assert missing.value.message == "No rate limit configured for route: baz"


def test_is_known(registry) -> None:
    assert registry.is_known("client-1") is True
    assert registry.is_known("client-9") is False


def test_from_file_accepts_camel_case(tmp_path) -> None:
    path = tmp_path / "clients.json"
    path.write_text(
        json.dumps(
            {
                "clients": [
                    {
                        "id": "acme",
                        "rateLimits": {
                            "foo": {"maxRequests": 3, "windowMs": 1000, "strategy": "sliding"},
                        },
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    config = ClientRegistry.from_file(path).resolve("acme", "foo")

    assert config.max_requests == 3
    assert config.window_ms == 1000
    assert config.algorithm is Algorithm.SLIDING_WINDOW


def test_from_file_accepts_snake_case(tmp_path) -> None:
    path = tmp_path / "clients.json"
    path.write_text(
        json.dumps(
            {"clients": [{"id": "acme", "rate_limits": {"bar": {"max_requests": 2, "window_ms": 500}}}]}
        ),
        encoding="utf-8",
    )

    config = ClientRegistry.from_file(path).resolve("acme", "bar")

    assert (config.max_requests, config.window_ms, config.algorithm) == (2, 500, None)


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        json.dumps({"clients": [{"id": "acme", "rateLimits": {"foo": {"maxRequests": 0, "windowMs": 1000}}}]}),
        json.dumps({"clients": [{"id": "", "rateLimits": {}}]}),
        json.dumps({"clients": [{"id": "acme", "rateLimits": {"foo": {"maxRequests": 1, "windowMs": 1, "strategy": "leaky"}}}]}),
    ],
)
def test_from_file_rejects_invalid_content(tmp_path, content) -> None:
    path = tmp_path / "clients.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(InvalidRateLimitConfigError) as exc_info:
        ClientRegistry.from_file(path)

    assert exc_info.value.code == "invalid_clients_file"


def test_from_file_missing_path(tmp_path) -> None:
    with pytest.raises(InvalidRateLimitConfigError):
        ClientRegistry.from_file(tmp_path / "absent.json")


def test_from_settings_uses_defaults_without_file() -> None:
    config = Settings()
    config.rate_limit.clients_file = None

    assert ClientRegistry.from_settings(config).is_known("client-1")


def test_from_settings_loads_file(tmp_path) -> None:
    path = tmp_path / "clients.json"
    path.write_text(json.dumps({"clients": [{"id": "solo", "rateLimits": {}}]}), encoding="utf-8")
    config = Settings()
    config.rate_limit.clients_file = path

    registry = ClientRegistry.from_settings(config)

    assert registry.is_known("solo")
    assert not registry.is_known("client-1")
