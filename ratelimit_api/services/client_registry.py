"""Client rate limit configuration lookup.

Resolves ``(client_id, endpoint_id)`` to a ``RateLimitConfig``. Rules come
from a JSON file (``RATE_LIMIT_CLIENTS_FILE``) or, when none is configured,
from the built-in defaults below.

File format::

    {"clients": [{"id": "client-1",
                  "rateLimits": {"foo": {"maxRequests": 10, "windowMs": 60000}}}]}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Protocol

from pydantic import ValidationError

from ratelimit_api.adapters.rate_limit.base import RateLimitConfig
from ratelimit_api.core.config import Settings
from ratelimit_api.core.errors import (
    ConfigurationMissingError,
    InvalidRateLimitConfigError,
    UnknownClientError,
)
from ratelimit_api.core.logging import hash_identifier
from ratelimit_api.schemas.clients import ClientConfig, ClientsFile, RateLimitRule

logger = logging.getLogger(__name__)


DEFAULT_CLIENTS: tuple[ClientConfig, ...] = (
    ClientConfig(
        id="client-1",
        rate_limits={
            "foo": RateLimitRule(max_requests=10, window_ms=60_000),
            "bar": RateLimitRule(max_requests=5, window_ms=60_000),
        },
    ),
    ClientConfig(
        id="client-2",
        rate_limits={
            "foo": RateLimitRule(max_requests=20, window_ms=60_000),
            "bar": RateLimitRule(max_requests=10, window_ms=60_000),
        },
    ),
)


class RateLimitConfigResolver(Protocol):
    """Anything that can map a client and endpoint to their limit."""

    def resolve(self, client_id: str, endpoint_id: str) -> RateLimitConfig: ...


class ClientRegistry:
    """Immutable in-memory index of client rate limit rules."""

    def __init__(self, clients: Iterable[ClientConfig]) -> None:
        self._clients: dict[str, ClientConfig] = {client.id: client for client in clients}

    def __len__(self) -> int:
        return len(self._clients)

    @classmethod
    def from_file(cls, path: Path | str) -> "ClientRegistry":
        """Load and validate client rules from a JSON file.

        Raises:
            InvalidRateLimitConfigError: If the file is missing, not JSON, or
                fails schema validation (e.g. non-positive limits).
        """
        file_path = Path(path)
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
            parsed = ClientsFile.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.error(
                "client_registry.load_failed",
                extra={"path": str(file_path), "error_type": type(exc).__name__},
            )
            raise InvalidRateLimitConfigError(
                code="invalid_clients_file",
                message=f"Could not load client rate limits from {file_path}",
                details={"hint": str(exc)[:500]},
            ) from exc

        logger.info(
            "client_registry.loaded",
            extra={"path": str(file_path), "clients": len(parsed.clients)},
        )
        return cls(parsed.clients)

    @classmethod
    def from_settings(cls, config: Settings) -> "ClientRegistry":
        if config.rate_limit.clients_file:
            return cls.from_file(config.rate_limit.clients_file)
        return cls(DEFAULT_CLIENTS)

    def is_known(self, client_id: str) -> bool:
        return client_id in self._clients

    def resolve(self, client_id: str, endpoint_id: str) -> RateLimitConfig:
        """Return the limit for a client on an endpoint.

        Raises:
            UnknownClientError: If the client id is not configured.
            ConfigurationMissingError: If the client has no rule for endpoint.
        """
        client = self._clients.get(client_id)
        if client is None:
            logger.warning(
                "client_registry.unknown_client",
                extra={"client_hash": hash_identifier(client_id)},
            )
            raise UnknownClientError(
                code="unknown_client",
                message="Client is not recognized",
            )

        rule = client.rate_limits.get(endpoint_id)
        if rule is None:
            logger.warning(
                "client_registry.missing_rule",
                extra={"client_hash": hash_identifier(client_id), "endpoint_id": endpoint_id},
            )
            raise ConfigurationMissingError(
                code="no_rate_limit_config",
                message=f"No rate limit configured for route: {endpoint_id}",
                details={"endpoint_id": endpoint_id},
            )

        return RateLimitConfig(
            max_requests=rule.max_requests,
            window_ms=rule.window_ms,
            algorithm=rule.strategy,
        )
