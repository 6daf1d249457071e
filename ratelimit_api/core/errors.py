"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Rate limiting failures are classified so callers can tell configuration
problems (unknown client, missing rule, invalid limits) apart from storage
outages, which must never be mistaken for an admission decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    endpoint_id: str
    max_requests: int
    window_ms: int
    algorithm: str
    backend: str
    operation: str
    expected: str
    actual: str
    http_status: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidRateLimitConfigError(ValidationAppError):
    """Raised when max_requests or window_ms is not a positive integer."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class UnknownClientError(AuthenticationAppError):
    """Raised when a client id is not present in the rate limit configuration."""


class ConfigurationMissingError(AppError):
    """Raised when a known client has no rate limit rule for an endpoint."""


class StorageAppError(AppError):
    """Base class for rate limit storage failures."""


class StorageUnavailableError(StorageAppError):
    """Raised when the storage backend is unreachable or timed out."""


class StorageValueTypeError(StorageAppError):
    """Raised when a key holds a value of a different shape than requested."""
