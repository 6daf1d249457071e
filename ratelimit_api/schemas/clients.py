"""Schemas for client rate limit configuration files."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ratelimit_api.adapters.rate_limit.base import Algorithm


class RateLimitRule(BaseModel):
    """Limit applied to one endpoint for one client."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    max_requests: int = Field(..., gt=0, alias="maxRequests")
    window_ms: int = Field(..., gt=0, alias="windowMs")
    strategy: Algorithm | None = Field(
        None,
        description="Algorithm for this endpoint; falls back to the route or global default",
    )


class ClientConfig(BaseModel):
    """A client and its per-endpoint limits, keyed by endpoint id."""

    id: str = Field(..., min_length=1)
    rate_limits: dict[str, RateLimitRule] = Field(default_factory=dict, alias="rateLimits")

    model_config = ConfigDict(populate_by_name=True)


class ClientsFile(BaseModel):
    """Top-level shape of the clients JSON file."""

    clients: list[ClientConfig]
