"""Rate limiting dependency for FastAPI routes.

This module wires the admission gate into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency factory only.
- Explicit wiring: the gate lives on ``app.state``; nothing here caches it.
- Observable outages: storage failures are never turned into "allowed"
  silently. RATE_LIMIT_FAIL_OPEN=true admits with an error log; otherwise the
  failure propagates and the exception handler answers 503.

Headers (when RATE_LIMIT_INCLUDE_HEADERS is enabled):
- X-RateLimit-Limit, X-RateLimit-Window-Ms, X-RateLimit-Strategy,
  X-RateLimit-Remaining on every checked response.
- Retry-After (seconds, rounded up) on 429 responses.
"""

from __future__ import annotations

import logging
from typing import Annotated, Awaitable, Callable

from fastapi import Depends, HTTPException, Request, Response, status

from ratelimit_api.adapters.rate_limit.base import Algorithm, Decision
from ratelimit_api.core.auth import verify_client
from ratelimit_api.core.config import settings
from ratelimit_api.core.errors import StorageUnavailableError
from ratelimit_api.core.logging import hash_identifier
from ratelimit_api.services.admission_gate import AdmissionGate

logger = logging.getLogger(__name__)


def build_rate_limit_headers(decision: Decision, *, include_retry_after: bool) -> dict[str, str]:
    """Build informational rate limit headers for a decision."""
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Window-Ms": str(decision.window_ms),
        "X-RateLimit-Strategy": decision.algorithm.value,
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if include_retry_after:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


def resolve_endpoint_id(request: Request) -> str:
    """Derive the endpoint id from the first path segment (``/foo/x`` -> ``foo``)."""
    return request.url.path.strip("/").split("/", 1)[0]


def rate_limit(
    strategy: Algorithm | str | None = None,
    *,
    endpoint: str | None = None,
) -> Callable[..., Awaitable[Decision | None]]:
    """Create a FastAPI dependency enforcing per-client, per-endpoint limits.

    Args:
        strategy: Algorithm for this route; None defers to the client rule and
            then to RATE_LIMIT_DEFAULT_STRATEGY.
        endpoint: Endpoint id used to look up the rule; defaults to the first
            path segment of the request.

    Returns:
        Dependency returning the Decision (None when limiting is disabled or
        failed open).

    Example:
        >>> @router.get("/foo", dependencies=[Depends(rate_limit("fixed"))])
        ... async def foo(): ...
    """

    async def enforce_rate_limit(
        request: Request,
        response: Response,
        client_id: Annotated[str, Depends(verify_client)],
    ) -> Decision | None:
        """Consume one request from the caller's budget or raise HTTP 429.

        Raises:
            HTTPException: 429 Too Many Requests when the limit is exceeded.
            StorageUnavailableError: When storage is down and fail-open is off.
        """
        if not settings.rate_limit.enabled:
            return None

        gate: AdmissionGate = request.app.state.admission_gate
        endpoint_id = endpoint or resolve_endpoint_id(request)
        client_hash = hash_identifier(client_id)

        try:
            decision = await gate.check_route(client_id, endpoint_id, algorithm=strategy)
        except StorageUnavailableError as exc:
            if not settings.rate_limit.fail_open:
                logger.error(
                    "rate_limit.storage_unavailable",
                    extra={"client_hash": client_hash, "endpoint_id": endpoint_id, "policy": "fail_closed"},
                )
                raise
            logger.error(
                "rate_limit.storage_unavailable",
                extra={
                    "client_hash": client_hash,
                    "endpoint_id": endpoint_id,
                    "policy": "fail_open",
                    "error_code": exc.code,
                },
            )
            return None

        log_fields = {
            "client_hash": client_hash,
            "endpoint_id": endpoint_id,
            "strategy": decision.algorithm.value,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "window_ms": decision.window_ms,
        }

        if not decision.limited:
            logger.info("rate_limit.allowed", extra=log_fields)
            if settings.rate_limit.include_headers:
                response.headers.update(build_rate_limit_headers(decision, include_retry_after=False))
            return decision

        logger.warning(
            "rate_limit.exceeded",
            extra={**log_fields, "retry_after_s": decision.retry_after_seconds},
        )

        headers: dict[str, str] = {}
        if settings.rate_limit.include_headers:
            headers = build_rate_limit_headers(decision, include_retry_after=True)

        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers=headers or None,
        )

    return enforce_rate_limit
