"""Admission gate: the entry point of the rate limiting core.

The gate holds no state. It picks a strategy and runs one ``consume`` call,
which yields the verdict, remaining quota and reset delay together, then wraps
them in a ``Decision``. Storage errors propagate unchanged; deciding whether to fail
open or closed belongs to the caller.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ratelimit_api.adapters.rate_limit.base import (
    Algorithm,
    Clock,
    Decision,
    RateLimitConfig,
    RateLimitStrategy,
    current_time_ms,
)
from ratelimit_api.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from ratelimit_api.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from ratelimit_api.adapters.storage.base import RateLimitStorage
from ratelimit_api.core.errors import ValidationAppError
from ratelimit_api.services.client_registry import RateLimitConfigResolver

logger = logging.getLogger(__name__)


class AdmissionGate:
    """Stateless façade over the configured rate limiting strategies."""

    def __init__(
        self,
        strategies: Iterable[RateLimitStrategy],
        *,
        default_algorithm: Algorithm = Algorithm.FIXED_WINDOW,
        resolver: RateLimitConfigResolver | None = None,
    ) -> None:
        self._strategies = {strategy.algorithm: strategy for strategy in strategies}
        if not self._strategies:
            raise ValueError("at least one strategy is required")
        if default_algorithm not in self._strategies:
            raise ValueError(f"default algorithm {default_algorithm.value!r} has no strategy")

        self._default_algorithm = default_algorithm
        self._resolver = resolver

    @property
    def algorithms(self) -> tuple[Algorithm, ...]:
        return tuple(self._strategies)

    def strategy_for(self, algorithm: Algorithm | str | None) -> RateLimitStrategy:
        """Return the strategy registered for algorithm (default when None).

        Raises:
            ValidationAppError: If the algorithm is unknown or not registered.
        """
        if algorithm is None:
            return self._strategies[self._default_algorithm]

        try:
            return self._strategies[Algorithm(algorithm)]
        except (KeyError, ValueError) as exc:
            raise ValidationAppError(
                code="unknown_rate_limit_strategy",
                message=f"Unknown rate limit strategy: '{algorithm}'",
                details={"hint": "Supported: " + ", ".join(a.value for a in self._strategies)},
            ) from exc

    async def check(
        self,
        client_id: str,
        endpoint_id: str,
        config: RateLimitConfig,
        *,
        algorithm: Algorithm | str | None = None,
    ) -> Decision:
        """Run one admission check against an already resolved limit.

        Strategy precedence: ``algorithm`` argument, then ``config.algorithm``,
        then the gate default.

        Raises:
            ValidationAppError: If the requested strategy is unknown.
            StorageUnavailableError: If storage cannot be reached.
        """
        strategy = self.strategy_for(algorithm or config.algorithm)
        admission = await strategy.consume(
            client_id, endpoint_id, config.max_requests, config.window_ms
        )

        decision = Decision(
            limited=admission.limited,
            remaining=admission.remaining,
            reset_ms=admission.reset_ms,
            limit=config.max_requests,
            window_ms=config.window_ms,
            algorithm=strategy.algorithm,
        )
        logger.debug(
            "rate_limit.decision",
            extra={
                "endpoint_id": endpoint_id,
                "algorithm": strategy.algorithm.value,
                "limited": admission.limited,
                "remaining": admission.remaining,
                "reset_ms": admission.reset_ms,
            },
        )
        return decision

    async def check_route(
        self,
        client_id: str,
        endpoint_id: str,
        *,
        algorithm: Algorithm | str | None = None,
    ) -> Decision:
        """Resolve the client's limit for endpoint and run an admission check.

        Raises:
            UnknownClientError: If the client is not configured.
            ConfigurationMissingError: If there is no rule for the endpoint.
            ValidationAppError: If the gate was built without a resolver.
        """
        if self._resolver is None:
            raise ValidationAppError(
                code="rate_limit_resolver_missing",
                message="Admission gate has no configuration resolver",
            )
        config = self._resolver.resolve(client_id, endpoint_id)
        return await self.check(client_id, endpoint_id, config, algorithm=algorithm)


def build_admission_gate(
    storage: RateLimitStorage,
    *,
    default_algorithm: Algorithm = Algorithm.FIXED_WINDOW,
    resolver: RateLimitConfigResolver | None = None,
    clock: Clock = current_time_ms,
) -> AdmissionGate:
    """Wire both strategies over one storage instance."""
    return AdmissionGate(
        [
            FixedWindowRateLimiter(storage, clock=clock),
            SlidingWindowRateLimiter(storage, clock=clock),
        ],
        default_algorithm=default_algorithm,
        resolver=resolver,
    )
