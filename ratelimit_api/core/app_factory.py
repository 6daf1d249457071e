"""Application factory for the FastAPI app.

Builds storage, client registry and admission gate explicitly and stores
them on ``app.state``; routes and dependencies read them from there. The
storage backend is closed on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ratelimit_api.adapters.rate_limit.base import Algorithm, Clock, current_time_ms
from ratelimit_api.adapters.storage.base import RateLimitStorage
from ratelimit_api.adapters.storage.factory import create_storage
from ratelimit_api.api.routes import health_router, resources_router
from ratelimit_api.core.config import settings
from ratelimit_api.core.exception_handlers import setup_exception_handlers
from ratelimit_api.core.logging import configure_logging
from ratelimit_api.core.middleware import request_id_middleware
from ratelimit_api.core.openapi import apply_openapi_customizations
from ratelimit_api.services.admission_gate import build_admission_gate
from ratelimit_api.services.client_registry import ClientRegistry

logger = logging.getLogger(__name__)


def create_app(
    *,
    storage: RateLimitStorage | None = None,
    registry: ClientRegistry | None = None,
    clock: Clock = current_time_ms,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        storage: Storage backend; built from settings when omitted.
        registry: Client rules; built from settings when omitted.
        clock: Millisecond clock shared by both strategies.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    if storage is None:
        storage = create_storage(settings)
    if registry is None:
        registry = ClientRegistry.from_settings(settings)
    gate = build_admission_gate(
        storage,
        default_algorithm=Algorithm(settings.rate_limit.default_strategy),
        resolver=registry,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "app.startup",
            extra={
                "storage_backend": storage.backend_name,
                "default_strategy": settings.rate_limit.default_strategy,
                "clients": len(registry),
            },
        )
        yield
        await storage.close()
        logger.info("app.shutdown")

    app = FastAPI(
        title=settings.app.title,
        description=(
            "Per-client, per-endpoint rate limiting with fixed window and "
            "sliding window log strategies over in-memory or Redis storage."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.storage = storage
    app.state.client_registry = registry
    app.state.admission_gate = gate

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(resources_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
