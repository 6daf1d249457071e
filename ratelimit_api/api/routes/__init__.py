from __future__ import annotations

from ratelimit_api.api.routes.health import router as health_router
from ratelimit_api.api.routes.resources import router as resources_router

__all__ = ["health_router", "resources_router"]
