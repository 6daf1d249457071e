"""OpenAPI customization.

Adds the bearer security scheme used to identify clients, tag metadata, and
exempts the health endpoint from authentication in the generated schema.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Resources",
        "description": "Rate limited endpoints. Responses carry X-RateLimit-* headers.",
    },
    {
        "name": "Health",
        "description": "Liveness checks (not authenticated, not rate limited).",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add bearer auth and tags."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ClientBearer",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Client id sent as 'Authorization: Bearer <client id>'.",
            },
        )
        schema.setdefault("security", [{"ClientBearer": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if path.endswith("/health"):
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
