from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe.

    Not authenticated and not rate limited, and never touches storage, so a
    Redis outage does not take the probe down with it.
    """

    return {"status": "ok"}
