from __future__ import annotations

from fastapi import APIRouter, Depends

from ratelimit_api.adapters.rate_limit.base import Algorithm
from ratelimit_api.core.rate_limit import rate_limit

router = APIRouter(tags=["Resources"])


@router.get("/foo", dependencies=[Depends(rate_limit(Algorithm.FIXED_WINDOW))])
async def get_foo() -> dict:
    """Sample resource limited with the fixed window counter."""

    return {"success": True}


@router.get("/bar", dependencies=[Depends(rate_limit(Algorithm.SLIDING_WINDOW))])
async def get_bar() -> dict:
    """Sample resource limited with the sliding window log."""

    return {"success": True}
