"""Liveness and readiness probes.

- /health/live  - process is up
- /health/ready - store, cache and search engine are reachable
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from reelindex.cache.redis import get_redis
from reelindex.persistence.db import health_check as db_health_check
from reelindex.search.index import get_search_index

router = APIRouter(prefix="/health", tags=["health"])

CHECK_TIMEOUT = 5.0


async def _redis_ok() -> bool:
    client = await get_redis()
    return bool(await client.ping())


async def _check(check: Any) -> bool:
    try:
        return bool(await asyncio.wait_for(check(), timeout=CHECK_TIMEOUT))
    except Exception:
        return False


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "alive"}


@router.get("/ready")
async def ready() -> ORJSONResponse:
    """Search engine outages degrade readiness but don't fail it.

    Queries still answer (with empty pages) while the engine is down.
    """
    components = {
        "database": await _check(db_health_check),
        "redis": await _check(_redis_ok),
        "search": await _check(get_search_index().health_check),
    }
    if not (components["database"] and components["redis"]):
        status, code = "unhealthy", 503
    elif not components["search"]:
        status, code = "degraded", 200
    else:
        status, code = "healthy", 200
    return ORJSONResponse({"status": status, "components": components}, status_code=code)
