"""FastAPI application factory for reelindex.

Creates the application with:
- Discovery, content and admin routers
- Prometheus metrics at /metrics
- Uniform error envelopes for API and domain errors
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette.types import ExceptionHandler

from reelindex import __version__
from reelindex.api.errors import (
    ApiError,
    api_exception_handler,
    domain_exception_handler,
    generic_exception_handler,
)
from reelindex.api.routers import admin, content, discovery, health
from reelindex.api.routers import metrics as metrics_router
from reelindex.cache.redis import get_redis
from reelindex.config import settings
from reelindex.errors import ReelIndexError
from reelindex.events.runtime import get_event_bus
from reelindex.observability import configure_logging
from reelindex.observability.metrics import MetricsMiddleware, get_metrics
from reelindex.persistence.db import init_db
from reelindex.runtime import shutdown

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open shared connections on startup and release them on shutdown.

    The API only publishes change events; consuming them is the listener
    process's job, so the bus is created here but never started.
    """
    configure_logging(json_format=settings.log_json or settings.env != "dev", level=settings.log_level)
    get_metrics()

    logger.info(f"Starting reelindex API ({settings.env})")
    await init_db()
    await get_redis()
    get_event_bus()
    logger.info("reelindex API startup complete")

    yield

    logger.info("Shutting down reelindex API")
    await shutdown()


def create_app() -> FastAPI:
    app = FastAPI(
        title="reelindex",
        description="Content discovery and search indexing service",
        version=__version__,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    if settings.enable_metrics:
        app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(ApiError, cast(ExceptionHandler, api_exception_handler))
    app.add_exception_handler(ReelIndexError, cast(ExceptionHandler, domain_exception_handler))
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)
    if settings.enable_metrics:
        app.include_router(metrics_router.router)
    app.include_router(discovery.router)
    app.include_router(content.router)
    app.include_router(admin.router)

    return app
