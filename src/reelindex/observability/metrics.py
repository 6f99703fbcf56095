"""Prometheus metrics for the indexing pipeline.

Provides metrics collection and exposure:
- HTTP request metrics (latency, count)
- Change events published and consumed
- Job outcomes by task
- Cache hits and misses, search failures

Usage:
    from reelindex.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.jobs_processed_total.labels(task="index_entity", outcome="completed").inc()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from reelindex.config import settings

if TYPE_CHECKING:
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


class NoOpMetric:
    """Stand-in metric used while metrics are disabled."""

    def labels(self, **kwargs: Any) -> "NoOpMetric":
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def observe(self, value: float) -> None:
        pass


_NOOP = NoOpMetric()


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    http_requests_total: Any = _NOOP
    http_request_duration_seconds: Any = _NOOP

    events_published_total: Any = _NOOP
    events_consumed_total: Any = _NOOP

    jobs_processed_total: Any = _NOOP
    job_duration_seconds: Any = _NOOP

    cache_hits_total: Any = _NOOP
    cache_misses_total: Any = _NOOP

    search_failures_total: Any = _NOOP

    _initialized: bool = field(default=False, repr=False)
    _registry: CollectorRegistry | None = field(default=None, repr=False)

    def initialize(self) -> None:
        """Create the Prometheus collectors."""
        if self._initialized:
            return

        self._initialized = True
        if not settings.enable_metrics:
            logger.info("Metrics are disabled")
            return

        registry = CollectorRegistry()
        self._registry = registry

        self.http_requests_total = Counter(
            "reelindex_http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
            registry=registry,
        )
        self.http_request_duration_seconds = Histogram(
            "reelindex_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "path"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=registry,
        )
        self.events_published_total = Counter(
            "reelindex_events_published_total",
            "Change events handed to the broker",
            ["change_kind", "outcome"],
            registry=registry,
        )
        self.events_consumed_total = Counter(
            "reelindex_events_consumed_total",
            "Change events processed by the listener",
            ["change_kind", "outcome"],
            registry=registry,
        )
        self.jobs_processed_total = Counter(
            "reelindex_jobs_processed_total",
            "Index jobs processed by workers",
            ["task", "outcome"],
            registry=registry,
        )
        self.job_duration_seconds = Histogram(
            "reelindex_job_duration_seconds",
            "Index job handler latency in seconds",
            ["task"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 120.0),
            registry=registry,
        )
        self.cache_hits_total = Counter(
            "reelindex_cache_hits_total",
            "Cache hits",
            ["namespace"],
            registry=registry,
        )
        self.cache_misses_total = Counter(
            "reelindex_cache_misses_total",
            "Cache misses",
            ["namespace"],
            registry=registry,
        )
        self.search_failures_total = Counter(
            "reelindex_search_failures_total",
            "Search queries answered with a degraded empty page",
            registry=registry,
        )
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry, initializing it on first access."""
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record request count and latency per route template."""

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        self.metrics = get_metrics()

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)
            duration = time.perf_counter() - start_time
            self.metrics.http_requests_total.labels(
                method=method, path=path, status=status_code
            ).inc()
            self.metrics.http_request_duration_seconds.labels(method=method, path=path).observe(
                duration
            )


def record_cache_hit(namespace: str) -> None:
    get_metrics().cache_hits_total.labels(namespace=namespace).inc()


def record_cache_miss(namespace: str) -> None:
    get_metrics().cache_misses_total.labels(namespace=namespace).inc()


def record_event_published(change_kind: str, outcome: str = "ok") -> None:
    get_metrics().events_published_total.labels(change_kind=change_kind, outcome=outcome).inc()


def record_event_consumed(change_kind: str, outcome: str) -> None:
    get_metrics().events_consumed_total.labels(change_kind=change_kind, outcome=outcome).inc()


def record_job(task: str, outcome: str, duration: float) -> None:
    """Record a job outcome and its handler latency.

    Args:
        task: Job task name
        outcome: completed, retried or dead
        duration: Handler wall time in seconds
    """
    metrics = get_metrics()
    metrics.jobs_processed_total.labels(task=task, outcome=outcome).inc()
    metrics.job_duration_seconds.labels(task=task).observe(duration)


def record_search_failure() -> None:
    get_metrics().search_failures_total.inc()
