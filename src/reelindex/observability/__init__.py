"""Logging and metrics for reelindex processes."""

from reelindex.observability.logging import LogContext, configure_logging, get_logger
from reelindex.observability.metrics import get_metrics

__all__ = ["LogContext", "configure_logging", "get_logger", "get_metrics"]
