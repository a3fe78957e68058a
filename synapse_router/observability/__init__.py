"""
Synapse Router - Observability Module

- Prometheus metrics (Counter, Histogram, Gauge)
- Structured JSON logging with request context injection

Usage:
    from synapse_router.observability import get_logger, get_metrics

    logger = get_logger(__name__)
    metrics = get_metrics()
"""

from .logging import (
    LogContext,
    StructuredLogger,
    TimedOperation,
    get_logger,
    setup_logging,
)
from .metrics import (
    MetricsCollector,
    get_metrics,
    metrics_endpoint,
    set_metrics,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "set_metrics",
    "metrics_endpoint",
    # Logging
    "LogContext",
    "StructuredLogger",
    "TimedOperation",
    "get_logger",
    "setup_logging",
]
