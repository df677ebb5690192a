"""
unichat - Observability Module

- Prometheus metrics (Counter, Histogram, Gauge)
- OpenTelemetry session spans
- Structured JSON logging with bound session fields

Usage:
    from unichat.observability import get_logger, get_metrics, setup_tracing

    logger = get_logger(__name__)
    metrics = get_metrics()
"""

from .metrics import (
    MetricsCollector,
    SessionOutcome,
    get_metrics,
    setup_metrics,
    metrics_endpoint,
)
from .tracing import (
    TracingManager,
    get_tracer,
    setup_tracing,
    trace_stream_session,
)
from .logging import (
    JSONFormatter,
    StructuredLogger,
    get_logger,
    setup_logging,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "SessionOutcome",
    "get_metrics",
    "setup_metrics",
    "metrics_endpoint",
    # Tracing
    "TracingManager",
    "get_tracer",
    "setup_tracing",
    "trace_stream_session",
    # Logging
    "JSONFormatter",
    "StructuredLogger",
    "get_logger",
    "setup_logging",
]
