"""
unichat - Prometheus Metrics

Metrics collection for streaming sessions with the Prometheus client library.

Metrics exposed:
- unichat_stream_sessions_total: Counter of finished sessions by provider and outcome
- unichat_stream_errors_total: Counter of errors by provider and error kind
- unichat_time_to_first_token_seconds: Histogram of time to first content/reasoning token
- unichat_stream_duration_seconds: Histogram of session duration
- unichat_active_streams: Gauge of currently open streams
- unichat_malformed_frames_total: Counter of dropped SSE frames

Usage:
    from unichat.observability.metrics import get_metrics, metrics_endpoint

    metrics = get_metrics()
    with metrics.track_active_stream("openai"):
        ...
    metrics.record_session(provider="openai", outcome="completed", duration_seconds=3.2)

    # Expose /metrics endpoint
    @app.get("/metrics")
    async def metrics():
        return metrics_endpoint()
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)
from fastapi import Response


class SessionOutcome:
    """Label values for the ``outcome`` label."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


class MetricsCollector:
    """
    Metrics collector using the Prometheus client.

    Each collector registers its metrics on its own registry; tests pass a
    fresh ``CollectorRegistry`` to avoid duplicate registration.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.info = Info(
            "unichat",
            "unichat client information",
            registry=registry,
        )
        self.info.info({
            "version": "1.0.0",
            "service": "unichat",
        })

        self.sessions_total = Counter(
            "unichat_stream_sessions_total",
            "Total number of finished streaming sessions",
            labelnames=["provider", "outcome"],
            registry=registry,
        )

        self.errors_total = Counter(
            "unichat_stream_errors_total",
            "Total streaming errors by kind",
            labelnames=["provider", "kind"],
            registry=registry,
        )

        self.time_to_first_token = Histogram(
            "unichat_time_to_first_token_seconds",
            "Time to first token in streaming responses",
            labelnames=["provider", "model"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, float("inf")),
            registry=registry,
        )

        # Reasoning models can stream for minutes
        self.stream_duration = Histogram(
            "unichat_stream_duration_seconds",
            "Streaming session duration in seconds",
            labelnames=["provider", "outcome"],
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, 300.0, float("inf")),
            registry=registry,
        )

        self.active_streams = Gauge(
            "unichat_active_streams",
            "Number of currently open streams",
            labelnames=["provider"],
            registry=registry,
        )

        self.malformed_frames = Counter(
            "unichat_malformed_frames_total",
            "SSE frames dropped because they were not valid JSON objects",
            labelnames=["provider"],
            registry=registry,
        )

    def record_session(self, provider: str, outcome: str, duration_seconds: float):
        """Record a finished session."""
        self.sessions_total.labels(provider=provider, outcome=outcome).inc()
        self.stream_duration.labels(provider=provider, outcome=outcome).observe(duration_seconds)

    def record_error(self, provider: str, kind: str):
        """Record an error, fatal or not."""
        self.errors_total.labels(provider=provider, kind=kind).inc()

    def record_time_to_first_token(self, provider: str, model: str, ttft_seconds: float):
        """Record time to first token."""
        self.time_to_first_token.labels(provider=provider, model=model).observe(ttft_seconds)

    def record_malformed_frame(self, provider: str):
        self.malformed_frames.labels(provider=provider).inc()

    def track_active_stream(self, provider: str) -> "ActiveStreamTracker":
        """Context manager to track open streams."""
        return ActiveStreamTracker(self, provider)


class ActiveStreamTracker:
    """Context manager for tracking open streams."""

    def __init__(self, collector: MetricsCollector, provider: str):
        self.collector = collector
        self.provider = provider

    def __enter__(self):
        self.collector.active_streams.labels(provider=self.provider).inc()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.collector.active_streams.labels(provider=self.provider).dec()


# Module-level functions for convenience
_metrics_instance: Optional[MetricsCollector] = None


def setup_metrics(registry: CollectorRegistry = REGISTRY) -> MetricsCollector:
    """
    Setup metrics collection.

    Safe to call multiple times with the same registry - returns the existing instance.
    """
    global _metrics_instance

    if _metrics_instance is not None and _metrics_instance.registry is registry:
        return _metrics_instance

    _metrics_instance = MetricsCollector(registry)
    return _metrics_instance


def get_metrics() -> MetricsCollector:
    """Get the metrics collector, creating it on the default registry if needed."""
    if _metrics_instance is None:
        return setup_metrics()
    return _metrics_instance


def metrics_endpoint(registry: Optional[CollectorRegistry] = None) -> Response:
    """
    Generate Prometheus metrics endpoint response.

    Usage:
        @app.get("/metrics")
        async def metrics():
            return metrics_endpoint()
    """
    if registry is None:
        registry = get_metrics().registry
    content = generate_latest(registry)
    return Response(
        content=content,
        media_type=CONTENT_TYPE_LATEST,
    )
