"""
unichat - OpenTelemetry Tracing

Every streaming session runs inside a CLIENT span carrying the provider,
model and outcome. Without setup_tracing() the global no-op tracer is used,
so library users pay nothing unless they opt in.

Usage:
    from unichat.observability.tracing import setup_tracing

    setup_tracing(
        service_name="unichat",
        otlp_endpoint="http://localhost:4317",  # Optional
    )
"""

import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.trace import SpanKind, Status, StatusCode

# Optional OTLP exporter (requires opentelemetry-exporter-otlp)
try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    OTLP_AVAILABLE = True
except ImportError:
    OTLP_AVAILABLE = False


TRACER_NAME = "unichat"


class TracingManager:
    """Owns the SDK tracer provider installed by setup_tracing()."""

    def __init__(
        self,
        service_name: str = "unichat",
        service_version: str = "1.0.0",
        otlp_endpoint: Optional[str] = None,
        console_export: bool = False,
        exporter: Optional[SpanExporter] = None,
    ):
        """
        Initialize tracing.

        Args:
            service_name: Name of the service
            service_version: Version of the service
            otlp_endpoint: OTLP collector endpoint (e.g., http://localhost:4317)
            console_export: Whether to export spans to console (for debugging)
            exporter: Extra exporter, exported synchronously (used by tests)
        """
        self.service_name = service_name
        self.service_version = service_version

        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
        })

        self.provider = TracerProvider(resource=resource)

        if otlp_endpoint and OTLP_AVAILABLE:
            otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
            self.provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

        if console_export:
            self.provider.add_span_processor(
                SimpleSpanProcessor(ConsoleSpanExporter())
            )

        if exporter is not None:
            self.provider.add_span_processor(SimpleSpanProcessor(exporter))

        trace.set_tracer_provider(self.provider)
        self.tracer = self.provider.get_tracer(TRACER_NAME, service_version)

    def get_tracer(self) -> trace.Tracer:
        return self.tracer

    def shutdown(self):
        """Shutdown the tracer provider."""
        self.provider.shutdown()


_tracing_instance: Optional[TracingManager] = None


def setup_tracing(
    service_name: str = "unichat",
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
    exporter: Optional[SpanExporter] = None,
) -> TracingManager:
    """
    Setup tracing. Call once at application startup.

    Reads OTEL_EXPORTER_OTLP_ENDPOINT and OTEL_CONSOLE_EXPORT when the
    matching arguments are not given.
    """
    global _tracing_instance

    if otlp_endpoint is None:
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    _tracing_instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        otlp_endpoint=otlp_endpoint,
        console_export=console_export,
        exporter=exporter,
    )
    return _tracing_instance


def get_tracer() -> trace.Tracer:
    """Tracer from setup_tracing(), else the global (possibly no-op) tracer."""
    if _tracing_instance is not None:
        return _tracing_instance.get_tracer()
    return trace.get_tracer(TRACER_NAME)


def record_exception(span: trace.Span, exception: Exception):
    """Record an exception on a span and mark it failed."""
    span.record_exception(exception)
    span.set_status(Status(StatusCode.ERROR, str(exception)))


@contextmanager
def trace_stream_session(
    provider: str,
    model: str,
    attributes: Optional[Dict[str, Any]] = None,
) -> Iterator[trace.Span]:
    """
    Context manager for tracing one streaming session.

    The span is not made current: sessions are async generators and may be
    resumed from different contexts.

    Usage:
        with trace_stream_session("openai", "gpt-4o") as span:
            ...
            span.set_attribute("ai.outcome", "completed")
    """
    span_attributes = {
        "ai.provider": provider,
        "ai.model": model,
        "ai.operation": "chat.stream",
    }
    if attributes:
        span_attributes.update({k: v for k, v in attributes.items() if v is not None})

    span = get_tracer().start_span(
        f"{provider}.chat.stream",
        kind=SpanKind.CLIENT,
        attributes=span_attributes,
    )
    try:
        yield span
    finally:
        span.end()
