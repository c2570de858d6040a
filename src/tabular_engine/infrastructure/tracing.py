"""OpenTelemetry tracing for query phases.

The QueryEngine opens one span per phase (``query.parse``, ``query.plan``,
``query.optimize``, ``query.run``) inside a ``query.execute`` span. Until
``setup_tracing`` is called the tracer is OpenTelemetry's no-op tracer.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)

_TRACER_NAME = "tabular_engine"

_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = "tabular_engine",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
    exporter: SpanExporter | None = None,
) -> trace.Tracer:
    """
    Set up OpenTelemetry tracing.

    Args:
        service_name: Service name reported on every span
        otlp_endpoint: OTLP gRPC collector endpoint (e.g. "http://localhost:4317")
        console_export: Also print finished spans (for debugging)
        exporter: Extra exporter, flushed synchronously (tests use an
            in-memory one)

    Returns:
        The engine's tracer
    """
    global _tracer

    from tabular_engine import __version__

    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": service_name, "service.version": __version__}
        )
    )
    if otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    if exporter is not None:
        provider.add_span_processor(SimpleSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    # Keep our own handle: the global provider can only be set once per process
    _tracer = provider.get_tracer(_TRACER_NAME)
    return _tracer


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(_TRACER_NAME)
    return _tracer


@contextmanager
def trace_span(
    name: str,
    attributes: Mapping[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """
    Open a span around a query phase.

    Attributes whose value is None are skipped. An exception raised inside
    the block is recorded on the span, marks it as failed and propagates.

    Args:
        name: Span name, e.g. ``query.plan``
        attributes: Span attributes

    Yields:
        The active span
    """
    with get_tracer().start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span
