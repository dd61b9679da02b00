"""
OpenTelemetry distributed tracing for the CMState injector.

This module provides:
- Tracer provider setup with an OTLP exporter
- A span per admission request, parented on the trace context the API
  server propagates (W3C traceparent header) when its tracing is enabled

Usage:
    from cmstate_injector.observability.tracing import setup_tracing, admission_span

    setup_tracing(enabled=True, endpoint="http://otel-collector:4317")

    with admission_span(headers, operation="CREATE") as span:
        ...
"""

import contextlib
import logging
from collections.abc import Iterator, Mapping

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

ADMISSION_SPAN_NAME = "admission.mutate_pod"

# Module-level state
_tracer_provider: TracerProvider | None = None
_initialized: bool = False


def setup_tracing(
    enabled: bool = False,
    endpoint: str = "http://localhost:4317",
    service_name: str = "cmstate-injector",
    sample_rate: float = 1.0,
    insecure: bool = True,
) -> TracerProvider | None:
    """
    Initialize OpenTelemetry tracing for the webhook.

    Args:
        enabled: Enable tracing (if False, returns None and does nothing)
        endpoint: OTLP collector endpoint (gRPC)
        service_name: Service name for traces
        sample_rate: Sampling rate for root spans (0.0-1.0)
        insecure: Use insecure connection (no TLS)

    Returns:
        TracerProvider if enabled, None otherwise
    """
    global _tracer_provider, _initialized

    if _initialized:
        logger.debug("Tracing already initialized, skipping")
        return _tracer_provider

    if not enabled:
        logger.info("OpenTelemetry tracing is disabled")
        _initialized = True
        return None

    logger.info(
        f"Initializing OpenTelemetry tracing: endpoint={endpoint}, "
        f"service={service_name}, sample_rate={sample_rate}"
    )

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "cmstate-injector",
            "deployment.environment": "kubernetes",
        }
    )

    # ParentBased keeps the API server's sampling decision for propagated traces
    sampler = ParentBased(root=TraceIdRatioBased(sample_rate))
    _tracer_provider = TracerProvider(resource=resource, sampler=sampler)
    _tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=insecure))
    )
    trace.set_tracer_provider(_tracer_provider)

    _initialized = True
    logger.info("OpenTelemetry tracing initialized successfully")
    return _tracer_provider


def shutdown_tracing() -> None:
    """Shutdown tracing and flush any pending spans."""
    global _tracer_provider, _initialized

    if _tracer_provider is not None:
        logger.info("Shutting down OpenTelemetry tracing")
        _tracer_provider.shutdown()
        _tracer_provider = None

    _initialized = False


def get_tracer(name: str = __name__) -> Tracer:
    """Get a tracer instance (no-op if tracing is disabled)."""
    return trace.get_tracer(name)


def extract_trace_context(headers: Mapping[str, str]) -> Context:
    """
    Extract the W3C trace context from incoming request headers.

    Header names are matched case-insensitively (the API server sends
    ``Traceparent``).
    """
    carrier = {key.lower(): value for key, value in headers.items()}
    return TraceContextTextMapPropagator().extract(carrier)


def is_tracing_enabled() -> bool:
    return _initialized and _tracer_provider is not None


@contextlib.contextmanager
def admission_span(headers: Mapping[str, str], **attributes: str) -> Iterator[Span]:
    """
    Open the server span covering one admission request.

    Args:
        headers: Incoming HTTP headers, searched for a traceparent
        **attributes: Span attributes; ``admission.`` is prefixed to each key

    Yields:
        The active span
    """
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span(
        ADMISSION_SPAN_NAME,
        context=extract_trace_context(headers),
        kind=SpanKind.SERVER,
        attributes={f"admission.{key}": value for key, value in attributes.items()},
    ) as span:
        yield span


def record_verdict(span: Span, verdict: str, message: str = "") -> None:
    """Annotate the admission span with the decision taken."""
    span.set_attribute("admission.verdict", verdict)
    if verdict == "errored":
        span.set_status(Status(StatusCode.ERROR, message))
    else:
        span.set_status(Status(StatusCode.OK))
