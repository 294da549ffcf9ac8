"""
Inference Gateway - OpenTelemetry Distributed Tracing

Features:
- W3C trace context propagation (traceparent header)
- Server spans for inbound requests
- Explicitly owned execution spans for the engine
- OTLP exporter support when opentelemetry-exporter-otlp is installed

Usage:
    from gateway.observability.tracing import setup_tracing, get_tracing_manager

    setup_tracing(service_name="inference-gateway")

    span = get_tracing_manager().start_span("chat_completion")
    ...
    span.end()
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagate import extract, set_global_textmap
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.trace import Span, SpanKind
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from .. import __version__

# Optional OTLP exporter (requires opentelemetry-exporter-otlp)
try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    OTLP_AVAILABLE = True
except ImportError:
    OTLP_AVAILABLE = False


@dataclass
class TraceContext:
    """Trace identifiers of a span, hex encoded."""
    trace_id: str
    span_id: str
    trace_flags: int = 1

    @classmethod
    def from_span(cls, span: Span) -> "TraceContext":
        ctx = span.get_span_context()
        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            trace_flags=ctx.trace_flags,
        )

    def to_traceparent(self) -> str:
        """Generate W3C traceparent header value."""
        return f"00-{self.trace_id}-{self.span_id}-{self.trace_flags:02x}"


class TracingManager:
    """
    Central tracing manager using OpenTelemetry.

    Singleton pattern for global access.
    """

    _instance: Optional["TracingManager"] = None

    def __init__(
        self,
        service_name: str = "inference-gateway",
        service_version: str = __version__,
        otlp_endpoint: Optional[str] = None,
        console_export: bool = False,
        provider: Optional[TracerProvider] = None,
    ):
        self.service_name = service_name
        self.service_version = service_version

        if provider is None:
            resource = Resource.create({
                SERVICE_NAME: service_name,
                SERVICE_VERSION: service_version,
            })
            provider = TracerProvider(resource=resource)

            if otlp_endpoint and OTLP_AVAILABLE:
                provider.add_span_processor(
                    BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
                )

            if console_export:
                provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

            trace.set_tracer_provider(provider)
            set_global_textmap(TraceContextTextMapPropagator())

        self.provider = provider
        self.tracer = provider.get_tracer(service_name, service_version)

    @classmethod
    def get_instance(cls) -> "TracingManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset singleton (for testing)."""
        cls._instance = None

    def get_tracer(self) -> trace.Tracer:
        return self.tracer

    def extract_context(self, headers: Dict[str, str]) -> Context:
        """Extract W3C trace context from HTTP headers."""
        normalized = {k.lower(): v for k, v in headers.items()}
        return extract(normalized)

    def start_server_span(
        self,
        name: str,
        headers: Dict[str, str],
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """
        Start a server span with context extraction from headers.

        Use this for incoming HTTP requests.
        """
        return self.tracer.start_as_current_span(
            name,
            kind=SpanKind.SERVER,
            attributes=attributes,
            context=self.extract_context(headers),
        )

    def start_span(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Span:
        """
        Start a span that the caller owns and must end.

        It is parented to the current span but not made current, so it can
        outlive the HTTP handler (streamed responses).
        """
        return self.tracer.start_span(name, kind=SpanKind.INTERNAL, attributes=attributes)

    def shutdown(self):
        self.provider.shutdown()


_tracing_instance: Optional[TracingManager] = None


def setup_tracing(
    service_name: str = "inference-gateway",
    service_version: str = __version__,
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
) -> TracingManager:
    """
    Setup distributed tracing.

    Call once at application startup.
    """
    global _tracing_instance

    if _tracing_instance is not None:
        return _tracing_instance

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    _tracing_instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        otlp_endpoint=otlp_endpoint,
        console_export=console_export,
    )
    TracingManager._instance = _tracing_instance
    return _tracing_instance


def get_tracing_manager() -> TracingManager:
    """Get the tracing manager instance (auto-initializes with defaults)."""
    global _tracing_instance
    if _tracing_instance is None:
        _tracing_instance = TracingManager.get_instance()
    return _tracing_instance
