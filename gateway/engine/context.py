"""
Inference Gateway - Execution Context

The tracing span, tags and request id of one request, passed explicitly to
every engine component instead of being read from ambient span state.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

from ..core.errors import GatewayException
from ..observability.logging import get_logger
from ..observability.tracing import TraceContext, TracingManager, get_tracing_manager

logger = get_logger("gateway.engine")

E = TypeVar("E", bound=BaseException)


@dataclass
class ExecutionContext:
    """
    Per-request tracing context.

    Defaults to a non-recording span, so engine components can be exercised
    without a tracing runtime.
    """
    span: Span = field(default=trace.INVALID_SPAN)
    tags: Dict[str, str] = field(default_factory=dict)
    request_id: str = ""
    _ended: bool = field(default=False, init=False, repr=False)

    @classmethod
    def start(
        cls,
        name: str,
        tags: Optional[Dict[str, str]] = None,
        request_id: str = "",
        tracing: Optional[TracingManager] = None,
    ) -> "ExecutionContext":
        """Open a span owned by the new context; call end() when the request is done."""
        tags = dict(tags or {})
        attributes: Dict[str, Any] = {"gateway.request_id": request_id}
        attributes.update({f"gateway.tag.{k}": v for k, v in tags.items()})
        span = (tracing or get_tracing_manager()).start_span(name, attributes=attributes)
        return cls(span=span, tags=tags, request_id=request_id)

    @property
    def trace_id(self) -> str:
        if not self.span.get_span_context().is_valid:
            return ""
        return TraceContext.from_span(self.span).trace_id

    @property
    def span_id(self) -> str:
        if not self.span.get_span_context().is_valid:
            return ""
        return TraceContext.from_span(self.span).span_id

    def set_attribute(self, key: str, value: Any) -> None:
        if value is not None:
            self.span.set_attribute(key, value)

    def record_ttft(self, ttft_ms: int) -> None:
        self.span.set_attribute("ttft", ttft_ms)

    def record_error(self, error: E) -> E:
        """Attach an error to the span and return it for re-raising."""
        self.span.record_exception(error)
        self.span.set_status(Status(StatusCode.ERROR, str(error)))
        if isinstance(error, GatewayException):
            self.span.set_attribute("error.code", error.code)
            if not error.error.request_id:
                error.error.request_id = self.request_id
            if self.trace_id:
                error.error.trace_id = self.trace_id
        logger.warning(
            "Request failed",
            error=str(error),
            error_type=type(error).__name__,
            request_id=self.request_id,
        )
        return error

    def end(self) -> None:
        if not self._ended:
            self._ended = True
            self.span.end()
