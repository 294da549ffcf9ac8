"""
Inference Gateway - Observability Middleware

Unified middleware that combines metrics, tracing, and logging.

Features:
- Request/response metrics collection
- Distributed tracing with W3C context propagation
- Structured logging with correlation IDs

Usage:
    from gateway.observability import setup_observability, ObservabilityMiddleware

    setup_observability(settings)
    app.add_middleware(ObservabilityMiddleware)
"""

import time
import uuid
from typing import Any, Dict, Optional, Set

from fastapi import Request, Response
from opentelemetry.trace import Status, StatusCode
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from .. import __version__
from ..config import GatewaySettings
from .logging import LogContext, get_logger, setup_logging
from .metrics import get_metrics
from .tracing import TraceContext, get_tracing_manager, setup_tracing


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Opens the server span, sets the log context and records request metrics.

    The request id and trace ids are stored on request.state and echoed in
    the X-Request-Id / X-Trace-Id / X-Span-Id response headers. The server
    span is also returned as a W3C Traceparent header.
    """

    # Paths to exclude from detailed observability
    EXCLUDE_PATHS = {"/health", "/metrics", "/openapi.json", "/docs", "/redoc"}

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[Set[str]] = None,
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or self.EXCLUDE_PATHS
        self.logger = get_logger("gateway.observability.middleware")

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        metrics = get_metrics()
        tracing = get_tracing_manager()
        headers = dict(request.headers)

        request_id = headers.get("x-request-id", "")
        if not request_id:
            request_id = f"req_{uuid.uuid4().hex[:24]}"

        start_time = time.perf_counter()
        endpoint_group = self._get_endpoint_group(request.url.path)

        with tracing.start_server_span(
            name=f"{request.method} {endpoint_group}",
            headers=headers,
            attributes={
                "http.method": request.method,
                "http.route": request.url.path,
                "http.scheme": request.url.scheme,
                "http.user_agent": headers.get("user-agent", ""),
                "gateway.request_id": request_id,
            },
        ) as span:
            trace_ctx = TraceContext.from_span(span)

            log_ctx = LogContext(
                request_id=request_id,
                trace_id=trace_ctx.trace_id,
                span_id=trace_ctx.span_id,
                endpoint=request.url.path,
            )
            LogContext.set_current(log_ctx)

            request.state.request_id = request_id
            request.state.trace_id = trace_ctx.trace_id
            request.state.log_context = log_ctx

            try:
                with metrics.track_active_request(endpoint_group):
                    response = await call_next(request)

                duration_seconds = time.perf_counter() - start_time
                provider = response.headers.get("x-provider", "unknown")
                model = response.headers.get("x-model", "unknown")

                span.set_attribute("http.status_code", response.status_code)
                if response.status_code >= 500:
                    span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))
                elif response.status_code >= 400:
                    # Client errors are not span errors
                    span.set_attribute("http.error", True)
                else:
                    span.set_status(Status(StatusCode.OK))

                error_type = None
                if response.status_code >= 400:
                    error_type = response.headers.get("x-error-code", f"http_{response.status_code}")

                metrics.record_request(
                    endpoint=endpoint_group,
                    provider=provider,
                    model=model,
                    status_code=response.status_code,
                    duration_seconds=duration_seconds,
                    error_type=error_type,
                    streaming=response.headers.get("content-type", "").startswith("text/event-stream"),
                )

                self._log_request(
                    request=request,
                    status_code=response.status_code,
                    duration_ms=duration_seconds * 1000,
                    provider=provider,
                    model=model,
                )

                response.headers["X-Request-Id"] = request_id
                response.headers["X-Trace-Id"] = trace_ctx.trace_id
                response.headers["X-Span-Id"] = trace_ctx.span_id
                response.headers["Traceparent"] = trace_ctx.to_traceparent()
                return response

            except Exception as e:
                duration_seconds = time.perf_counter() - start_time
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                metrics.record_request(
                    endpoint=endpoint_group,
                    provider="unknown",
                    model="unknown",
                    status_code=500,
                    duration_seconds=duration_seconds,
                    error_type=type(e).__name__,
                )
                self.logger.exception(
                    "Request failed with exception",
                    error=str(e),
                    error_type=type(e).__name__,
                    duration_ms=duration_seconds * 1000,
                )
                raise

            finally:
                LogContext.clear()

    def _get_endpoint_group(self, path: str) -> str:
        """Group endpoints for metrics aggregation."""
        if path.startswith("/v1/chat"):
            return "/v1/chat/completions"
        elif path.startswith("/v1/embeddings"):
            return "/v1/embeddings"
        elif path.startswith("/v1/images"):
            return "/v1/images/generations"
        elif path.startswith("/v1/models"):
            return "/v1/models"
        return path

    def _log_request(
        self,
        request: Request,
        status_code: int,
        duration_ms: float,
        provider: str,
        model: str,
    ):
        log_data = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "provider": provider,
            "model": model,
            "client_ip": request.client.host if request.client else None,
        }

        if status_code >= 500:
            self.logger.error("Request completed with server error", **log_data)
        elif status_code >= 400:
            self.logger.warning("Request completed with client error", **log_data)
        else:
            self.logger.info("Request completed", **log_data)


_observability_initialized = False


def setup_observability(settings: GatewaySettings) -> Dict[str, Any]:
    """
    Setup logging and tracing from settings.

    Call once at application startup. Safe to call multiple times.
    """
    global _observability_initialized

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_format == "json",
    )
    tracing = setup_tracing(
        service_name=settings.service_name,
        service_version=__version__,
        otlp_endpoint=settings.otlp_endpoint,
    )

    if not _observability_initialized:
        get_logger("gateway.observability").info(
            "Observability initialized",
            service_name=settings.service_name,
            service_version=__version__,
            otlp_endpoint=settings.otlp_endpoint or "none",
        )
        _observability_initialized = True

    return {"logging": True, "metrics": get_metrics(), "tracing": tracing}
