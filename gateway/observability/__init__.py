"""
Inference Gateway Observability Module

- Prometheus metrics (Counter, Histogram, Gauge)
- OpenTelemetry distributed tracing
- Structured JSON logging with context injection
- W3C trace context propagation

Usage:
    from gateway.observability import setup_observability, get_logger, get_metrics

    setup_observability(settings)

    logger = get_logger(__name__)
    metrics = get_metrics()

The model event listener lives in gateway.observability.callbacks.
"""

from .logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    setup_logging,
)
from .metrics import (
    MetricsCollector,
    get_metrics,
    metrics_endpoint,
)
from .tracing import (
    TracingManager,
    get_tracing_manager,
    setup_tracing,
)
from .middleware import (
    ObservabilityMiddleware,
    setup_observability,
)

__all__ = [
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "setup_logging",
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "metrics_endpoint",
    # Tracing
    "TracingManager",
    "get_tracing_manager",
    "setup_tracing",
    # Middleware
    "ObservabilityMiddleware",
    "setup_observability",
]
