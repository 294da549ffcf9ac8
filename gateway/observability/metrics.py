"""
Inference Gateway - Prometheus Metrics

Metrics exposed:
- gateway_requests_total: Counter of requests by endpoint, provider, model, status
- gateway_request_duration_seconds: Histogram of request latency
- gateway_time_to_first_token_seconds: Histogram of first-token latency
- gateway_tokens_total: Counter of tokens used (input/output)
- gateway_cost_usd_total: Counter of total cost in USD
- gateway_active_requests: Gauge of currently active requests
- gateway_tool_calls_total: Counter of tool calls returned by models
- gateway_model_events_total: Counter of model events delivered to the callback sink
- gateway_callback_failures_total: Counter of callback sink failures

Usage:
    metrics = get_metrics()
    metrics.record_tokens(provider="openai", model="gpt-4o", input_tokens=100, output_tokens=50)

    @app.get("/metrics")
    async def metrics():
        return metrics_endpoint()
"""

from typing import Optional

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from .. import __version__


class MetricsCollector:
    """
    Central metrics collector using Prometheus client.

    One instance per registry; the default instance is process-wide.
    """

    _instance: Optional["MetricsCollector"] = None

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.info = Info(
            "gateway",
            "Inference gateway service information",
            registry=registry,
        )
        self.info.info({
            "version": __version__,
            "service": "inference-gateway",
        })

        self.requests_total = Counter(
            "gateway_requests_total",
            "Total number of requests",
            labelnames=["endpoint", "provider", "model", "status", "error_type", "streaming"],
            registry=registry,
        )

        # Model calls range from 0.1s to 60s+
        self.request_duration = Histogram(
            "gateway_request_duration_seconds",
            "Request duration in seconds",
            labelnames=["endpoint", "provider", "model", "streaming"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, float("inf")),
            registry=registry,
        )

        self.time_to_first_token = Histogram(
            "gateway_time_to_first_token_seconds",
            "Time to first token",
            labelnames=["provider", "model"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, float("inf")),
            registry=registry,
        )

        self.tokens_total = Counter(
            "gateway_tokens_total",
            "Total tokens used",
            labelnames=["provider", "model", "type"],  # type = input/output
            registry=registry,
        )

        self.cost_total = Counter(
            "gateway_cost_usd_total",
            "Total cost in USD",
            labelnames=["provider", "model"],
            registry=registry,
        )

        self.active_requests = Gauge(
            "gateway_active_requests",
            "Number of currently active requests",
            labelnames=["endpoint"],
            registry=registry,
        )

        self.tool_calls_total = Counter(
            "gateway_tool_calls_total",
            "Tool calls returned by models",
            labelnames=["provider", "tool_name"],
            registry=registry,
        )

        self.model_events_total = Counter(
            "gateway_model_events_total",
            "Model events delivered to the callback sink",
            labelnames=["event_type", "model_type"],
            registry=registry,
        )

        self.callback_failures_total = Counter(
            "gateway_callback_failures_total",
            "Callback sink failures swallowed by the event collector",
            registry=registry,
        )

    @classmethod
    def get_instance(cls) -> "MetricsCollector":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def record_request(
        self,
        endpoint: str,
        provider: str,
        model: str,
        status_code: int,
        duration_seconds: float,
        error_type: Optional[str] = None,
        streaming: bool = False,
    ):
        """Record a completed request."""
        streaming_label = "true" if streaming else "false"

        self.requests_total.labels(
            endpoint=endpoint,
            provider=provider,
            model=model,
            status=str(status_code),
            error_type=error_type or "none",
            streaming=streaming_label,
        ).inc()

        self.request_duration.labels(
            endpoint=endpoint,
            provider=provider,
            model=model,
            streaming=streaming_label,
        ).observe(duration_seconds)

    def record_tokens(self, provider: str, model: str, input_tokens: int, output_tokens: int):
        self.tokens_total.labels(provider=provider, model=model, type="input").inc(input_tokens)
        self.tokens_total.labels(provider=provider, model=model, type="output").inc(output_tokens)

    def record_cost(self, provider: str, model: str, cost_usd: float):
        self.cost_total.labels(provider=provider, model=model).inc(cost_usd)

    def record_time_to_first_token(self, provider: str, model: str, ttft_seconds: float):
        self.time_to_first_token.labels(provider=provider, model=model).observe(ttft_seconds)

    def record_tool_call(self, provider: str, tool_name: str):
        self.tool_calls_total.labels(provider=provider, tool_name=tool_name).inc()

    def record_model_event(self, event_type: str, model_type: str):
        self.model_events_total.labels(event_type=event_type, model_type=model_type).inc()

    def record_callback_failure(self):
        self.callback_failures_total.inc()

    def track_active_request(self, endpoint: str) -> "ActiveRequestTracker":
        """Context manager to track active requests."""
        return ActiveRequestTracker(self, endpoint)


class ActiveRequestTracker:
    """Context manager for tracking active requests."""

    def __init__(self, collector: MetricsCollector, endpoint: str):
        self.collector = collector
        self.endpoint = endpoint

    def __enter__(self):
        self.collector.active_requests.labels(endpoint=self.endpoint).inc()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.collector.active_requests.labels(endpoint=self.endpoint).dec()


def get_metrics() -> MetricsCollector:
    """Get the process-wide metrics collector."""
    return MetricsCollector.get_instance()


def metrics_endpoint() -> Response:
    """Generate Prometheus metrics endpoint response."""
    return Response(
        content=generate_latest(get_metrics().registry),
        media_type=CONTENT_TYPE_LATEST,
    )
