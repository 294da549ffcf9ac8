"""
Inference Gateway - Observability Tests

Tests for the observability stack:
- Prometheus metrics
- OpenTelemetry tracing
- Structured logging
- Middleware integration
- The telemetry listener on the callback sink
"""

import json
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace import TracerProvider
from prometheus_client import CollectorRegistry

from gateway.core.models import FinishReason, Usage
from gateway.engine.definition import Model, ModelType
from gateway.engine.events import (
    LlmFirstTokenEvent,
    LlmStopEvent,
    ModelEvent,
    ModelEventWithDetails,
    ToolStartEvent,
)
from gateway.observability.callbacks import TelemetryCallbackHandler, default_callback_handler
from gateway.observability.logging import JSONFormatter, LogContext, get_logger
from gateway.observability.metrics import MetricsCollector
from gateway.observability.middleware import ObservabilityMiddleware
from gateway.observability.tracing import TraceContext, TracingManager


def make_record(msg: str = "Test message", **fields) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in fields.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def metrics():
    """Metrics collector on a fresh registry."""
    return MetricsCollector(registry=CollectorRegistry())


# ============================================================
# Metrics Tests
# ============================================================

class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_record_request(self, metrics):
        """Requests are counted by endpoint, provider, model and status."""
        metrics.record_request(
            endpoint="/v1/chat/completions",
            provider="openai",
            model="openai/gpt-4",
            status_code=429,
            duration_seconds=1.5,
            error_type="rate_limited",
            streaming=True,
        )

        sample = metrics.registry.get_sample_value("gateway_requests_total", {
            "endpoint": "/v1/chat/completions",
            "provider": "openai",
            "model": "openai/gpt-4",
            "status": "429",
            "error_type": "rate_limited",
            "streaming": "true",
        })
        assert sample == 1.0

    def test_record_tokens(self, metrics):
        """Input and output tokens are separate series."""
        metrics.record_tokens(provider="openai", model="openai/gpt-4", input_tokens=100, output_tokens=50)

        labels = {"provider": "openai", "model": "openai/gpt-4"}
        assert metrics.registry.get_sample_value("gateway_tokens_total", {**labels, "type": "input"}) == 100.0
        assert metrics.registry.get_sample_value("gateway_tokens_total", {**labels, "type": "output"}) == 50.0

    def test_active_request_tracker(self, metrics):
        """The gauge is raised for the duration of the block."""
        labels = {"endpoint": "/v1/chat/completions"}

        with metrics.track_active_request("/v1/chat/completions"):
            assert metrics.registry.get_sample_value("gateway_active_requests", labels) == 1.0

        assert metrics.registry.get_sample_value("gateway_active_requests", labels) == 0.0

    def test_callback_failures(self, metrics):
        """Swallowed sink failures are counted."""
        metrics.record_callback_failure()
        metrics.record_callback_failure()

        assert metrics.registry.get_sample_value("gateway_callback_failures_total") == 2.0


# ============================================================
# Telemetry Listener
# ============================================================

MODEL = Model(
    name="openai/gpt-4",
    description="Generated model for chat completion",
    provider_name="openai",
    model_type=ModelType.COMPLETIONS,
)


def details(payload) -> ModelEventWithDetails:
    return ModelEventWithDetails(event=ModelEvent(event=payload), model=MODEL)


class TestTelemetryCallbackHandler:
    """Tests for the metrics listener on the callback sink."""

    def test_stop_event_records_tokens_and_cost(self, metrics):
        """Usage and cost of a stop event become counters."""
        listener = TelemetryCallbackHandler(metrics)

        listener(details(LlmStopEvent(
            finish_reason=FinishReason.STOP,
            usage=Usage(prompt_tokens=10, completion_tokens=4),
            cost_usd=0.002,
        )))

        labels = {"provider": "openai", "model": "openai/gpt-4"}
        assert metrics.registry.get_sample_value("gateway_tokens_total", {**labels, "type": "input"}) == 10.0
        assert metrics.registry.get_sample_value("gateway_cost_usd_total", labels) == pytest.approx(0.002)
        assert metrics.registry.get_sample_value(
            "gateway_model_events_total", {"event_type": "llm_stop", "model_type": "completions"}
        ) == 1.0

    def test_first_token_histogram(self, metrics):
        """Time to first token is observed in seconds."""
        listener = TelemetryCallbackHandler(metrics)

        listener(details(LlmFirstTokenEvent(ttft_ms=250)))

        assert metrics.registry.get_sample_value(
            "gateway_time_to_first_token_seconds_sum", {"provider": "openai", "model": "openai/gpt-4"}
        ) == pytest.approx(0.25)

    def test_tool_start(self, metrics):
        """Tool calls are counted by tool name."""
        listener = TelemetryCallbackHandler(metrics)

        listener(details(ToolStartEvent(tool_id="call_1", tool_name="lookup", input="{}")))

        assert metrics.registry.get_sample_value(
            "gateway_tool_calls_total", {"provider": "openai", "tool_name": "lookup"}
        ) == 1.0

    def test_default_handler_subscribes_listener(self, metrics):
        """The default sink meters every event."""
        handler = default_callback_handler(metrics)

        handler.on_message(details(LlmFirstTokenEvent(ttft_ms=5)))

        assert metrics.registry.get_sample_value(
            "gateway_model_events_total", {"event_type": "llm_first_token", "model_type": "completions"}
        ) == 1.0


# ============================================================
# Tracing Tests
# ============================================================

class TestTracingManager:
    """Tests for TracingManager."""

    @pytest.fixture
    def tracing(self):
        return TracingManager(service_name="test-service", provider=TracerProvider())

    def test_span_ids(self, tracing):
        """Span ids are hex encoded at W3C widths."""
        span = tracing.start_span("chat_completion")
        ctx = TraceContext.from_span(span)
        span.end()

        assert len(ctx.trace_id) == 32
        assert len(ctx.span_id) == 16

    def test_traceparent_generation(self, tracing):
        """The traceparent header has four dash separated fields."""
        span = tracing.start_span("test")
        parts = TraceContext.from_span(span).to_traceparent().split("-")
        span.end()

        assert parts[0] == "00"
        assert [len(p) for p in parts[1:]] == [32, 16, 2]

    def test_server_span_continues_incoming_trace(self, tracing):
        """An inbound traceparent becomes the parent of the server span."""
        headers = {"Traceparent": "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"}

        with tracing.start_server_span("POST /v1/chat/completions", headers) as span:
            ctx = TraceContext.from_span(span)

        assert ctx.trace_id == "0af7651916cd43dd8448eb211c80319c"


# ============================================================
# Logging Tests
# ============================================================

class TestStructuredLogging:
    """Tests for structured logging."""

    @pytest.fixture(autouse=True)
    def clear_context(self):
        yield
        LogContext.clear()

    def test_json_formatter(self):
        """Records render as one JSON object."""
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert "timestamp" in data

    def test_log_context_injection(self):
        """Correlation ids from the current context are added."""
        LogContext.set_current(LogContext(request_id="req_123", trace_id="abc"))

        data = json.loads(JSONFormatter().format(make_record()))

        assert data["request_id"] == "req_123"
        assert data["trace_id"] == "abc"

    def test_sensitive_field_redaction(self):
        """Secrets are redacted; token counts are not."""
        record = make_record(api_key="sk-live", provider_api_key="sk-2", authorization="Bearer x", prompt_tokens=12)

        data = json.loads(JSONFormatter(redact_sensitive=True).format(record))

        assert data["api_key"] == "[REDACTED]"
        assert data["provider_api_key"] == "[REDACTED]"
        assert data["authorization"] == "[REDACTED]"
        assert data["prompt_tokens"] == 12

    def test_structured_fields_on_record(self):
        """Keyword arguments become record attributes."""
        records = []

        class Capture(logging.Handler):
            def emit(self, record):
                records.append(record)

        std_logger = logging.getLogger("gateway.test.structured")
        handler = Capture()
        std_logger.addHandler(handler)
        std_logger.setLevel(logging.INFO)
        try:
            get_logger("gateway.test.structured").info("Model resolved", model="stub/echo")
        finally:
            std_logger.removeHandler(handler)

        assert records[0].getMessage() == "Model resolved"
        assert records[0].model == "stub/echo"


# ============================================================
# Middleware Tests
# ============================================================

class TestObservabilityMiddleware:
    """Tests for ObservabilityMiddleware."""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(ObservabilityMiddleware)

        @app.get("/v1/models")
        async def models():
            return {"object": "list", "data": []}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        return TestClient(app)

    def test_request_id_generation(self, client):
        """A request id is generated and returned."""
        response = client.get("/v1/models")

        assert response.status_code == 200
        assert response.headers["x-request-id"].startswith("req_")
        assert len(response.headers["x-trace-id"]) == 32
        assert len(response.headers["x-span-id"]) == 16

    def test_request_id_passthrough(self, client):
        """A caller-provided request id is echoed."""
        response = client.get("/v1/models", headers={"x-request-id": "req_custom123"})

        assert response.headers["x-request-id"] == "req_custom123"

    def test_traceparent_extraction(self, client):
        """The inbound trace is continued."""
        response = client.get(
            "/v1/models",
            headers={"traceparent": "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"},
        )

        assert response.headers["x-trace-id"] == "0af7651916cd43dd8448eb211c80319c"

    def test_traceparent_returned(self, client):
        """The server span is returned as a traceparent continuing the inbound trace."""
        response = client.get(
            "/v1/models",
            headers={"traceparent": "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"},
        )

        version, trace_id, span_id, flags = response.headers["traceparent"].split("-")
        assert version == "00"
        assert trace_id == "0af7651916cd43dd8448eb211c80319c"
        assert span_id == response.headers["x-span-id"]
        assert span_id != "b7ad6b7169203331"
        assert flags == "01"

    def test_excluded_paths(self, client):
        """Health checks skip request observability."""
        response = client.get("/health")

        assert response.status_code == 200
        assert "x-trace-id" not in response.headers
