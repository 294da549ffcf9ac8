"""
Inference Gateway - Telemetry Callback

The default listener on the process-wide callback sink: logs every model
event and turns the interesting ones into Prometheus metrics.
"""

from typing import Optional

from ..engine.events import (
    CallbackHandlerFn,
    LlmFirstTokenEvent,
    LlmStopEvent,
    ModelEventWithDetails,
    ToolStartEvent,
)
from .logging import get_logger
from .metrics import MetricsCollector, get_metrics


class TelemetryCallbackHandler:
    """Listener that logs and meters model events."""

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics or get_metrics()
        self.logger = get_logger("gateway.events")

    def __call__(self, message: ModelEventWithDetails) -> None:
        event = message.event
        model = message.model
        payload = event.event

        self.metrics.record_model_event(event.event_type.value, model.model_type.value)

        if isinstance(payload, LlmFirstTokenEvent):
            self.metrics.record_time_to_first_token(
                model.provider_name, model.name, payload.ttft_ms / 1000
            )
        elif isinstance(payload, ToolStartEvent):
            self.metrics.record_tool_call(model.provider_name, payload.tool_name)
        elif isinstance(payload, LlmStopEvent):
            if payload.usage is not None:
                self.metrics.record_tokens(
                    model.provider_name,
                    model.name,
                    payload.usage.prompt_tokens,
                    payload.usage.completion_tokens,
                )
            if payload.cost_usd:
                self.metrics.record_cost(model.provider_name, model.name, payload.cost_usd)

        self.logger.debug(
            "Model event",
            event_type=event.event_type.value,
            event_id=event.event_id,
            model=model.name,
            provider=model.provider_name,
            model_type=model.model_type.value,
            trace_id=event.trace_id,
            span_id=event.span_id,
        )


def default_callback_handler(metrics: Optional[MetricsCollector] = None) -> CallbackHandlerFn:
    """Callback sink with the telemetry listener subscribed."""
    return CallbackHandlerFn(TelemetryCallbackHandler(metrics))
