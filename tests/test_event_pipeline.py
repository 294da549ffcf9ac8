"""
Inference Gateway - Event Pipeline Tests

Covers the bounded channel and its collector:
- Every event is forwarded exactly once, in FIFO order
- Stop and tool-start events are summarized
- First-token latency lands on the execution span
- Sink failures are swallowed
- A full channel suspends the sender, but never the close
"""

import asyncio
from unittest.mock import patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from gateway.core.errors import CustomError
from gateway.core.models import FinishReason, Usage
from gateway.engine.context import ExecutionContext
from gateway.engine.definition import Model, ModelType
from gateway.engine.events import (
    CallbackHandlerFn,
    LlmContentEvent,
    LlmFirstTokenEvent,
    LlmStartEvent,
    LlmStopEvent,
    ToolStartEvent,
)
from gateway.engine import pipeline
from gateway.engine.pipeline import EVENT_CHANNEL_CAPACITY, spawn_event_collector
from gateway.observability.tracing import TracingManager


MODEL = Model(
    name="openai/gpt-4",
    description="Generated model for chat completion",
    provider_name="openai",
    model_type=ModelType.COMPLETIONS,
)


class TestEventCollector:
    """Tests for spawn_event_collector."""

    def test_default_capacity(self):
        """Channels hold up to 1000 events."""
        assert EVENT_CHANNEL_CAPACITY == 1000

    @pytest.mark.asyncio
    async def test_forwards_every_event_in_order(self, callback_handler, recorder):
        """The sink sees each event once, in send order, with the model attached."""
        sender, collector = spawn_event_collector(callback_handler, MODEL, ExecutionContext())

        sent = [
            LlmStartEvent(provider_name="openai", model_name="gpt-4-0613"),
            LlmFirstTokenEvent(ttft_ms=12),
            *[LlmContentEvent(content=str(i)) for i in range(50)],
            LlmStopEvent(finish_reason=FinishReason.STOP, usage=Usage(5, 7)),
        ]
        for payload in sent:
            await sender.send(payload)
        await sender.close()
        await collector

        assert [m.event.event for m in recorder.messages] == sent
        assert all(m.model is MODEL for m in recorder.messages)
        assert len({m.event.event_id for m in recorder.messages}) == len(sent)

    @pytest.mark.asyncio
    async def test_summary_of_stop_and_tool_calls(self, callback_handler):
        """The collector returns the last stop event and tool starts in order."""
        sender, collector = spawn_event_collector(callback_handler, MODEL, ExecutionContext())

        await sender.send(ToolStartEvent(tool_id="call_1", tool_name="lookup", input="{}"))
        await sender.send(ToolStartEvent(tool_id="call_2", tool_name="search", input="{\"q\": 1}"))
        stop = LlmStopEvent(finish_reason=FinishReason.TOOL_CALLS)
        await sender.send(stop)
        await sender.close()

        collected = await collector

        assert collected.stop_event == stop
        assert [t.tool_name for t in collected.tool_calls] == ["lookup", "search"]

    @pytest.mark.asyncio
    async def test_no_tool_calls_is_none(self, callback_handler):
        """Without tool starts the summary holds None, not an empty tuple."""
        sender, collector = spawn_event_collector(callback_handler, MODEL, ExecutionContext())
        await sender.send(LlmStopEvent(finish_reason=FinishReason.STOP))
        await sender.close()

        collected = await collector

        assert collected.tool_calls is None
        assert collected.stop_event.finish_reason == FinishReason.STOP

    @pytest.mark.asyncio
    async def test_first_token_recorded_on_span(self, callback_handler):
        """The ttft attribute is set on the context's span."""
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        ctx = ExecutionContext.start(
            "chat_completion",
            tags={"team": "search"},
            request_id="req_ttft",
            tracing=TracingManager(provider=provider),
        )

        sender, collector = spawn_event_collector(callback_handler, MODEL, ctx)
        await sender.send(LlmFirstTokenEvent(ttft_ms=42))
        await sender.close()
        await collector
        ctx.end()

        [span] = exporter.get_finished_spans()
        assert span.attributes["ttft"] == 42
        assert span.attributes["gateway.request_id"] == "req_ttft"
        assert span.attributes["gateway.tag.team"] == "search"

    @pytest.mark.asyncio
    async def test_events_carry_trace_ids(self, callback_handler, recorder):
        """Events are stamped with the context's trace and span ids."""
        provider = TracerProvider()
        ctx = ExecutionContext.start("chat_completion", tracing=TracingManager(provider=provider))

        sender, collector = spawn_event_collector(callback_handler, MODEL, ctx)
        await sender.send(LlmContentEvent(content="x"))
        await sender.close()
        await collector
        ctx.end()

        event = recorder.messages[0].event
        assert event.trace_id == ctx.trace_id
        assert len(event.trace_id) == 32
        assert event.span_id == ctx.span_id

    @pytest.mark.asyncio
    async def test_sink_failure_is_swallowed(self, recorder):
        """A failing sink does not stop the collector."""
        def broken(message):
            raise RuntimeError("sink down")

        handler = CallbackHandlerFn(broken, recorder)
        sender, collector = spawn_event_collector(handler, MODEL, ExecutionContext())

        await sender.send(LlmContentEvent(content="a"))
        await sender.send(LlmStopEvent(finish_reason=FinishReason.STOP))
        await sender.close()
        collected = await collector

        assert collected.stop_event is not None
        assert recorder.messages == []

    @pytest.mark.asyncio
    async def test_send_after_close_fails(self, callback_handler):
        """A closed channel rejects further events."""
        sender, collector = spawn_event_collector(callback_handler, MODEL, ExecutionContext())
        await sender.close()
        await sender.close()
        await collector

        assert sender.closed
        with pytest.raises(CustomError):
            await sender.send(LlmContentEvent(content="late"))

    @pytest.mark.asyncio
    async def test_full_channel_applies_backpressure(self, callback_handler, recorder):
        """With the collector held back, the sender suspends once the channel is full."""
        gate = asyncio.Event()
        collect = pipeline.collect_events

        async def gated_collect(*args):
            await gate.wait()
            return await collect(*args)

        with patch("gateway.engine.pipeline.collect_events", gated_collect):
            sender, collector = spawn_event_collector(
                callback_handler, MODEL, ExecutionContext(), capacity=2
            )

        await sender.send(LlmContentEvent(content="0"))
        await sender.send(LlmContentEvent(content="1"))
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(sender.send(LlmContentEvent(content="2")), timeout=0.05)

        gate.set()
        await sender.send(LlmContentEvent(content="2"))
        await sender.close()
        await collector

        assert [m.event.event.content for m in recorder.messages] == ["0", "1", "2"]

    @pytest.mark.asyncio
    async def test_close_on_full_channel_does_not_wait(self, callback_handler, recorder):
        """Closing a full channel returns at once; queued events still drain first."""
        gate = asyncio.Event()
        collect = pipeline.collect_events

        async def gated_collect(*args):
            await gate.wait()
            return await collect(*args)

        with patch("gateway.engine.pipeline.collect_events", gated_collect):
            sender, collector = spawn_event_collector(
                callback_handler, MODEL, ExecutionContext(), capacity=2
            )

        await sender.send(LlmContentEvent(content="0"))
        await sender.send(LlmContentEvent(content="1"))
        await asyncio.wait_for(sender.close(), timeout=0.05)

        gate.set()
        await asyncio.wait_for(collector, timeout=1)

        assert sender.closed
        assert [m.event.event.content for m in recorder.messages] == ["0", "1"]
        assert collector not in pipeline._background_tasks
