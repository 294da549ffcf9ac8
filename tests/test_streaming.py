"""
Inference Gateway - Streaming Tests

Covers SSE encoding of (delta, usage) items and tool call fragment
accumulation.
"""

import json
from typing import List

import pytest

from gateway.core.errors import ProviderRateLimitError
from gateway.core.models import ChatCompletionDelta, FinishReason, Role, ToolCallDelta, Usage
from gateway.streaming import SSE_DONE, ToolCallStreamTracker, encode_sse_stream


def delta(**kwargs) -> ChatCompletionDelta:
    return ChatCompletionDelta(id="chatcmpl-abc", model="openai/gpt-4", created=1700000000, **kwargs)


async def items_from(*items, error=None):
    for item in items:
        yield item
    if error is not None:
        raise error


async def encode(items) -> List[str]:
    return [event async for event in encode_sse_stream(items, "openai/gpt-4", request_id="req_sse")]


def payloads(events: List[str]) -> List[dict]:
    return [json.loads(e[len("data: "):]) for e in events if e != SSE_DONE]


# ============================================================
# SSE Encoding
# ============================================================

class TestEncodeSSEStream:
    """Tests for encode_sse_stream."""

    @pytest.mark.asyncio
    async def test_deltas_then_done(self):
        """Each delta becomes one chunk; the stream ends with [DONE]."""
        events = await encode(items_from(
            (delta(role=Role.ASSISTANT), None),
            (delta(content="Hi"), None),
            (delta(finish_reason=FinishReason.STOP), None),
        ))

        assert events[-1] == SSE_DONE
        chunks = payloads(events)
        assert [c["choices"][0]["delta"] for c in chunks] == [{"role": "assistant"}, {"content": "Hi"}, {}]
        assert chunks[2]["choices"][0]["finish_reason"] == "stop"
        assert all(c["object"] == "chat.completion.chunk" for c in chunks)
        assert {c["id"] for c in chunks} == {"chatcmpl-abc"}

    @pytest.mark.asyncio
    async def test_usage_only_item(self):
        """A usage item without a delta is a chunk with empty choices."""
        events = await encode(items_from(
            (delta(content="Hi"), None),
            (None, Usage(prompt_tokens=4, completion_tokens=2)),
        ))

        usage_chunk = payloads(events)[-1]
        assert usage_chunk["choices"] == []
        assert usage_chunk["usage"] == {"prompt_tokens": 4, "completion_tokens": 2, "total_tokens": 6}
        assert usage_chunk["id"] == "chatcmpl-abc"
        assert usage_chunk["model"] == "openai/gpt-4"

    @pytest.mark.asyncio
    async def test_tool_call_fragments(self):
        """Tool call deltas keep their index; only the first fragment has the id."""
        events = await encode(items_from(
            (delta(tool_calls=[ToolCallDelta(index=0, id="call_1", name="lookup")]), None),
            (delta(tool_calls=[ToolCallDelta(index=0, arguments="{}")]), None),
        ))

        first, second = [c["choices"][0]["delta"]["tool_calls"][0] for c in payloads(events)]
        assert first == {"index": 0, "id": "call_1", "type": "function", "function": {"name": "lookup", "arguments": ""}}
        assert second == {"index": 0, "function": {"arguments": "{}"}}

    @pytest.mark.asyncio
    async def test_gateway_error_closes_stream(self):
        """Delivered chunks stand; the error chunk is followed by [DONE]."""
        error = ProviderRateLimitError("openai", retry_after=3, request_id="req_sse")

        events = await encode(items_from((delta(content="par"), None), error=error))

        assert len(events) == 2
        assert events[-1].endswith(SSE_DONE)
        error_chunk = json.loads(events[-1].split("\n\n")[0][len("data: "):])
        assert error_chunk["error"]["code"] == "rate_limited"
        assert error_chunk["error"]["retry_after"] == 3
        assert error_chunk["choices"][0]["finish_reason"] == "error"
        assert error_chunk["id"] == "chatcmpl-abc"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_stream_error(self):
        """Non-gateway failures are reported as stream_error with the request id."""
        events = await encode(items_from(error=RuntimeError("boom")))

        error_chunk = json.loads(events[0].split("\n\n")[0][len("data: "):])
        assert error_chunk["error"]["code"] == "stream_error"
        assert error_chunk["error"]["message"] == "boom"
        assert error_chunk["error"]["request_id"] == "req_sse"


# ============================================================
# Tool Call Accumulation
# ============================================================

class TestToolCallStreamTracker:
    """Tests for ToolCallStreamTracker."""

    def test_accumulates_by_index(self):
        """Interleaved fragments are grouped per index and ordered."""
        tracker = ToolCallStreamTracker()
        tracker.update([ToolCallDelta(index=1, id="call_b", name="search")])
        tracker.update([ToolCallDelta(index=0, id="call_a", name="lookup")])
        tracker.update([
            ToolCallDelta(index=0, arguments="{\"q\":"),
            ToolCallDelta(index=1, arguments="{}"),
        ])
        tracker.update([ToolCallDelta(index=0, arguments=" 1}")])

        calls = tracker.to_tool_calls()

        assert [c.id for c in calls] == ["call_a", "call_b"]
        assert json.loads(calls[0].function.arguments) == {"q": 1}
        assert tracker.validate_all() == (True, [])

    def test_invalid_arguments_reported(self):
        """Unparseable arguments fail validation with the call index."""
        tracker = ToolCallStreamTracker()
        tracker.update([ToolCallDelta(index=0, id="call_a", name="lookup", arguments="{oops")])

        valid, errors = tracker.validate_all()

        assert not valid
        assert errors[0].startswith("Tool call 0: Invalid arguments JSON")

    def test_missing_id_and_arguments_defaulted(self):
        """A call without id gets one; empty arguments become {}."""
        tracker = ToolCallStreamTracker()
        tracker.update([ToolCallDelta(index=0, name="lookup")])

        [call] = tracker.to_tool_calls()

        assert call.id.startswith("call_")
        assert call.function.arguments == "{}"

    def test_empty(self):
        """No fragments, no calls."""
        tracker = ToolCallStreamTracker()

        assert not tracker.has_calls()
        assert tracker.to_tool_calls() == []
