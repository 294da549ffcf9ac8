"""
Inference Gateway Streaming Module

SSE encoding of streamed completions and tool call reassembly.
"""

from .sse import SSE_DONE, encode_sse_stream, format_sse
from .tool_calls import ToolCallAccumulator, ToolCallStreamTracker

__all__ = [
    "SSE_DONE",
    "encode_sse_stream",
    "format_sse",
    "ToolCallAccumulator",
    "ToolCallStreamTracker",
]
