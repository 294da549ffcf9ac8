"""
Inference Gateway - Tool Call Streaming

Tool calls arrive in pieces across stream chunks:
1. Initial fragment with tool call ID and function name
2. Fragments with partial arguments JSON
3. The turn ends with finish_reason = "tool_calls"

The tracker accumulates fragments per index and turns them into complete
ToolCall records once the stream is done.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.models import FunctionCall, ToolCall, ToolCallDelta


@dataclass
class ToolCallAccumulator:
    """Accumulates the fragments of one streamed tool call."""
    index: int
    id: Optional[str] = None
    function_name: Optional[str] = None
    arguments_buffer: str = ""

    def update(self, delta: ToolCallDelta):
        if delta.id:
            self.id = delta.id
        if delta.name:
            self.function_name = delta.name
        if delta.arguments:
            self.arguments_buffer += delta.arguments

    def validate(self) -> Tuple[bool, Optional[str]]:
        """
        Validate the accumulated tool call.

        Returns:
            (is_valid, error_message)
        """
        if not self.function_name:
            return False, "Missing function name"

        if self.arguments_buffer:
            try:
                json.loads(self.arguments_buffer)
            except json.JSONDecodeError as e:
                return False, f"Invalid arguments JSON: {e}"

        return True, None

    def to_tool_call(self) -> ToolCall:
        return ToolCall(
            id=self.id or f"call_{uuid.uuid4().hex[:24]}",
            function=FunctionCall(
                name=self.function_name or "",
                arguments=self.arguments_buffer or "{}",
            ),
        )


class ToolCallStreamTracker:
    """
    Tracks multiple tool calls during streaming.

    A single response can contain multiple parallel tool calls.
    Each is tracked by index and accumulated separately.
    """

    def __init__(self):
        self._calls: Dict[int, ToolCallAccumulator] = {}

    def update(self, deltas: Iterable[ToolCallDelta]):
        for delta in deltas:
            if delta.index not in self._calls:
                self._calls[delta.index] = ToolCallAccumulator(index=delta.index)
            self._calls[delta.index].update(delta)

    def get_all_calls(self) -> List[ToolCallAccumulator]:
        """Get all tracked tool calls in index order."""
        return [self._calls[i] for i in sorted(self._calls)]

    def to_tool_calls(self) -> List[ToolCall]:
        return [call.to_tool_call() for call in self.get_all_calls()]

    def validate_all(self) -> Tuple[bool, List[str]]:
        """
        Validate all accumulated tool calls.

        Returns:
            (all_valid, list_of_errors)
        """
        errors = []
        for call in self.get_all_calls():
            is_valid, error = call.validate()
            if not is_valid:
                errors.append(f"Tool call {call.index}: {error}")

        return len(errors) == 0, errors

    def has_calls(self) -> bool:
        return len(self._calls) > 0
