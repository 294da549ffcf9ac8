"""
Inference Gateway - Model Events

Events emitted by a model instance while it executes a request, and the
process-wide callback sink they are delivered to.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Union

from ..core.models import FinishReason, FunctionCall, ToolCall, Usage
from .definition import Model


class ModelEventType(str, Enum):
    LLM_START = "llm_start"
    LLM_FIRST_TOKEN = "llm_first_token"
    LLM_CONTENT = "llm_content"
    LLM_STOP = "llm_stop"
    TOOL_START = "tool_start"
    TOOL_RESULT = "tool_result"


@dataclass(frozen=True)
class LlmStartEvent:
    provider_name: str
    model_name: str
    input: Optional[str] = None


@dataclass(frozen=True)
class LlmFirstTokenEvent:
    ttft_ms: int


@dataclass(frozen=True)
class LlmContentEvent:
    content: str


@dataclass(frozen=True)
class LlmStopEvent:
    finish_reason: FinishReason
    usage: Optional[Usage] = None
    output: Optional[str] = None
    cost_usd: Optional[float] = None


@dataclass(frozen=True)
class ToolStartEvent:
    tool_id: str
    tool_name: str
    input: str

    def to_tool_call(self) -> ToolCall:
        return ToolCall(
            id=self.tool_id,
            function=FunctionCall(name=self.tool_name, arguments=self.input),
        )


@dataclass(frozen=True)
class ToolResultEvent:
    tool_id: str
    tool_name: str
    output: str
    is_error: bool = False


ModelEventPayload = Union[
    LlmStartEvent,
    LlmFirstTokenEvent,
    LlmContentEvent,
    LlmStopEvent,
    ToolStartEvent,
    ToolResultEvent,
]

_EVENT_TYPES = {
    LlmStartEvent: ModelEventType.LLM_START,
    LlmFirstTokenEvent: ModelEventType.LLM_FIRST_TOKEN,
    LlmContentEvent: ModelEventType.LLM_CONTENT,
    LlmStopEvent: ModelEventType.LLM_STOP,
    ToolStartEvent: ModelEventType.TOOL_START,
    ToolResultEvent: ModelEventType.TOOL_RESULT,
}


@dataclass(frozen=True)
class ModelEvent:
    """One immutable event with its correlation identifiers."""
    event: ModelEventPayload
    trace_id: str = ""
    span_id: str = ""
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_type(self) -> ModelEventType:
        return _EVENT_TYPES[type(self.event)]


@dataclass(frozen=True)
class ModelEventWithDetails:
    """An event paired with the model metadata current when it was emitted."""
    event: ModelEvent
    model: Model


EventListener = Callable[[ModelEventWithDetails], None]


class CallbackHandlerFn:
    """
    Process-wide event sink.

    Fans each event out to the registered listeners in registration order.
    Listener exceptions propagate to the caller (the event collector decides
    what to do with them).
    """

    def __init__(self, *listeners: EventListener):
        self._listeners: List[EventListener] = list(listeners)

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def on_message(self, message: ModelEventWithDetails) -> None:
        for listener in self._listeners:
            listener(message)
