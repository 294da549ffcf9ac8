"""
Inference Gateway - Event Pipeline

A bounded queue per request plus a background collector task.

The model instance sends events through an EventSender; the collector drains
them in FIFO order, remembers the stop event and tool starts, records the
first-token latency on the execution span and forwards every event to the
callback sink. A full queue suspends the sender (backpressure).
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Coroutine, List, Optional, Set, Tuple, TypeVar

from ..core.errors import CustomError
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics
from .context import ExecutionContext
from .definition import Model
from .events import (
    CallbackHandlerFn,
    LlmFirstTokenEvent,
    LlmStopEvent,
    ModelEvent,
    ModelEventPayload,
    ModelEventWithDetails,
    ToolStartEvent,
)

logger = get_logger("gateway.engine.pipeline")

EVENT_CHANNEL_CAPACITY = 1000

# Closes the channel
_CLOSED = object()

T = TypeVar("T")

# Strong references to tasks nobody awaits
_background_tasks: Set[asyncio.Task] = set()


def run_in_background(coro: Coroutine[Any, Any, T], name: Optional[str] = None) -> "asyncio.Task[T]":
    """Start a task that stays referenced until it finishes."""
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


@dataclass(frozen=True)
class CollectedEvents:
    """What the collector hands back once the channel closes."""
    stop_event: Optional[LlmStopEvent]
    tool_calls: Optional[Tuple[ToolStartEvent, ...]]


class EventSender:
    """Sending end of a request's event channel."""

    def __init__(self, queue: asyncio.Queue, ctx: ExecutionContext):
        self._queue = queue
        self._ctx = ctx
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, payload: ModelEventPayload) -> ModelEvent:
        """Wrap and enqueue an event, waiting while the channel is full."""
        if self._closed:
            raise CustomError("Event channel is closed", request_id=self._ctx.request_id)
        event = ModelEvent(
            event=payload,
            trace_id=self._ctx.trace_id,
            span_id=self._ctx.span_id,
        )
        await self._queue.put(event)
        return event

    def close_nowait(self) -> None:
        """Close the channel without waiting on a full queue."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The collector is still draining; deliver the sentinel behind it
            run_in_background(self._queue.put(_CLOSED), name="event-channel-close")

    async def close(self) -> None:
        """Close the channel; the collector finishes after draining."""
        self.close_nowait()


async def collect_events(
    queue: asyncio.Queue,
    callback_handler: CallbackHandlerFn,
    model: Model,
    ctx: ExecutionContext,
) -> CollectedEvents:
    stop_event: Optional[LlmStopEvent] = None
    tool_calls: Optional[List[ToolStartEvent]] = None

    while True:
        item = await queue.get()
        if item is _CLOSED:
            break

        payload = item.event
        if isinstance(payload, LlmStopEvent):
            stop_event = payload
        elif isinstance(payload, ToolStartEvent):
            if tool_calls is None:
                tool_calls = []
            tool_calls.append(payload)
        elif isinstance(payload, LlmFirstTokenEvent):
            ctx.record_ttft(payload.ttft_ms)

        try:
            callback_handler.on_message(ModelEventWithDetails(event=item, model=model))
        except Exception:
            # Telemetry never fails the request
            get_metrics().record_callback_failure()
            logger.warning(
                "Callback sink failed",
                event_type=item.event_type.value,
                request_id=ctx.request_id,
                exc_info=True,
            )

    return CollectedEvents(
        stop_event=stop_event,
        tool_calls=tuple(tool_calls) if tool_calls is not None else None,
    )


def spawn_event_collector(
    callback_handler: CallbackHandlerFn,
    model: Model,
    ctx: ExecutionContext,
    capacity: int = EVENT_CHANNEL_CAPACITY,
) -> Tuple[EventSender, "asyncio.Task[CollectedEvents]"]:
    """Create the request's channel and start its collector task."""
    queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
    task = run_in_background(
        collect_events(queue, callback_handler, model, ctx),
        name=f"event-collector-{ctx.request_id or 'anonymous'}",
    )
    return EventSender(queue, ctx), task
