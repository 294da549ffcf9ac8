"""
Inference Gateway - Streaming Executor

Drives a model instance in streaming mode. Every provider chunk becomes
exactly one (delta, usage) item; a usage-only chunk becomes (None, usage).
The event collector runs alongside and is never awaited here.
"""

import asyncio
import time
import uuid
import weakref
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Tuple

from ...core.errors import CustomError, GatewayException
from ...core.models import ChatCompletionDelta, ProviderChunk, Usage
from ...engine.context import ExecutionContext
from ...engine.instance import ModelInstance
from ...engine.message_mapper import GatewayMessage
from ...engine.pipeline import CollectedEvents, EventSender, run_in_background
from ...observability.logging import get_logger

logger = get_logger("gateway.executor.stream")

StreamItem = Tuple[Optional[ChatCompletionDelta], Optional[Usage]]


@dataclass
class StreamedCompletion:
    """
    Lazy, finite, non-restartable sequence of stream items.

    Call aclose() when abandoning the sequence early so the event channel
    and the provider connection are released. A sequence that is dropped
    without either is released once it is garbage collected.
    """
    chunks: AsyncIterator[StreamItem]
    collector: "asyncio.Task[CollectedEvents]"
    _release: Callable[[], Awaitable[None]] = field(repr=False)

    def __aiter__(self) -> AsyncIterator[StreamItem]:
        return self.chunks

    async def aclose(self):
        await self.chunks.aclose()
        await self._release()


def _release_dropped(loop: asyncio.AbstractEventLoop, release: Callable[[], Awaitable[None]]):
    if loop.is_closed():
        return
    loop.call_soon_threadsafe(lambda: run_in_background(release(), name="stream-release"))


def to_delta(chunk: ProviderChunk, stream_id: str, model: str, created: int) -> Optional[ChatCompletionDelta]:
    if not chunk.has_payload:
        return None
    return ChatCompletionDelta(
        id=stream_id,
        model=model,
        created=created,
        role=chunk.role,
        content=chunk.content,
        tool_calls=chunk.tool_calls,
        finish_reason=chunk.finish_reason,
    )


def stream_completion(
    instance: ModelInstance,
    model: str,
    messages: List[GatewayMessage],
    sender: EventSender,
    collector: "asyncio.Task[CollectedEvents]",
    ctx: ExecutionContext,
) -> StreamedCompletion:
    """
    Wrap a model instance's stream.

    Args:
        instance: The bound model instance
        model: Caller-facing model name stamped on every delta
        messages: Mapped conversation
        sender: Sending end of the request's event channel
        collector: The running event collector
        ctx: Request execution context
    """
    released = False

    async def release():
        nonlocal released
        if released:
            return
        released = True
        sender.close_nowait()
        await instance.close()

    async def generate() -> AsyncIterator[StreamItem]:
        stream_id = f"chatcmpl-{uuid.uuid4().hex[:12]}"
        created = int(time.time())
        produced = 0
        try:
            async for chunk in instance.invoke_stream(messages, sender, ctx):
                produced += 1
                yield to_delta(chunk, stream_id, model, created), chunk.usage
        except GatewayException as e:
            logger.warning("Stream terminated by error", items_delivered=produced, request_id=ctx.request_id)
            raise ctx.record_error(e)
        except Exception as e:
            raise ctx.record_error(CustomError(str(e) or type(e).__name__, request_id=ctx.request_id))
        finally:
            await release()

    outcome = StreamedCompletion(chunks=generate(), collector=collector, _release=release)
    # An unstarted generator has no finally to run
    weakref.finalize(outcome, _release_dropped, asyncio.get_running_loop(), release)
    return outcome
