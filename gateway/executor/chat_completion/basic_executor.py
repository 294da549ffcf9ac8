"""
Inference Gateway - Batch Executor

Drives a model instance to completion, waits for the event collector and
assembles one aggregated response. Fails as a unit: an upstream error
aborts the call and nothing partial is returned.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List

from ...core.errors import CustomError, GatewayException
from ...core.models import ChatCompletionResponse, GatewayMetadata
from ...engine.context import ExecutionContext
from ...engine.instance import ModelInstance
from ...engine.message_mapper import GatewayMessage
from ...engine.pipeline import CollectedEvents, EventSender


@dataclass(frozen=True)
class AggregatedCompletion:
    """The response plus what the event collector recorded for it."""
    response: ChatCompletionResponse
    events: CollectedEvents


async def execute(
    instance: ModelInstance,
    model: str,
    provider_name: str,
    messages: List[GatewayMessage],
    sender: EventSender,
    collector: "asyncio.Task[CollectedEvents]",
    ctx: ExecutionContext,
    started: float,
) -> AggregatedCompletion:
    try:
        completion = await instance.invoke(messages, sender, ctx)
    except GatewayException:
        raise
    except Exception as e:
        raise CustomError(str(e) or type(e).__name__, request_id=ctx.request_id)
    finally:
        await sender.close()
        await instance.close()

    collected = await collector

    finish_reason = completion.finish_reason
    cost_usd = None
    if collected.stop_event is not None:
        finish_reason = collected.stop_event.finish_reason
        cost_usd = collected.stop_event.cost_usd

    tags: Dict[str, str] = dict(ctx.tags)
    response = ChatCompletionResponse.create(
        content=completion.content,
        model=model,
        provider=provider_name,
        usage=completion.usage,
        finish_reason=finish_reason,
        tool_calls=completion.tool_calls,
        metadata=GatewayMetadata(
            request_id=ctx.request_id,
            latency_ms=int((time.monotonic() - started) * 1000),
            cost_usd=cost_usd,
            tags=tags,
        ),
    )
    return AggregatedCompletion(response=response, events=collected)
