"""
Inference Gateway - Server-Sent Events

Encodes the streaming executor's (delta, usage) items as OpenAI-compatible
`chat.completion.chunk` events. A mid-stream failure closes the stream with
one error chunk; chunks already sent are not retracted.
"""

import json
import time
import uuid
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from ..core.errors import ErrorDetails, ErrorType, GatewayException, InfraError, create_stream_error_chunk
from ..core.models import ChatCompletionDelta, Usage, delta_to_dict
from ..observability.logging import get_logger

logger = get_logger("gateway.streaming")

SSE_DONE = "data: [DONE]\n\n"

StreamItem = Tuple[Optional[ChatCompletionDelta], Optional[Usage]]


def format_sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _usage_chunk(stream_id: str, model: str, created: int, usage: Usage) -> Dict[str, Any]:
    chunk = delta_to_dict(
        ChatCompletionDelta(id=stream_id, model=model, created=created),
        usage=usage,
    )
    # A usage-only chunk carries no choices
    chunk["choices"] = []
    return chunk


async def encode_sse_stream(
    items: AsyncIterator[StreamItem],
    model: str,
    request_id: str = "",
) -> AsyncIterator[str]:
    """
    Render stream items as SSE events, ending with `data: [DONE]`.

    Args:
        items: The streaming executor's output
        model: Caller-facing model name for items without a delta
        request_id: Used for errors that carry no request id yet
    """
    stream_id = f"chatcmpl-{uuid.uuid4().hex[:12]}"
    created = int(time.time())

    try:
        async for delta, usage in items:
            if delta is not None:
                stream_id = delta.id
                created = delta.created
                yield format_sse(delta_to_dict(delta, usage=usage))
            elif usage is not None:
                yield format_sse(_usage_chunk(stream_id, model, created, usage))
        yield SSE_DONE

    except GatewayException as e:
        yield create_stream_error_chunk(e, completion_id=stream_id, model=model)

    except Exception as e:
        logger.exception("Unexpected error while streaming", request_id=request_id)
        error = InfraError(
            ErrorDetails(
                code="stream_error",
                message=str(e) or type(e).__name__,
                type=ErrorType.INFRA,
                request_id=request_id,
                retryable=True
            ),
            status_code=500
        )
        yield create_stream_error_chunk(error, completion_id=stream_id, model=model)
