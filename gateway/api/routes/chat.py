"""
Inference Gateway - Chat Completions API

Compatible with OpenAI's Chat Completions API. The route converts the
validated body into the engine's request, runs the executor and renders
either a JSON body or an SSE stream.
"""

from typing import AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ...config import GatewaySettings
from ...core.credentials import Credentials
from ...core.models import (
    ChatCompletionRequest as InternalRequest,
    ChatMessage,
    FunctionDefinition,
    ToolDefinition as InternalTool,
    response_to_dict,
)
from ...engine.context import ExecutionContext
from ...engine.events import CallbackHandlerFn
from ...executor import chat_completion
from ...executor.chat_completion import StreamedCompletion
from ...pricing import CostCalculator
from ...registry import AvailableModels
from ...streaming.sse import encode_sse_stream
from ..dependencies import (
    add_standard_headers,
    extract_tags,
    get_available_models,
    get_callback_handler,
    get_cost_calculator,
    get_credentials,
    get_gateway_settings,
    start_execution_context,
)
from ..models import ChatCompletionRequest, MessageInput, ToolDefinition


router = APIRouter(prefix="/v1", tags=["chat"])


# ============================================================
# Conversion Helpers
# ============================================================

def convert_message(msg: MessageInput) -> ChatMessage:
    """Convert API message to the engine's caller message."""
    return ChatMessage(
        role=msg.role,
        content=msg.content,
        name=msg.name,
        tool_call_id=msg.tool_call_id,
        tool_calls=msg.tool_calls,
    )


def convert_tool(tool: ToolDefinition) -> InternalTool:
    return InternalTool(
        type=tool.type,
        function=FunctionDefinition(
            name=tool.function.name,
            description=tool.function.description,
            parameters=tool.function.parameters,
        ),
    )


def to_internal_request(body: ChatCompletionRequest) -> InternalRequest:
    tools: Optional[List[InternalTool]] = [convert_tool(t) for t in body.tools] if body.tools else None
    tool_choice = body.tool_choice
    if tool_choice is not None and not isinstance(tool_choice, str):
        tool_choice = tool_choice.model_dump()

    return InternalRequest(
        model=body.model,
        messages=[convert_message(m) for m in body.messages],
        temperature=body.temperature,
        top_p=body.top_p,
        max_tokens=body.max_tokens,
        stop=body.stop,
        stream=body.stream,
        tools=tools,
        tool_choice=tool_choice,
        user=body.user,
        response_format=body.response_format,
    )


# ============================================================
# Chat Completions Endpoint
# ============================================================

@router.post("/chat/completions")
async def create_chat_completion(
    request: Request,
    body: ChatCompletionRequest,
    tags: Dict[str, str] = Depends(extract_tags),
    available_models: AvailableModels = Depends(get_available_models),
    cost_calculator: CostCalculator = Depends(get_cost_calculator),
    callback_handler: CallbackHandlerFn = Depends(get_callback_handler),
    credentials: Optional[Credentials] = Depends(get_credentials),
    settings: GatewaySettings = Depends(get_gateway_settings),
):
    """
    Create a chat completion.

    **Model Format:**
    - `openai/gpt-4o` - Specific provider and model
    - `anthropic/claude-3-5-sonnet` - Anthropic model
    - `google/gemini-1.5-pro` - Google model

    **Streaming:**
    Set `stream: true` to receive Server-Sent Events (SSE).
    """
    ctx = start_execution_context(request, "chat_completion", tags)

    try:
        outcome = await chat_completion.execute(
            to_internal_request(body),
            callback_handler,
            ctx,
            available_models,
            cost_calculator=cost_calculator,
            credentials=credentials,
            settings=settings,
        )
    except Exception:
        ctx.end()
        raise

    resolved = available_models.get(body.model)
    provider = resolved.info.provider.value if resolved else None

    if isinstance(outcome, StreamedCompletion):
        return StreamingResponse(
            _stream(outcome, ctx, body.model),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                **add_standard_headers(ctx, provider=provider, model=body.model),
            },
        )

    ctx.end()
    return JSONResponse(
        content=response_to_dict(outcome.response),
        headers=add_standard_headers(ctx, provider=provider, model=body.model),
    )


async def _stream(
    outcome: StreamedCompletion,
    ctx: ExecutionContext,
    model: str,
) -> AsyncIterator[str]:
    try:
        async for chunk in encode_sse_stream(outcome.chunks, model, ctx.request_id):
            yield chunk
    finally:
        await outcome.aclose()
        ctx.end()
