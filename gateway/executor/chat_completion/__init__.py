"""
Inference Gateway - Chat Completion Execution

Engine dispatch for one chat completion request:

    resolve -> rewrite model name -> tool set + execution plan ->
    model instance -> message mapping -> event channel + collector ->
    stream or batch

Resolution and construction failures happen before any channel or task
exists. The return type tells the two response protocols apart.
"""

import time
import uuid
from dataclasses import replace
from typing import Optional, Union

from ...config import GatewaySettings, get_settings
from ...core.credentials import Credentials
from ...core.errors import GatewayException
from ...core.models import ChatCompletionRequest
from ...engine.context import ExecutionContext
from ...engine.definition import (
    CompletionEngineParams,
    CompletionModelDefinition,
    CompletionModelParams,
    ExecutionOptions,
    InputArgs,
    Model,
    ModelType,
    Prompt,
)
from ...engine.events import CallbackHandlerFn
from ...engine.instance import init_completion_model_instance
from ...engine.message_mapper import MessageMapper
from ...engine.pipeline import spawn_event_collector
from ...observability.logging import get_logger
from ...pricing import CostCalculator
from ...registry import AvailableModels, find_model_by_full_name
from ...tools.capability import build_tool_set
from . import basic_executor, stream_executor
from .basic_executor import AggregatedCompletion
from .stream_executor import StreamedCompletion, StreamItem

logger = get_logger("gateway.executor.chat")

ChatCompletionOutcome = Union[StreamedCompletion, AggregatedCompletion]

__all__ = [
    "AggregatedCompletion",
    "ChatCompletionOutcome",
    "StreamedCompletion",
    "StreamItem",
    "execute",
]


async def execute(
    request: ChatCompletionRequest,
    callback_handler: CallbackHandlerFn,
    ctx: ExecutionContext,
    available_models: AvailableModels,
    cost_calculator: Optional[CostCalculator] = None,
    credentials: Optional[Credentials] = None,
    settings: Optional[GatewaySettings] = None,
) -> ChatCompletionOutcome:
    """
    Execute a chat completion.

    Args:
        request: Decoded request; `model` is the caller-facing name
        callback_handler: Process-wide event sink
        ctx: Request execution context (span, tags, request id)
        available_models: Model catalogue
        cost_calculator: Prices usage on the stop event
        credentials: Per-request provider credentials, if any
        settings: Gateway settings (defaults to the process settings)

    Returns:
        StreamedCompletion when request.stream is set, else AggregatedCompletion

    Raises:
        ModelNotFoundError, MessageMappingError, CustomError, UpstreamError
    """
    settings = settings or get_settings()
    started = time.monotonic()

    try:
        resolved = find_model_by_full_name(request.model, available_models, ctx.request_id)
        binding = resolved.inference_provider
        caller_model = request.model
        ctx.set_attribute("gateway.model", caller_model)
        ctx.set_attribute("gateway.provider", binding.provider.value)
        ctx.set_attribute("gateway.upstream_model", binding.model_name)

        # Providers only ever see their own model name
        request = replace(request, model=binding.model_name)
        user_id = request.user or uuid.uuid4().hex

        tool_set = build_tool_set(request.tools)

        metadata = Model(
            name=caller_model,
            description="Generated model for chat completion",
            provider_name=binding.provider.value,
            model_type=ModelType.COMPLETIONS,
            model_params={
                k: v for k, v in {
                    "temperature": request.temperature,
                    "top_p": request.top_p,
                    "max_tokens": request.max_tokens,
                }.items() if v is not None
            },
            execution_options=ExecutionOptions(max_tool_iterations=settings.max_tool_iterations),
            tools=tool_set.descriptors,
            response_schema=request.response_format,
            credentials=credentials,
        )
        definition = CompletionModelDefinition(
            name=caller_model,
            model_params=CompletionModelParams(
                engine=CompletionEngineParams.from_request(
                    binding.provider, request, binding.endpoint, credentials
                ),
                provider_name=binding.provider.value,
            ),
            input_args=InputArgs(),
            prompt=Prompt.empty(),
            tools=tool_set.descriptors,
            metadata=metadata,
        )

        instance = init_completion_model_instance(
            definition,
            tool_set.capabilities,
            cost_calculator,
            binding.endpoint,
            settings,
        )

        try:
            messages = MessageMapper(binding.model_name, user_id, ctx.request_id).map_all(request.messages)
        except GatewayException:
            await instance.close()
            raise

        sender, collector = spawn_event_collector(callback_handler, metadata, ctx)

        logger.info(
            "Executing chat completion",
            model=caller_model,
            provider=binding.provider.value,
            stream=request.stream,
            message_count=len(messages),
            tool_count=len(tool_set.descriptors),
            request_id=ctx.request_id,
        )

        if request.stream:
            return stream_executor.stream_completion(
                instance, caller_model, messages, sender, collector, ctx
            )

        return await basic_executor.execute(
            instance,
            caller_model,
            binding.provider.value,
            messages,
            sender,
            collector,
            ctx,
            started,
        )

    except GatewayException as e:
        raise ctx.record_error(e)
