"""
Inference Gateway - Embeddings Executor

A single provider call wrapped in the same resolution, naming and event
pipeline as chat completions.
"""

from dataclasses import replace
from typing import Optional

from ..config import GatewaySettings, get_settings
from ..core.credentials import Credentials
from ..core.errors import GatewayException, InvalidRequestError
from ..core.models import EmbeddingRequest, EmbeddingResponse, FinishReason
from ..engine.context import ExecutionContext
from ..engine.definition import Model, ModelType
from ..engine.events import CallbackHandlerFn, LlmStartEvent, LlmStopEvent
from ..engine.instance import init_adapter
from ..engine.pipeline import spawn_event_collector
from ..pricing import CostCalculator
from ..registry import AvailableModels, find_model_by_full_name


async def execute(
    request: EmbeddingRequest,
    callback_handler: CallbackHandlerFn,
    ctx: ExecutionContext,
    available_models: AvailableModels,
    cost_calculator: Optional[CostCalculator] = None,
    credentials: Optional[Credentials] = None,
    settings: Optional[GatewaySettings] = None,
) -> EmbeddingResponse:
    settings = settings or get_settings()
    try:
        resolved = find_model_by_full_name(request.model, available_models, ctx.request_id)
        if resolved.model_type != ModelType.EMBEDDING:
            raise InvalidRequestError(
                f"Model '{request.model}' does not support embeddings",
                param="model",
                request_id=ctx.request_id,
                code="unsupported_operation",
            )
        binding = resolved.inference_provider
        caller_model = request.model
        ctx.set_attribute("gateway.model", caller_model)
        ctx.set_attribute("gateway.provider", binding.provider.value)

        adapter = init_adapter(binding.provider, credentials, binding.endpoint, settings)
        metadata = Model(
            name=caller_model,
            description="Generated model for embeddings",
            provider_name=binding.provider.value,
            model_type=ModelType.EMBEDDING,
            credentials=credentials,
        )
        sender, collector = spawn_event_collector(callback_handler, metadata, ctx)

        inputs = request.input if isinstance(request.input, list) else [request.input]
        try:
            await sender.send(LlmStartEvent(
                provider_name=binding.provider.value,
                model_name=binding.model_name,
                input=inputs[0] if inputs else None,
            ))
            response = await adapter.embedding(replace(request, model=binding.model_name), ctx.request_id)
            cost = cost_calculator.calculate_cost(caller_model, response.usage) if cost_calculator else None
            await sender.send(LlmStopEvent(
                finish_reason=FinishReason.STOP,
                usage=response.usage,
                cost_usd=cost,
            ))
        finally:
            await sender.close()
            await adapter.close()
            await collector

        response.model = caller_model
        return response

    except GatewayException as e:
        raise ctx.record_error(e)
