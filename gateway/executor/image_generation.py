"""
Inference Gateway - Image Generation Executor

Same shape as the embeddings executor, with image model metadata.
"""

from dataclasses import replace
from typing import Optional

from ..config import GatewaySettings, get_settings
from ..core.credentials import Credentials
from ..core.errors import GatewayException, InvalidRequestError
from ..core.models import FinishReason, ImageGenerationRequest, ImageGenerationResponse
from ..engine.context import ExecutionContext
from ..engine.definition import Model, ModelType
from ..engine.events import CallbackHandlerFn, LlmStartEvent, LlmStopEvent
from ..engine.instance import init_adapter
from ..engine.pipeline import spawn_event_collector
from ..registry import AvailableModels, find_model_by_full_name


async def execute(
    request: ImageGenerationRequest,
    callback_handler: CallbackHandlerFn,
    ctx: ExecutionContext,
    available_models: AvailableModels,
    credentials: Optional[Credentials] = None,
    settings: Optional[GatewaySettings] = None,
) -> ImageGenerationResponse:
    settings = settings or get_settings()
    try:
        resolved = find_model_by_full_name(request.model, available_models, ctx.request_id)
        if resolved.model_type != ModelType.IMAGE:
            raise InvalidRequestError(
                f"Model '{request.model}' does not support image generation",
                param="model",
                request_id=ctx.request_id,
                code="unsupported_operation",
            )
        binding = resolved.inference_provider
        ctx.set_attribute("gateway.model", request.model)
        ctx.set_attribute("gateway.provider", binding.provider.value)

        adapter = init_adapter(binding.provider, credentials, binding.endpoint, settings)
        metadata = Model(
            name=request.model,
            description="Generated model for image generation",
            provider_name=binding.provider.value,
            model_type=ModelType.IMAGE,
            credentials=credentials,
        )
        sender, collector = spawn_event_collector(callback_handler, metadata, ctx)

        try:
            await sender.send(LlmStartEvent(
                provider_name=binding.provider.value,
                model_name=binding.model_name,
                input=request.prompt,
            ))
            response = await adapter.image_generation(
                replace(request, model=binding.model_name), ctx.request_id
            )
            await sender.send(LlmStopEvent(finish_reason=FinishReason.STOP))
        finally:
            await sender.close()
            await adapter.close()
            await collector

        return response

    except GatewayException as e:
        raise ctx.record_error(e)
