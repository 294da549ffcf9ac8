"""
Inference Gateway - Models API

Endpoints for listing and getting model information.
Compatible with OpenAI's Models API.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from ...registry import AvailableModels, ModelDefinition, find_model_by_full_name
from ..dependencies import get_available_models, get_request_id


router = APIRouter(prefix="/v1", tags=["models"])


def model_to_dict(definition: ModelDefinition) -> Dict[str, Any]:
    info = definition.info
    return {
        "id": info.id,
        "object": "model",
        "provider": info.provider.value,
        "name": info.name,
        "type": definition.model_type.value,
        "capabilities": info.capabilities,
        "context_window": info.context_window,
        "max_output_tokens": info.max_output_tokens,
        "pricing": {
            "input_per_1m_tokens": info.pricing.input_per_1m_tokens,
            "output_per_1m_tokens": info.pricing.output_per_1m_tokens,
        },
    }


@router.get("/models")
async def list_models(
    request: Request,
    provider: Optional[str] = Query(
        None,
        description="Filter by provider (openai, anthropic, google)"
    ),
    capability: Optional[str] = Query(
        None,
        description="Filter by capability (chat, vision, tools, embedding, image)"
    ),
    available_models: AvailableModels = Depends(get_available_models),
):
    """
    List all available models.

    **Filters:**
    - `provider`: Filter by provider name (openai, anthropic, google)
    - `capability`: Filter by capability (chat, vision, tools, embedding, image)

    **Example:**
    ```
    GET /v1/models?provider=openai&capability=chat
    ```
    """
    models = list(available_models)

    if provider:
        models = [m for m in models if m.info.provider.value == provider]

    if capability:
        models = [m for m in models if m.info.supports(capability)]

    return JSONResponse(
        content={
            "object": "list",
            "data": [model_to_dict(m) for m in models],
        },
        headers={"X-Request-Id": get_request_id(request)},
    )


@router.get("/models/{model_id:path}")
async def get_model(
    request: Request,
    model_id: str,
    available_models: AvailableModels = Depends(get_available_models),
):
    """
    Get information about a specific model by its full ID (e.g. `openai/gpt-4o`).
    """
    request_id = get_request_id(request)
    definition = find_model_by_full_name(model_id, available_models, request_id)
    return JSONResponse(
        content=model_to_dict(definition),
        headers={"X-Request-Id": request_id},
    )
