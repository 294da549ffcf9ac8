"""
Inference Gateway - Embeddings API

Compatible with OpenAI's Embeddings API.
"""

from dataclasses import asdict
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...config import GatewaySettings
from ...core.credentials import Credentials
from ...core.models import EmbeddingRequest as InternalRequest, usage_to_dict
from ...engine.events import CallbackHandlerFn
from ...executor import embeddings
from ...pricing import CostCalculator
from ...registry import AvailableModels
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
from ..models import EmbeddingRequest


router = APIRouter(prefix="/v1", tags=["embeddings"])


@router.post("/embeddings")
async def create_embedding(
    request: Request,
    body: EmbeddingRequest,
    tags: Dict[str, str] = Depends(extract_tags),
    available_models: AvailableModels = Depends(get_available_models),
    cost_calculator: CostCalculator = Depends(get_cost_calculator),
    callback_handler: CallbackHandlerFn = Depends(get_callback_handler),
    credentials: Optional[Credentials] = Depends(get_credentials),
    settings: GatewaySettings = Depends(get_gateway_settings),
):
    """
    Create embeddings for the input text.

    **Models:**
    - `openai/text-embedding-3-small`
    - `openai/text-embedding-3-large`
    - `google/text-embedding-004`
    """
    ctx = start_execution_context(request, "embeddings", tags)
    try:
        response = await embeddings.execute(
            InternalRequest(
                model=body.model,
                input=body.input,
                encoding_format=body.encoding_format,
                dimensions=body.dimensions,
                user=body.user,
            ),
            callback_handler,
            ctx,
            available_models,
            cost_calculator=cost_calculator,
            credentials=credentials,
            settings=settings,
        )
    finally:
        ctx.end()

    return JSONResponse(
        content={
            "object": response.object,
            "data": [asdict(item) for item in response.data],
            "model": response.model,
            "usage": usage_to_dict(response.usage),
        },
        headers=add_standard_headers(ctx, model=body.model),
    )
