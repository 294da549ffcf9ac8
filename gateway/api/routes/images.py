"""
Inference Gateway - Image Generation API

Compatible with OpenAI's Images API.
"""

from dataclasses import asdict
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...config import GatewaySettings
from ...core.credentials import Credentials
from ...core.models import ImageGenerationRequest as InternalRequest
from ...engine.events import CallbackHandlerFn
from ...executor import image_generation
from ...registry import AvailableModels
from ..dependencies import (
    add_standard_headers,
    extract_tags,
    get_available_models,
    get_callback_handler,
    get_credentials,
    get_gateway_settings,
    start_execution_context,
)
from ..models import ImageGenerationRequest


router = APIRouter(prefix="/v1", tags=["images"])


@router.post("/images/generations")
async def create_image(
    request: Request,
    body: ImageGenerationRequest,
    tags: Dict[str, str] = Depends(extract_tags),
    available_models: AvailableModels = Depends(get_available_models),
    callback_handler: CallbackHandlerFn = Depends(get_callback_handler),
    credentials: Optional[Credentials] = Depends(get_credentials),
    settings: GatewaySettings = Depends(get_gateway_settings),
):
    """Generate images from a text prompt."""
    ctx = start_execution_context(request, "image_generation", tags)
    try:
        response = await image_generation.execute(
            InternalRequest(
                model=body.model,
                prompt=body.prompt,
                n=body.n,
                size=body.size,
                quality=body.quality,
                style=body.style,
                response_format=body.response_format,
                user=body.user,
            ),
            callback_handler,
            ctx,
            available_models,
            credentials=credentials,
            settings=settings,
        )
    finally:
        ctx.end()

    return JSONResponse(
        content={
            "created": response.created,
            "data": [
                {k: v for k, v in asdict(item).items() if v is not None}
                for item in response.data
            ],
        },
        headers=add_standard_headers(ctx, model=body.model),
    )
