"""
Inference Gateway - Provider Adapter Base

Abstract base class for upstream provider adapters.
Each provider kind (OpenAI, Anthropic, Google, stub) implements this interface.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from ..core.errors import GatewayException, UnsupportedOperationError
from ..core.models import (
    EmbeddingRequest,
    EmbeddingResponse,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ModelInfo,
    ProviderChunk,
    ProviderCompletion,
    ProviderKind,
    ProviderRequest,
)

ErrorHandler = Callable[[Exception, str], GatewayException]


@dataclass
class AdapterConfig:
    """Configuration for a provider adapter."""
    api_key: str
    base_url: Optional[str] = None
    timeout: int = 60
    extra_headers: Dict[str, str] = field(default_factory=dict)
    transport: Optional[httpx.AsyncBaseTransport] = None


class BaseAdapter(ABC):
    """
    Abstract base class for provider adapters.

    The adapter is responsible for:
    1. Converting the provider-neutral request into the provider's format
    2. Making the HTTP call
    3. Converting the provider response into ProviderCompletion/ProviderChunk
    4. Translating provider failures into gateway exceptions

    Streams end with a usage-only chunk when the provider reports usage.
    """

    provider: ProviderKind
    DEFAULT_BASE_URL: str = ""
    MODELS: List[ModelInfo] = []

    def __init__(self, config: AdapterConfig):
        self.config = config
        self.base_url = config.base_url or self.DEFAULT_BASE_URL
        headers = {"Content-Type": "application/json"}
        headers.update(self._auth_headers())
        headers.update(config.extra_headers)
        client_kwargs: Dict[str, Any] = {
            "base_url": self.base_url,
            "headers": headers,
            "timeout": config.timeout,
        }
        if config.transport is not None:
            client_kwargs["transport"] = config.transport
        self.client = httpx.AsyncClient(**client_kwargs)

    @abstractmethod
    def _auth_headers(self) -> Dict[str, str]:
        """Provider-specific authentication headers."""
        pass

    @abstractmethod
    async def chat_completion(
        self,
        request: ProviderRequest,
        request_id: str = ""
    ) -> ProviderCompletion:
        """Run one non-streamed chat turn."""
        pass

    @abstractmethod
    def chat_completion_stream(
        self,
        request: ProviderRequest,
        request_id: str = ""
    ) -> AsyncIterator[ProviderChunk]:
        """
        Run one streamed chat turn.

        Errors before the first chunk and mid-stream are both raised as
        gateway exceptions; chunks already yielded stand.
        """
        pass

    async def embedding(
        self,
        request: EmbeddingRequest,
        request_id: str = ""
    ) -> EmbeddingResponse:
        raise UnsupportedOperationError(self.provider.value, "embeddings", request_id)

    async def image_generation(
        self,
        request: ImageGenerationRequest,
        request_id: str = ""
    ) -> ImageGenerationResponse:
        raise UnsupportedOperationError(self.provider.value, "image generation", request_id)

    @classmethod
    def list_models(cls) -> List[ModelInfo]:
        """Built-in catalogue entries for this provider."""
        return list(cls.MODELS)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    # ============================================================
    # Helper methods for subclasses
    # ============================================================

    async def _post_json(
        self,
        path: str,
        payload: Dict[str, Any],
        handler: ErrorHandler,
        request_id: str
    ) -> Dict[str, Any]:
        try:
            response = await self.client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise handler(e, request_id)

    async def _stream_data_lines(
        self,
        path: str,
        payload: Dict[str, Any],
        handler: ErrorHandler,
        request_id: str,
        params: Optional[Dict[str, str]] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """POST and yield each decoded `data: ` SSE payload until [DONE]."""
        try:
            async with self.client.stream("POST", path, json=payload, params=params) as response:
                if response.status_code >= 400:
                    await response.aread()
                    response.raise_for_status()

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data_str = line[5:].strip()
                    if not data_str:
                        continue
                    if data_str == "[DONE]":
                        break
                    try:
                        yield json.loads(data_str)
                    except json.JSONDecodeError:
                        continue
        except httpx.HTTPError as e:
            raise handler(e, request_id)
