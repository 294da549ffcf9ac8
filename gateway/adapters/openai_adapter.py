"""
Inference Gateway - OpenAI Provider Adapter

Adapter for OpenAI's API and OpenAI-compatible endpoints (custom endpoint
bindings reuse it with their own base URL).
"""

from typing import Any, AsyncIterator, Dict, List

from .base import AdapterConfig, BaseAdapter
from ..core.errors import handle_openai_error
from ..core.models import (
    EmbeddingData,
    EmbeddingRequest,
    EmbeddingResponse,
    FinishReason,
    ImageData,
    ImageGenerationRequest,
    ImageGenerationResponse,
    Message,
    ModelInfo,
    ModelPricing,
    ProviderChunk,
    ProviderCompletion,
    ProviderKind,
    ProviderRequest,
    Role,
    ToolCallDelta,
    Usage,
    message_to_dict,
)
from ..tools.normalizer import tool_calls_from_openai, tools_for_openai

FINISH_REASON_MAP = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "tool_calls": FinishReason.TOOL_CALLS,
    "function_call": FinishReason.TOOL_CALLS,
    "content_filter": FinishReason.CONTENT_FILTER,
}


def _parse_usage(data: Dict[str, Any]) -> Usage:
    return Usage(
        prompt_tokens=data.get("prompt_tokens", 0),
        completion_tokens=data.get("completion_tokens", 0),
        total_tokens=data.get("total_tokens", 0),
    )


class OpenAIAdapter(BaseAdapter):
    """
    Adapter for OpenAI API.

    Supports:
    - Chat completions (GPT-4o, GPT-4o-mini, GPT-4)
    - Embeddings (text-embedding-3-small, text-embedding-3-large)
    - Image generation (DALL-E 3)
    - Tool/Function calling
    - Streaming
    """

    provider = ProviderKind.OPENAI
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    MODELS: List[ModelInfo] = [
        ModelInfo(
            id="openai/gpt-4o",
            provider=ProviderKind.OPENAI,
            name="gpt-4o",
            capabilities=["chat", "vision", "tools"],
            context_window=128000,
            max_output_tokens=16384,
            pricing=ModelPricing(input_per_1m_tokens=2.50, output_per_1m_tokens=10.00)
        ),
        ModelInfo(
            id="openai/gpt-4o-mini",
            provider=ProviderKind.OPENAI,
            name="gpt-4o-mini",
            capabilities=["chat", "vision", "tools"],
            context_window=128000,
            max_output_tokens=16384,
            pricing=ModelPricing(input_per_1m_tokens=0.15, output_per_1m_tokens=0.60)
        ),
        ModelInfo(
            id="openai/gpt-4",
            provider=ProviderKind.OPENAI,
            name="gpt-4",
            capabilities=["chat", "tools"],
            context_window=8192,
            max_output_tokens=8192,
            pricing=ModelPricing(input_per_1m_tokens=30.00, output_per_1m_tokens=60.00)
        ),
        ModelInfo(
            id="openai/text-embedding-3-small",
            provider=ProviderKind.OPENAI,
            name="text-embedding-3-small",
            capabilities=["embedding"],
            context_window=8191,
            max_output_tokens=0,
            pricing=ModelPricing(input_per_1m_tokens=0.02, output_per_1m_tokens=0)
        ),
        ModelInfo(
            id="openai/text-embedding-3-large",
            provider=ProviderKind.OPENAI,
            name="text-embedding-3-large",
            capabilities=["embedding"],
            context_window=8191,
            max_output_tokens=0,
            pricing=ModelPricing(input_per_1m_tokens=0.13, output_per_1m_tokens=0)
        ),
        ModelInfo(
            id="openai/dall-e-3",
            provider=ProviderKind.OPENAI,
            name="dall-e-3",
            capabilities=["image"],
            context_window=4000,
            max_output_tokens=0,
        ),
    ]

    def __init__(self, config: AdapterConfig):
        super().__init__(config)

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    async def chat_completion(
        self,
        request: ProviderRequest,
        request_id: str = ""
    ) -> ProviderCompletion:
        payload = self._build_chat_payload(request)
        data = await self._post_json("/chat/completions", payload, handle_openai_error, request_id)
        return self._parse_chat_response(data)

    async def chat_completion_stream(
        self,
        request: ProviderRequest,
        request_id: str = ""
    ) -> AsyncIterator[ProviderChunk]:
        payload = self._build_chat_payload(request)
        payload["stream"] = True
        payload["stream_options"] = {"include_usage": True}

        async for data in self._stream_data_lines(
            "/chat/completions", payload, handle_openai_error, request_id
        ):
            choices = data.get("choices") or []
            if choices:
                choice = choices[0]
                delta = choice.get("delta") or {}
                chunk = ProviderChunk(
                    content=delta.get("content") or None,
                    role=Role(delta["role"]) if delta.get("role") else None,
                    tool_calls=[
                        ToolCallDelta(
                            index=tc.get("index", 0),
                            id=tc.get("id"),
                            name=(tc.get("function") or {}).get("name"),
                            arguments=(tc.get("function") or {}).get("arguments") or "",
                        )
                        for tc in delta.get("tool_calls") or []
                    ] or None,
                    finish_reason=FINISH_REASON_MAP.get(choice.get("finish_reason") or ""),
                )
                if chunk.has_payload:
                    yield chunk
            if data.get("usage"):
                yield ProviderChunk(usage=_parse_usage(data["usage"]))

    async def embedding(
        self,
        request: EmbeddingRequest,
        request_id: str = ""
    ) -> EmbeddingResponse:
        payload: Dict[str, Any] = {
            "model": request.model,
            "input": request.input,
            "encoding_format": request.encoding_format,
        }
        if request.dimensions:
            payload["dimensions"] = request.dimensions
        if request.user:
            payload["user"] = request.user

        data = await self._post_json("/embeddings", payload, handle_openai_error, request_id)

        return EmbeddingResponse(
            data=[
                EmbeddingData(embedding=item["embedding"], index=item["index"])
                for item in data["data"]
            ],
            model=data.get("model", request.model),
            usage=_parse_usage(data.get("usage", {})),
        )

    async def image_generation(
        self,
        request: ImageGenerationRequest,
        request_id: str = ""
    ) -> ImageGenerationResponse:
        payload: Dict[str, Any] = {
            "model": request.model,
            "prompt": request.prompt,
            "n": request.n,
            "size": request.size,
            "quality": request.quality,
            "style": request.style,
            "response_format": request.response_format,
        }
        if request.user:
            payload["user"] = request.user

        data = await self._post_json("/images/generations", payload, handle_openai_error, request_id)

        return ImageGenerationResponse(
            created=data["created"],
            data=[
                ImageData(
                    url=item.get("url"),
                    b64_json=item.get("b64_json"),
                    revised_prompt=item.get("revised_prompt")
                )
                for item in data["data"]
            ]
        )

    # ============================================================
    # Private helper methods
    # ============================================================

    def _build_chat_payload(self, request: ProviderRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": self._convert_messages(request.messages),
        }

        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.top_p is not None:
            payload["top_p"] = request.top_p
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        if request.stop:
            payload["stop"] = request.stop
        if request.tools:
            payload["tools"] = tools_for_openai(request.tools)
            if request.tool_choice:
                payload["tool_choice"] = request.tool_choice
        if request.response_format:
            payload["response_format"] = request.response_format
        if request.user:
            payload["user"] = request.user

        return payload

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        # The canonical message shape is OpenAI's
        return [message_to_dict(msg) for msg in messages]

    def _parse_chat_response(self, data: Dict[str, Any]) -> ProviderCompletion:
        choice = data["choices"][0]
        message_data = choice.get("message") or {}

        tool_calls = None
        if message_data.get("tool_calls"):
            tool_calls = tool_calls_from_openai(message_data["tool_calls"])

        return ProviderCompletion(
            content=message_data.get("content"),
            finish_reason=FINISH_REASON_MAP.get(choice.get("finish_reason") or "stop", FinishReason.STOP),
            usage=_parse_usage(data.get("usage", {})),
            tool_calls=tool_calls,
            provider_request_id=data.get("id"),
        )
