"""
Inference Gateway - Stub Provider Adapter

Deterministic in-process adapter used for smoke/integration testing.
No network calls, no external provider keys required.
"""

from typing import AsyncIterator, Dict, List, Optional

from .base import AdapterConfig, BaseAdapter
from ..core.models import (
    EmbeddingData,
    EmbeddingRequest,
    EmbeddingResponse,
    FinishReason,
    FunctionCall,
    ImageData,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ModelInfo,
    ModelPricing,
    ProviderChunk,
    ProviderCompletion,
    ProviderKind,
    ProviderRequest,
    Role,
    ToolCall,
    ToolCallDelta,
    Usage,
)

STUB_PREFIX = "stub:"


def _last_user_text(request: ProviderRequest) -> str:
    for msg in reversed(request.messages):
        if msg.role == Role.USER:
            return msg.text()
    return ""


def _pending_tool_call(request: ProviderRequest) -> Optional[ToolCall]:
    """Call the first declared tool once, until a tool result comes back."""
    if not request.tools or request.tool_choice == "none":
        return None
    if any(msg.role == Role.TOOL for msg in request.messages):
        return None
    return ToolCall(
        id="call_stub_0",
        function=FunctionCall(name=request.tools[0].function.name, arguments="{}"),
    )


class StubAdapter(BaseAdapter):
    """Deterministic adapter for tests/smoke checks."""

    provider = ProviderKind.STUB

    MODELS = [
        ModelInfo(
            id="stub/echo",
            provider=ProviderKind.STUB,
            name="echo",
            capabilities=["chat", "tools"],
            context_window=8192,
            max_output_tokens=1024,
            pricing=ModelPricing(input_per_1m_tokens=1.0, output_per_1m_tokens=2.0),
        ),
        ModelInfo(
            id="stub/embed",
            provider=ProviderKind.STUB,
            name="embed",
            capabilities=["embedding"],
            context_window=8192,
            max_output_tokens=0,
            pricing=ModelPricing(input_per_1m_tokens=0.5),
        ),
        ModelInfo(
            id="stub/image",
            provider=ProviderKind.STUB,
            name="image",
            capabilities=["image"],
            context_window=0,
            max_output_tokens=0,
        ),
    ]

    def __init__(self, config: AdapterConfig):
        super().__init__(config)

    def _auth_headers(self) -> Dict[str, str]:
        return {}

    async def chat_completion(
        self,
        request: ProviderRequest,
        request_id: str = "",
    ) -> ProviderCompletion:
        usage = Usage(prompt_tokens=8, completion_tokens=6)
        call = _pending_tool_call(request)
        if call is not None:
            return ProviderCompletion(
                content=None,
                finish_reason=FinishReason.TOOL_CALLS,
                usage=usage,
                tool_calls=[call],
                provider_request_id="stub-req",
            )
        return ProviderCompletion(
            content=f"{STUB_PREFIX} {_last_user_text(request)}".rstrip(),
            finish_reason=FinishReason.STOP,
            usage=usage,
            provider_request_id="stub-req",
        )

    async def chat_completion_stream(
        self,
        request: ProviderRequest,
        request_id: str = "",
    ) -> AsyncIterator[ProviderChunk]:
        yield ProviderChunk(role=Role.ASSISTANT)

        call = _pending_tool_call(request)
        if call is not None:
            yield ProviderChunk(tool_calls=[
                ToolCallDelta(index=0, id=call.id, name=call.function.name)
            ])
            yield ProviderChunk(tool_calls=[
                ToolCallDelta(index=0, arguments=call.function.arguments)
            ])
            yield ProviderChunk(finish_reason=FinishReason.TOOL_CALLS)
        else:
            yield ProviderChunk(content=STUB_PREFIX)
            text = _last_user_text(request)
            if text:
                yield ProviderChunk(content=f" {text}")
            yield ProviderChunk(finish_reason=FinishReason.STOP)

        yield ProviderChunk(usage=Usage(prompt_tokens=8, completion_tokens=6))

    async def embedding(
        self,
        request: EmbeddingRequest,
        request_id: str = "",
    ) -> EmbeddingResponse:
        inputs = request.input if isinstance(request.input, list) else [request.input]
        return EmbeddingResponse(
            data=[
                EmbeddingData(embedding=[0.01, 0.02, 0.03], index=i)
                for i in range(len(inputs))
            ],
            model=request.model,
            usage=Usage(prompt_tokens=3 * len(inputs), completion_tokens=0),
        )

    async def image_generation(
        self,
        request: ImageGenerationRequest,
        request_id: str = "",
    ) -> ImageGenerationResponse:
        return ImageGenerationResponse(
            data=[
                ImageData(url=f"https://example.test/stub-{i}.png", revised_prompt=request.prompt)
                for i in range(request.n)
            ]
        )

    @classmethod
    def list_models(cls) -> List[ModelInfo]:
        return list(cls.MODELS)
