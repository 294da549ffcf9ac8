"""
Inference Gateway - Core Data Models

Provider-neutral data models shared by the engine, the adapters and the
HTTP layer.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union


# ============================================================
# Enums
# ============================================================

class ProviderKind(str, Enum):
    """Supported upstream provider kinds."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    STUB = "stub"


class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    """Completion finish reasons."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


class ContentType(str, Enum):
    """Content part types."""
    TEXT = "text"
    IMAGE_URL = "image_url"


# ============================================================
# Content Parts (for multimodal)
# ============================================================

@dataclass
class ImageUrl:
    """Image URL for vision models."""
    url: str
    detail: Literal["low", "high", "auto"] = "auto"


@dataclass
class TextContent:
    """Text content part."""
    type: Literal["text"] = "text"
    text: str = ""


@dataclass
class ImageContent:
    """Image content part."""
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl = field(default_factory=lambda: ImageUrl(""))


ContentPart = Union[TextContent, ImageContent]


# ============================================================
# Tool Calling
# ============================================================

@dataclass
class FunctionDefinition:
    """Function definition for tool calling."""
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolDefinition:
    """Caller-declared tool."""
    type: Literal["function"] = "function"
    function: FunctionDefinition = field(default_factory=lambda: FunctionDefinition(""))


@dataclass
class FunctionCall:
    """Function call made by the model."""
    name: str
    arguments: str  # JSON string


@dataclass
class ToolCall:
    """Tool call in response."""
    id: str
    type: Literal["function"] = "function"
    function: FunctionCall = field(default_factory=lambda: FunctionCall("", ""))


@dataclass
class ToolCallDelta:
    """Incremental tool call fragment inside a stream."""
    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""


ToolChoice = Union[Literal["auto", "none", "required"], Dict[str, Any]]


# ============================================================
# Messages
# ============================================================

@dataclass
class ChatMessage:
    """
    A message as the caller sent it.

    Content is left untyped (string, list of part dicts or None); the
    message mapper validates it into a Message.
    """
    role: str
    content: Union[str, List[Dict[str, Any]], None] = None
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: Optional[List[Dict[str, Any]]] = None


@dataclass
class Message:
    """
    Unified message format.

    Supports:
    - Simple text messages
    - Multimodal messages (text + images)
    - Tool call messages
    - Tool result messages
    """
    role: Role
    content: Union[str, List[ContentPart], None] = None
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None

    @classmethod
    def system(cls, content: str) -> Message:
        """Create a system message."""
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: Union[str, List[ContentPart]]) -> Message:
        """Create a user message."""
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: Optional[str] = None,
        tool_calls: Optional[List[ToolCall]] = None
    ) -> Message:
        """Create an assistant message."""
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tool_calls)

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> Message:
        """Create a tool result message."""
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id)

    def text(self) -> str:
        """Concatenated text of the message, images skipped."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "".join(p.text for p in self.content if isinstance(p, TextContent))


# ============================================================
# Request Models
# ============================================================

@dataclass
class ChatCompletionRequest:
    """
    Chat completion request as decoded from the transport layer.

    `model` is the caller-facing full name (e.g. "openai/gpt-4o") until the
    engine rewrites it to the upstream model name.
    """
    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: Optional[List[str]] = None
    stream: bool = False
    tools: Optional[List[ToolDefinition]] = None
    tool_choice: Optional[ToolChoice] = None
    user: Optional[str] = None
    response_format: Optional[Dict[str, Any]] = None


@dataclass
class ProviderRequest:
    """What a model instance hands to a provider adapter for one turn."""
    model: str
    messages: List[Message]
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: Optional[List[str]] = None
    tools: Optional[List[ToolDefinition]] = None
    tool_choice: Optional[ToolChoice] = None
    user: Optional[str] = None
    response_format: Optional[Dict[str, Any]] = None


@dataclass
class EmbeddingRequest:
    """Unified embedding request."""
    model: str
    input: Union[str, List[str]]
    encoding_format: Literal["float", "base64"] = "float"
    dimensions: Optional[int] = None
    user: Optional[str] = None


@dataclass
class ImageGenerationRequest:
    """Unified image generation request."""
    model: str
    prompt: str
    n: int = 1
    size: str = "1024x1024"
    quality: Literal["standard", "hd"] = "standard"
    style: Literal["vivid", "natural"] = "vivid"
    response_format: Literal["url", "b64_json"] = "url"
    user: Optional[str] = None


# ============================================================
# Response Models
# ============================================================

@dataclass
class Usage:
    """Token usage information."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        if self.total_tokens == 0:
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class ProviderCompletion:
    """One non-streamed provider turn, already normalized."""
    content: Optional[str]
    finish_reason: FinishReason
    usage: Usage = field(default_factory=Usage)
    tool_calls: Optional[List[ToolCall]] = None
    provider_request_id: Optional[str] = None


@dataclass
class ProviderChunk:
    """
    One normalized streaming chunk from a provider.

    A chunk carrying only `usage` closes the provider stream.
    """
    content: Optional[str] = None
    role: Optional[Role] = None
    tool_calls: Optional[List[ToolCallDelta]] = None
    finish_reason: Optional[FinishReason] = None
    usage: Optional[Usage] = None

    @property
    def has_payload(self) -> bool:
        return bool(
            self.content or self.tool_calls or self.finish_reason or self.role
        )


@dataclass
class ChatCompletionDelta:
    """One incremental fragment of a streamed completion."""
    id: str
    model: str
    created: int
    role: Optional[Role] = None
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCallDelta]] = None
    finish_reason: Optional[FinishReason] = None


@dataclass
class GatewayMetadata:
    """Gateway specific metadata in response."""
    request_id: str
    latency_ms: int
    cost_usd: Optional[float] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class Choice:
    """A single completion choice."""
    index: int
    message: Message
    finish_reason: FinishReason


@dataclass
class ChatCompletionResponse:
    """
    Aggregated chat completion response.

    Contains the model output plus metadata about the request
    (cost, latency, tags).
    """
    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int = field(default_factory=lambda: int(time.time()))
    model: str = ""
    provider: str = ""
    choices: List[Choice] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    gateway: Optional[GatewayMetadata] = None

    @classmethod
    def create(
        cls,
        content: Optional[str],
        model: str,
        provider: str,
        usage: Usage,
        finish_reason: FinishReason = FinishReason.STOP,
        tool_calls: Optional[List[ToolCall]] = None,
        metadata: Optional[GatewayMetadata] = None
    ) -> ChatCompletionResponse:
        """Helper to create a response."""
        return cls(
            id=f"chatcmpl-{uuid.uuid4().hex[:12]}",
            model=model,
            provider=provider,
            choices=[
                Choice(
                    index=0,
                    message=Message.assistant(content=content, tool_calls=tool_calls),
                    finish_reason=finish_reason
                )
            ],
            usage=usage,
            gateway=metadata
        )


@dataclass
class EmbeddingData:
    """Single embedding result."""
    object: Literal["embedding"] = "embedding"
    embedding: List[float] = field(default_factory=list)
    index: int = 0


@dataclass
class EmbeddingResponse:
    """Unified embedding response."""
    object: Literal["list"] = "list"
    data: List[EmbeddingData] = field(default_factory=list)
    model: str = ""
    usage: Usage = field(default_factory=Usage)


@dataclass
class ImageData:
    """Single image result."""
    url: Optional[str] = None
    b64_json: Optional[str] = None
    revised_prompt: Optional[str] = None


@dataclass
class ImageGenerationResponse:
    """Unified image generation response."""
    created: int = field(default_factory=lambda: int(time.time()))
    data: List[ImageData] = field(default_factory=list)


# ============================================================
# Model Information
# ============================================================

@dataclass
class ModelPricing:
    """Pricing information for a model."""
    input_per_1m_tokens: float = 0.0
    output_per_1m_tokens: float = 0.0


@dataclass
class ModelInfo:
    """Catalogue entry for a model offered by an adapter."""
    id: str
    provider: ProviderKind
    name: str
    capabilities: List[str]
    context_window: int
    max_output_tokens: int
    pricing: ModelPricing = field(default_factory=ModelPricing)

    def supports(self, capability: str) -> bool:
        """Check if model supports a capability."""
        return capability in self.capabilities


# ============================================================
# Serialization Helpers
# ============================================================

def tool_call_to_dict(tc: ToolCall) -> Dict[str, Any]:
    return {
        "id": tc.id,
        "type": tc.type,
        "function": {
            "name": tc.function.name,
            "arguments": tc.function.arguments
        }
    }


def message_to_dict(msg: Message) -> Dict[str, Any]:
    """Convert Message to dictionary for JSON serialization."""
    result: Dict[str, Any] = {"role": msg.role.value}

    if msg.content is not None:
        if isinstance(msg.content, str):
            result["content"] = msg.content
        else:
            result["content"] = [
                {"type": "text", "text": part.text}
                if isinstance(part, TextContent)
                else {
                    "type": "image_url",
                    "image_url": {"url": part.image_url.url, "detail": part.image_url.detail}
                }
                for part in msg.content
            ]
    else:
        result["content"] = None

    if msg.name:
        result["name"] = msg.name
    if msg.tool_call_id:
        result["tool_call_id"] = msg.tool_call_id
    if msg.tool_calls:
        result["tool_calls"] = [tool_call_to_dict(tc) for tc in msg.tool_calls]

    return result


def usage_to_dict(usage: Usage) -> Dict[str, int]:
    return {
        "prompt_tokens": usage.prompt_tokens,
        "completion_tokens": usage.completion_tokens,
        "total_tokens": usage.total_tokens
    }


def response_to_dict(resp: ChatCompletionResponse) -> Dict[str, Any]:
    """Convert ChatCompletionResponse to dictionary for JSON serialization."""
    result = {
        "id": resp.id,
        "object": resp.object,
        "created": resp.created,
        "model": resp.model,
        "provider": resp.provider,
        "choices": [
            {
                "index": c.index,
                "message": message_to_dict(c.message),
                "finish_reason": c.finish_reason.value
            }
            for c in resp.choices
        ],
        "usage": usage_to_dict(resp.usage)
    }

    if resp.gateway:
        result["_gateway"] = {
            "request_id": resp.gateway.request_id,
            "latency_ms": resp.gateway.latency_ms,
            "cost_usd": resp.gateway.cost_usd,
        }
        if resp.gateway.tags:
            result["_gateway"]["tags"] = resp.gateway.tags

    return result


def delta_to_dict(delta: ChatCompletionDelta, usage: Optional[Usage] = None) -> Dict[str, Any]:
    """Convert a delta (and optional usage) to an OpenAI-style chunk."""
    payload: Dict[str, Any] = {}
    if delta.role is not None:
        payload["role"] = delta.role.value
    if delta.content is not None:
        payload["content"] = delta.content
    if delta.tool_calls:
        payload["tool_calls"] = [
            {
                "index": tc.index,
                **({"id": tc.id, "type": "function"} if tc.id else {}),
                "function": {
                    **({"name": tc.name} if tc.name else {}),
                    "arguments": tc.arguments
                }
            }
            for tc in delta.tool_calls
        ]

    chunk: Dict[str, Any] = {
        "id": delta.id,
        "object": "chat.completion.chunk",
        "created": delta.created,
        "model": delta.model,
        "choices": [{
            "index": 0,
            "delta": payload,
            "finish_reason": delta.finish_reason.value if delta.finish_reason else None
        }]
    }
    if usage is not None:
        chunk["usage"] = usage_to_dict(usage)
    return chunk
