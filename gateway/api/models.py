"""
Inference Gateway - API Request Models

Pydantic models for request validation at the HTTP edge. Message content
is accepted loosely here; the engine's message mapper decides whether each
message can be represented and reports the failing index.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================
# Tool Definitions
# ============================================================

class FunctionDefinition(BaseModel):
    """Function definition for tool calling."""
    name: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
    description: str = Field(default="", max_length=1024)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolDefinition(BaseModel):
    """Tool definition."""
    type: Literal["function"] = "function"
    function: FunctionDefinition


class ToolChoiceFunction(BaseModel):
    """Specific function choice."""
    name: str


class ToolChoiceObject(BaseModel):
    """Tool choice object for specific function."""
    type: Literal["function"] = "function"
    function: ToolChoiceFunction


ToolChoice = Union[Literal["auto", "none", "required"], ToolChoiceObject]


# ============================================================
# Messages
# ============================================================

class MessageInput(BaseModel):
    """
    Input message for chat completion.

    Supports:
    - Simple text messages
    - Multimodal messages (text + images)
    - Tool call messages
    - Tool result messages
    """
    role: str
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    name: Optional[str] = Field(default=None, max_length=64)
    tool_call_id: Optional[str] = None
    tool_calls: Optional[List[Dict[str, Any]]] = None


# ============================================================
# Chat Completion
# ============================================================

class ChatCompletionRequest(BaseModel):
    """
    Chat completion request.

    Compatible with OpenAI's API format.
    """
    model: str = Field(
        ...,
        min_length=1,
        description="Model ID (e.g., 'openai/gpt-4o', 'anthropic/claude-3-5-sonnet')"
    )
    messages: List[MessageInput] = Field(
        ...,
        min_length=1,
        description="List of messages in the conversation"
    )
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    top_p: Optional[float] = Field(default=None, ge=0, le=1)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=128000)
    stop: Optional[Union[str, List[str]]] = None
    stream: bool = Field(default=False, description="Whether to stream the response")
    tools: Optional[List[ToolDefinition]] = None
    tool_choice: Optional[ToolChoice] = None
    user: Optional[str] = Field(default=None, max_length=256)
    response_format: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("stop")
    @classmethod
    def normalize_stop(cls, v):
        if isinstance(v, str):
            return [v]
        return v


# ============================================================
# Embeddings
# ============================================================

class EmbeddingRequest(BaseModel):
    """Embedding request."""
    model: str = Field(..., min_length=1, description="Embedding model ID")
    input: Union[str, List[str]] = Field(..., description="Text to embed")
    encoding_format: Literal["float", "base64"] = "float"
    dimensions: Optional[int] = Field(default=None, ge=1, le=4096)
    user: Optional[str] = None

    @field_validator("input")
    @classmethod
    def validate_input(cls, v):
        if isinstance(v, list) and not v:
            raise ValueError("input cannot be empty")
        return v


# ============================================================
# Image Generation
# ============================================================

class ImageGenerationRequest(BaseModel):
    """Image generation request."""
    model: str = Field(default="openai/dall-e-3", description="Image model ID")
    prompt: str = Field(..., min_length=1, max_length=4000)
    n: int = Field(default=1, ge=1, le=10)
    size: Literal["256x256", "512x512", "1024x1024", "1024x1792", "1792x1024"] = "1024x1024"
    quality: Literal["standard", "hd"] = "standard"
    style: Literal["vivid", "natural"] = "vivid"
    response_format: Literal["url", "b64_json"] = "url"
    user: Optional[str] = None
