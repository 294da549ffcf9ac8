"""
Inference Gateway Core Module

Provider-neutral data models, credentials and the error taxonomy.
"""

from .credentials import (
    ApiKeyCredentials,
    ApiKeyWithEndpointCredentials,
    Credentials,
)
from .errors import (
    CustomError,
    ErrorDetails,
    ErrorType,
    GatewayException,
    InvalidRequestError,
    MessageMappingError,
    ModelNotFoundError,
    UpstreamError,
)
from .models import (
    # Enums
    ProviderKind,
    Role,
    FinishReason,

    # Messages
    ChatMessage,
    Message,
    ContentPart,
    TextContent,
    ImageContent,
    ImageUrl,

    # Tool calling
    ToolDefinition,
    ToolCall,
    ToolCallDelta,
    FunctionDefinition,
    FunctionCall,

    # Requests
    ChatCompletionRequest,
    ProviderRequest,
    EmbeddingRequest,
    ImageGenerationRequest,

    # Responses
    ChatCompletionDelta,
    ChatCompletionResponse,
    ProviderChunk,
    ProviderCompletion,
    EmbeddingResponse,
    ImageGenerationResponse,
    Choice,
    Usage,
    GatewayMetadata,

    # Model info
    ModelInfo,
    ModelPricing,
)

__all__ = [
    "ApiKeyCredentials",
    "ApiKeyWithEndpointCredentials",
    "Credentials",
    "CustomError",
    "ErrorDetails",
    "ErrorType",
    "GatewayException",
    "InvalidRequestError",
    "MessageMappingError",
    "ModelNotFoundError",
    "UpstreamError",
    "ProviderKind",
    "Role",
    "FinishReason",
    "ChatMessage",
    "Message",
    "ContentPart",
    "TextContent",
    "ImageContent",
    "ImageUrl",
    "ToolDefinition",
    "ToolCall",
    "ToolCallDelta",
    "FunctionDefinition",
    "FunctionCall",
    "ChatCompletionRequest",
    "ProviderRequest",
    "EmbeddingRequest",
    "ImageGenerationRequest",
    "ChatCompletionDelta",
    "ChatCompletionResponse",
    "ProviderChunk",
    "ProviderCompletion",
    "EmbeddingResponse",
    "ImageGenerationResponse",
    "Choice",
    "Usage",
    "GatewayMetadata",
    "ModelInfo",
    "ModelPricing",
]
