"""
Inference Gateway - Error Definitions

One exception hierarchy for the whole gateway, classified as infra
(provider/runtime failure, 5xx) or semantic (caller must fix the request, 4xx).

Engine-level kinds:
- ModelNotFoundError: the requested model is not in the catalogue
- MessageMappingError: a caller message cannot be normalized
- CustomError: adapter construction or internal invariant failure
- UpstreamError: the provider failed while serving the request
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

import json

import httpx


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information for API response."""
    code: str
    message: str
    type: ErrorType

    provider: Optional[str] = None
    param: Optional[str] = None

    request_id: str = ""
    provider_request_id: Optional[str] = None
    trace_id: Optional[str] = None

    retryable: bool = False
    retry_after: Optional[int] = None
    upstream_status: Optional[int] = None

    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "message": self.message,
            "type": self.type.value,
            "request_id": self.request_id,
            "retryable": self.retryable,
        }

        if self.provider:
            result["provider"] = self.provider
        if self.param:
            result["param"] = self.param
        if self.provider_request_id:
            result["provider_request_id"] = self.provider_request_id
        if self.trace_id:
            result["trace_id"] = self.trace_id
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.upstream_status is not None:
            result["upstream_status"] = self.upstream_status
        if self.details:
            result["details"] = self.details

        return {"error": result}


class GatewayException(Exception):
    """Base exception for all gateway errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code


# ============================================================
# Infra Errors
# ============================================================

class InfraError(GatewayException):
    """Base class for infrastructure errors."""
    pass


class CustomError(InfraError):
    """
    Internal failure with a message forwarded to the caller.

    Raised when a model instance cannot be constructed (unsupported provider,
    missing credentials, bad endpoint) or an internal invariant is broken.
    """

    def __init__(self, message: str, request_id: str = "", provider: Optional[str] = None):
        super().__init__(
            ErrorDetails(
                code="custom_error",
                message=message,
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=500
        )


class UpstreamError(InfraError):
    """Provider failed while serving the request."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        message: str = "",
        request_id: str = "",
        provider_request_id: str = "",
        retryable: bool = True,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        retry_after: Optional[int] = None
    ):
        code_map = {
            500: "upstream_500",
            502: "upstream_502",
            503: "upstream_503",
            504: "upstream_504",
        }
        if http_status is None:
            http_status = status_code if status_code in (502, 503, 504) else 502
        super().__init__(
            ErrorDetails(
                code=code or code_map.get(status_code, "upstream_error"),
                message=message or f"{provider} returned error {status_code}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                provider_request_id=provider_request_id or None,
                retryable=retryable,
                retry_after=retry_after,
                upstream_status=status_code
            ),
            status_code=http_status
        )


class ProviderTimeoutError(UpstreamError):
    """Provider could not be reached or did not answer in time."""

    def __init__(self, provider: str, phase: str = "read", request_id: str = ""):
        super().__init__(
            provider,
            504,
            message=f"{provider} did not respond within timeout ({phase})",
            request_id=request_id,
            code=f"{phase}_timeout",
            http_status=504,
            retry_after=5
        )


class ProviderRateLimitError(UpstreamError):
    """Provider rate limit exceeded."""

    def __init__(self, provider: str, retry_after: int = 60, request_id: str = ""):
        super().__init__(
            provider,
            429,
            message=f"{provider} rate limit exceeded. Retry after {retry_after} seconds.",
            request_id=request_id,
            code="rate_limited",
            http_status=429,
            retry_after=retry_after
        )


# ============================================================
# Semantic Errors (Not Retryable)
# ============================================================

class SemanticError(GatewayException):
    """Base class for semantic errors (client must fix request)."""
    pass


class InvalidRequestError(SemanticError):
    """Request validation failed."""

    def __init__(
        self,
        message: str,
        param: str = "",
        request_id: str = "",
        code: str = "invalid_request"
    ):
        super().__init__(
            ErrorDetails(
                code=code,
                message=message,
                type=ErrorType.SEMANTIC,
                param=param or None,
                request_id=request_id,
                retryable=False
            ),
            status_code=400
        )


class UnsupportedOperationError(InvalidRequestError):
    """Provider does not offer the requested operation."""

    def __init__(self, provider: str, operation: str, request_id: str = ""):
        super().__init__(
            f"{provider} does not support {operation}",
            request_id=request_id,
            code="unsupported_operation"
        )
        self.error.provider = provider


class ModelNotFoundError(SemanticError):
    """Requested model does not exist."""

    def __init__(self, model: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="model_not_found",
                message=f"Model '{model}' not found",
                type=ErrorType.SEMANTIC,
                param="model",
                request_id=request_id,
                retryable=False,
                details={"requested_model": model}
            ),
            status_code=404
        )


class MessageMappingError(SemanticError):
    """A caller message could not be mapped to the engine representation."""

    def __init__(self, index: int, reason: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="message_mapping_error",
                message=f"messages[{index}]: {reason}",
                type=ErrorType.SEMANTIC,
                param=f"messages[{index}]",
                request_id=request_id,
                retryable=False,
                details={"index": index}
            ),
            status_code=400
        )
        self.index = index


# ============================================================
# Provider-specific error handlers
# ============================================================

# (message, error type/status, provider request id)
_ErrorBody = Tuple[str, str, str]


def _classify_provider_error(
    provider: str,
    error: Exception,
    request_id: str,
    parse_body: Callable[[httpx.Response], _ErrorBody]
) -> GatewayException:
    """Translate an httpx failure into the gateway taxonomy."""
    if isinstance(error, GatewayException):
        return error

    if isinstance(error, httpx.TimeoutException):
        phase = "connect" if isinstance(error, httpx.ConnectTimeout) else "read"
        return ProviderTimeoutError(provider, phase, request_id)

    if isinstance(error, httpx.TransportError):
        return UpstreamError(
            provider, 502, f"Failed to connect to {provider}: {error}",
            request_id, code="connection_error"
        )

    if not isinstance(error, httpx.HTTPStatusError):
        return UpstreamError(
            provider, 500, str(error) or type(error).__name__,
            request_id, retryable=False, code="unknown_error"
        )

    response = error.response
    status_code = response.status_code
    try:
        message, error_type, provider_req_id = parse_body(response)
    except (ValueError, AttributeError, httpx.ResponseNotRead):
        message, error_type, provider_req_id = str(error), "", ""
    lowered = message.lower()

    if status_code == 429:
        retry_after = 60
        if "retry-after" in response.headers:
            try:
                retry_after = int(response.headers["retry-after"])
            except ValueError:
                pass
        return ProviderRateLimitError(provider, retry_after, request_id)

    if status_code in (401, 403):
        return UpstreamError(
            provider, status_code,
            f"{provider} rejected the credentials: {message}",
            request_id, provider_req_id, retryable=False,
            code="provider_auth_error"
        )

    if status_code >= 500:
        return UpstreamError(provider, status_code, message, request_id, provider_req_id)

    if "context_length" in error_type or ("token" in lowered and ("limit" in lowered or "maximum" in lowered)):
        return InvalidRequestError(message, request_id=request_id, code="context_length_exceeded")

    if "safety" in lowered or "content_policy" in error_type:
        return InvalidRequestError(message, request_id=request_id, code="content_filtered")

    if status_code in (400, 404, 422):
        invalid = InvalidRequestError(message, request_id=request_id, code="provider_invalid_request")
        invalid.error.provider = provider
        invalid.error.provider_request_id = provider_req_id or None
        invalid.error.upstream_status = status_code
        return invalid

    return UpstreamError(
        provider, status_code, message, request_id, provider_req_id,
        retryable=False, code=error_type or "provider_error"
    )


def handle_openai_error(error: Exception, request_id: str = "") -> GatewayException:
    """
    Convert an OpenAI-compatible HTTP error to a gateway exception.

    OpenAI error format:
    {"error": {"message": "...", "type": "...", "code": "...", "param": "..."}}
    """
    def parse(response: httpx.Response) -> _ErrorBody:
        info = response.json().get("error", {})
        return (
            info.get("message", response.text),
            info.get("code") or info.get("type") or "",
            response.headers.get("x-request-id", ""),
        )

    return _classify_provider_error("openai", error, request_id, parse)


def handle_anthropic_error(error: Exception, request_id: str = "") -> GatewayException:
    """
    Convert an Anthropic HTTP error to a gateway exception.

    Anthropic error format:
    {"type": "error", "error": {"type": "invalid_request_error", "message": "..."}}
    """
    def parse(response: httpx.Response) -> _ErrorBody:
        info = response.json().get("error", {})
        return (
            info.get("message", response.text),
            info.get("type", ""),
            response.headers.get("request-id", ""),
        )

    if isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 529:
        return UpstreamError("anthropic", 503, "Anthropic is temporarily overloaded", request_id)
    return _classify_provider_error("anthropic", error, request_id, parse)


def handle_google_error(error: Exception, request_id: str = "") -> GatewayException:
    """
    Convert a Google Gemini HTTP error to a gateway exception.

    Google error format:
    {"error": {"code": 400, "message": "...", "status": "INVALID_ARGUMENT"}}
    """
    def parse(response: httpx.Response) -> _ErrorBody:
        info = response.json().get("error", {})
        return (
            info.get("message", response.text),
            str(info.get("status", "")).lower(),
            "",
        )

    return _classify_provider_error("google", error, request_id, parse)


def create_stream_error_chunk(
    error: GatewayException,
    completion_id: str = "",
    model: str = ""
) -> str:
    """
    Create SSE error chunk for streaming errors.

    Deltas already delivered stay delivered; the stream is closed with one
    error chunk followed by the [DONE] sentinel.
    """
    error_chunk = {
        "id": completion_id,
        "object": "chat.completion.chunk",
        "model": model,
        "error": error.error.to_dict()["error"],
        "choices": [{
            "index": 0,
            "delta": {},
            "finish_reason": "error"
        }]
    }

    return f"data: {json.dumps(error_chunk)}\n\ndata: [DONE]\n\n"
