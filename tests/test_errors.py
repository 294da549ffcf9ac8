"""
Inference Gateway - Error Taxonomy Tests

Provider failures are classified as infra (retryable, 5xx) or semantic
(caller must fix, 4xx), and rendered in one error shape.
"""

import json

import httpx
import pytest

from gateway.core.errors import (
    CustomError,
    ErrorType,
    InvalidRequestError,
    MessageMappingError,
    ModelNotFoundError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    UpstreamError,
    create_stream_error_chunk,
    handle_anthropic_error,
    handle_google_error,
    handle_openai_error,
)


def status_error(status: int, body=None, headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://provider.test/v1/chat")
    response = httpx.Response(status, json=body or {}, headers=headers, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


# ============================================================
# Provider Error Classification
# ============================================================

class TestProviderErrorClassification:
    """Tests for the handle_*_error translators."""

    def test_rate_limit_with_retry_after(self):
        """429 keeps the provider's Retry-After."""
        error = handle_openai_error(status_error(429, headers={"retry-after": "12"}), "req_1")

        assert isinstance(error, ProviderRateLimitError)
        assert error.error.retry_after == 12
        assert error.error.request_id == "req_1"
        assert error.error.retryable

    def test_rate_limit_default_retry_after(self):
        """A malformed Retry-After falls back to 60 seconds."""
        error = handle_openai_error(status_error(429, headers={"retry-after": "soon"}))

        assert error.error.retry_after == 60

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failure_not_retryable(self, status):
        """Rejected provider credentials are not retried."""
        error = handle_openai_error(status_error(status, {"error": {"message": "bad key"}}))

        assert isinstance(error, UpstreamError)
        assert error.code == "provider_auth_error"
        assert not error.error.retryable
        assert error.status_code == 502

    def test_invalid_request_keeps_upstream_status(self):
        """Other 4xx answers are the caller's problem."""
        error = handle_openai_error(
            status_error(400, {"error": {"message": "temperature out of range", "type": "invalid_request_error"}},
                         headers={"x-request-id": "up_1"})
        )

        assert isinstance(error, InvalidRequestError)
        assert error.code == "provider_invalid_request"
        assert error.error.type == ErrorType.SEMANTIC
        assert error.error.upstream_status == 400
        assert error.error.provider_request_id == "up_1"

    def test_anthropic_overloaded(self):
        """Anthropic's 529 is a retryable 503."""
        error = handle_anthropic_error(status_error(529))

        assert isinstance(error, UpstreamError)
        assert error.status_code == 503
        assert error.error.retryable

    def test_anthropic_context_length(self):
        """Token limit messages map to context_length_exceeded."""
        error = handle_anthropic_error(status_error(400, {
            "type": "error",
            "error": {"type": "invalid_request_error", "message": "prompt is too long: maximum 200000 tokens"},
        }))

        assert error.code == "context_length_exceeded"

    def test_google_status_lowercased(self):
        """Unknown 4xx keep Google's status as context."""
        error = handle_google_error(status_error(409, {"error": {"message": "conflict", "status": "ABORTED"}}))

        assert isinstance(error, UpstreamError)
        assert error.code == "aborted"
        assert not error.error.retryable

    def test_connect_timeout(self):
        """Connect timeouts are reported with their phase."""
        request = httpx.Request("POST", "https://provider.test")
        error = handle_google_error(httpx.ConnectTimeout("slow", request=request))

        assert isinstance(error, ProviderTimeoutError)
        assert error.code == "connect_timeout"

    def test_connection_error(self):
        """Transport failures are retryable 502s."""
        request = httpx.Request("POST", "https://provider.test")
        error = handle_openai_error(httpx.ConnectError("refused", request=request))

        assert error.code == "connection_error"
        assert error.status_code == 502
        assert error.error.retryable

    def test_non_json_body(self):
        """Unparseable error bodies still classify by status."""
        request = httpx.Request("POST", "https://provider.test")
        response = httpx.Response(500, text="<html>oops</html>", request=request)
        error = handle_openai_error(httpx.HTTPStatusError("HTTP 500", request=request, response=response))

        assert error.code == "upstream_500"

    def test_gateway_exception_passes_through(self):
        """Already-translated errors are returned unchanged."""
        original = CustomError("nope")

        assert handle_openai_error(original) is original


# ============================================================
# Error Shapes
# ============================================================

class TestErrorDetails:
    """Tests for error payload rendering."""

    def test_model_not_found(self):
        """Lookup failures carry the requested name."""
        error = ModelNotFoundError("openai/gpt-5", request_id="req_2")

        body = error.error.to_dict()["error"]

        assert error.status_code == 404
        assert body["code"] == "model_not_found"
        assert body["param"] == "model"
        assert body["details"] == {"requested_model": "openai/gpt-5"}
        assert body["type"] == "semantic_error"
        assert "provider" not in body

    def test_message_mapping(self):
        """Mapping failures name the offending message."""
        error = MessageMappingError(2, "unsupported role 'bot'")

        body = error.error.to_dict()["error"]

        assert error.status_code == 400
        assert body["message"] == "messages[2]: unsupported role 'bot'"
        assert body["details"] == {"index": 2}

    def test_custom_error(self):
        """CustomError is an infra failure with the message forwarded."""
        error = CustomError("No API key configured for provider 'openai'", request_id="req_3")

        body = error.error.to_dict()["error"]

        assert error.status_code == 500
        assert body["type"] == "infra_error"
        assert body["retryable"] is False
        assert body["request_id"] == "req_3"

    def test_stream_error_chunk(self):
        """The error chunk is followed by [DONE]."""
        error = UpstreamError("openai", 503, "overloaded", request_id="req_4")

        sse = create_stream_error_chunk(error, completion_id="chatcmpl-1", model="openai/gpt-4")
        first, done = sse.strip().split("\n\n")

        chunk = json.loads(first[len("data: "):])
        assert done == "data: [DONE]"
        assert chunk["id"] == "chatcmpl-1"
        assert chunk["error"]["upstream_status"] == 503
        assert chunk["choices"][0]["finish_reason"] == "error"
