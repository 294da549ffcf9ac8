"""
Inference Gateway - Anthropic Provider Adapter

Adapter for Anthropic's Messages API (Claude models).
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from .base import AdapterConfig, BaseAdapter
from ..core.errors import UpstreamError, handle_anthropic_error
from ..core.models import (
    FinishReason,
    Message,
    ModelInfo,
    ModelPricing,
    ProviderChunk,
    ProviderCompletion,
    ProviderKind,
    ProviderRequest,
    Role,
    TextContent,
    ToolCallDelta,
    Usage,
)
from ..tools.normalizer import (
    tool_calls_from_anthropic,
    tool_choice_for_anthropic,
    tools_for_anthropic,
)

FINISH_REASON_MAP = {
    "end_turn": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "tool_use": FinishReason.TOOL_CALLS,
    "stop_sequence": FinishReason.STOP,
}

# Anthropic requires max_tokens on every request
DEFAULT_MAX_TOKENS = 4096


class AnthropicAdapter(BaseAdapter):
    """
    Adapter for Anthropic Claude API.

    Supports:
    - Chat completions
    - Vision (base64 data URLs and image URLs)
    - Tool/Function calling
    - Streaming

    Anthropic offers neither embeddings nor image generation.
    """

    provider = ProviderKind.ANTHROPIC
    DEFAULT_BASE_URL = "https://api.anthropic.com"
    API_VERSION = "2023-06-01"

    MODELS: List[ModelInfo] = [
        ModelInfo(
            id="anthropic/claude-3-5-sonnet",
            provider=ProviderKind.ANTHROPIC,
            name="claude-3-5-sonnet-20241022",
            capabilities=["chat", "vision", "tools"],
            context_window=200000,
            max_output_tokens=8192,
            pricing=ModelPricing(input_per_1m_tokens=3.00, output_per_1m_tokens=15.00)
        ),
        ModelInfo(
            id="anthropic/claude-3-5-haiku",
            provider=ProviderKind.ANTHROPIC,
            name="claude-3-5-haiku-20241022",
            capabilities=["chat", "tools"],
            context_window=200000,
            max_output_tokens=8192,
            pricing=ModelPricing(input_per_1m_tokens=0.80, output_per_1m_tokens=4.00)
        ),
        ModelInfo(
            id="anthropic/claude-3-opus",
            provider=ProviderKind.ANTHROPIC,
            name="claude-3-opus-20240229",
            capabilities=["chat", "vision", "tools"],
            context_window=200000,
            max_output_tokens=4096,
            pricing=ModelPricing(input_per_1m_tokens=15.00, output_per_1m_tokens=75.00)
        ),
    ]

    def __init__(self, config: AdapterConfig):
        super().__init__(config)

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.API_VERSION,
        }

    async def chat_completion(
        self,
        request: ProviderRequest,
        request_id: str = ""
    ) -> ProviderCompletion:
        payload = self._build_chat_payload(request)
        data = await self._post_json("/v1/messages", payload, handle_anthropic_error, request_id)
        return self._parse_chat_response(data)

    async def chat_completion_stream(
        self,
        request: ProviderRequest,
        request_id: str = ""
    ) -> AsyncIterator[ProviderChunk]:
        payload = self._build_chat_payload(request)
        payload["stream"] = True

        prompt_tokens = 0
        completion_tokens = 0
        # content block index -> tool call ordinal
        tool_blocks: Dict[int, int] = {}

        async for data in self._stream_data_lines(
            "/v1/messages", payload, handle_anthropic_error, request_id
        ):
            event_type = data.get("type")

            if event_type == "error":
                error_data = data.get("error", {})
                raise UpstreamError(
                    "anthropic", 502,
                    error_data.get("message", "Unknown streaming error"),
                    request_id, code="stream_error"
                )

            if event_type == "message_start":
                usage = data.get("message", {}).get("usage", {})
                prompt_tokens = usage.get("input_tokens", 0)
                yield ProviderChunk(role=Role.ASSISTANT)

            elif event_type == "content_block_start":
                block = data.get("content_block", {})
                if block.get("type") == "tool_use":
                    ordinal = len(tool_blocks)
                    tool_blocks[data.get("index", 0)] = ordinal
                    yield ProviderChunk(tool_calls=[
                        ToolCallDelta(index=ordinal, id=block.get("id"), name=block.get("name"))
                    ])

            elif event_type == "content_block_delta":
                delta = data.get("delta", {})
                if delta.get("type") == "text_delta" and delta.get("text"):
                    yield ProviderChunk(content=delta["text"])
                elif delta.get("type") == "input_json_delta":
                    ordinal = tool_blocks.get(data.get("index", 0), 0)
                    yield ProviderChunk(tool_calls=[
                        ToolCallDelta(index=ordinal, arguments=delta.get("partial_json", ""))
                    ])

            elif event_type == "message_delta":
                completion_tokens = data.get("usage", {}).get("output_tokens", completion_tokens)
                stop_reason = data.get("delta", {}).get("stop_reason")
                if stop_reason:
                    yield ProviderChunk(
                        finish_reason=FINISH_REASON_MAP.get(stop_reason, FinishReason.STOP)
                    )

            elif event_type == "message_stop":
                yield ProviderChunk(
                    usage=Usage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
                )
                break

    # ============================================================
    # Private helper methods
    # ============================================================

    def _build_chat_payload(self, request: ProviderRequest) -> Dict[str, Any]:
        system, messages = self._extract_system_message(request.messages)

        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": self._convert_messages(messages),
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
        }

        if system:
            payload["system"] = system
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.top_p is not None:
            payload["top_p"] = request.top_p
        if request.stop:
            payload["stop_sequences"] = request.stop
        if request.tools:
            payload["tools"] = tools_for_anthropic(request.tools)
            if request.tool_choice:
                payload["tool_choice"] = tool_choice_for_anthropic(request.tool_choice)
        if request.user:
            payload["metadata"] = {"user_id": request.user}

        return payload

    def _extract_system_message(
        self,
        messages: List[Message]
    ) -> Tuple[Optional[str], List[Message]]:
        """Anthropic takes system prompts as a separate parameter."""
        system_parts = []
        filtered_messages = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                system_parts.append(msg.text())
            else:
                filtered_messages.append(msg)

        return ("\n\n".join(system_parts) or None), filtered_messages

    def _convert_content(self, msg: Message) -> Any:
        if msg.content is None or isinstance(msg.content, str):
            return msg.content or ""

        blocks: List[Dict[str, Any]] = []
        for part in msg.content:
            if isinstance(part, TextContent):
                blocks.append({"type": "text", "text": part.text})
                continue
            url = part.image_url.url
            if url.startswith("data:"):
                media_type = url.split(";")[0].split(":")[1]
                blocks.append({
                    "type": "image",
                    "source": {"type": "base64", "media_type": media_type, "data": url.split(",", 1)[1]}
                })
            else:
                blocks.append({"type": "image", "source": {"type": "url", "url": url}})
        return blocks

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        result: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == Role.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.text(),
                }
                # Consecutive tool results share one user turn
                previous = result[-1] if result else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    result.append({"role": "user", "content": [block]})
                continue

            if msg.role == Role.ASSISTANT and msg.tool_calls:
                blocks: List[Dict[str, Any]] = []
                if msg.text():
                    blocks.append({"type": "text", "text": msg.text()})
                for tc in msg.tool_calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.function.name,
                        "input": json.loads(tc.function.arguments or "{}"),
                    })
                result.append({"role": "assistant", "content": blocks})
                continue

            result.append({"role": msg.role.value, "content": self._convert_content(msg)})

        return result

    def _parse_chat_response(self, data: Dict[str, Any]) -> ProviderCompletion:
        content_blocks = data.get("content", [])
        content_text = "".join(b.get("text", "") for b in content_blocks if b.get("type") == "text")
        tool_calls = tool_calls_from_anthropic(content_blocks)

        usage_data = data.get("usage", {})

        return ProviderCompletion(
            content=content_text or None,
            finish_reason=FINISH_REASON_MAP.get(data.get("stop_reason") or "end_turn", FinishReason.STOP),
            usage=Usage(
                prompt_tokens=usage_data.get("input_tokens", 0),
                completion_tokens=usage_data.get("output_tokens", 0)
            ),
            tool_calls=tool_calls or None,
            provider_request_id=data.get("id"),
        )
