"""
Inference Gateway - Google Provider Adapter

Adapter for the Google Gemini API (generateContent family).
"""

import json
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

from .base import AdapterConfig, BaseAdapter
from ..core.errors import handle_google_error
from ..core.models import (
    EmbeddingData,
    EmbeddingRequest,
    EmbeddingResponse,
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
from ..tools.normalizer import tool_calls_from_google, tool_choice_for_google, tools_for_google

FINISH_REASON_MAP = {
    "STOP": FinishReason.STOP,
    "MAX_TOKENS": FinishReason.LENGTH,
    "SAFETY": FinishReason.CONTENT_FILTER,
    "RECITATION": FinishReason.CONTENT_FILTER,
    "BLOCKLIST": FinishReason.CONTENT_FILTER,
    "PROHIBITED_CONTENT": FinishReason.CONTENT_FILTER,
}


def _parse_usage(metadata: Dict[str, Any]) -> Usage:
    return Usage(
        prompt_tokens=metadata.get("promptTokenCount", 0),
        completion_tokens=metadata.get("candidatesTokenCount", 0),
        total_tokens=metadata.get("totalTokenCount", 0),
    )


class GoogleAdapter(BaseAdapter):
    """
    Adapter for Google Gemini API.

    Supports:
    - Chat completions (Gemini 1.5 Pro, Gemini 1.5 Flash)
    - Vision
    - Embeddings (text-embedding-004)
    - Tool/Function calling
    - Streaming
    """

    provider = ProviderKind.GOOGLE
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    MODELS: List[ModelInfo] = [
        ModelInfo(
            id="google/gemini-1.5-pro",
            provider=ProviderKind.GOOGLE,
            name="gemini-1.5-pro",
            capabilities=["chat", "vision", "tools"],
            context_window=2000000,
            max_output_tokens=8192,
            pricing=ModelPricing(input_per_1m_tokens=1.25, output_per_1m_tokens=5.00)
        ),
        ModelInfo(
            id="google/gemini-1.5-flash",
            provider=ProviderKind.GOOGLE,
            name="gemini-1.5-flash",
            capabilities=["chat", "vision", "tools"],
            context_window=1000000,
            max_output_tokens=8192,
            pricing=ModelPricing(input_per_1m_tokens=0.075, output_per_1m_tokens=0.30)
        ),
        ModelInfo(
            id="google/text-embedding-004",
            provider=ProviderKind.GOOGLE,
            name="text-embedding-004",
            capabilities=["embedding"],
            context_window=2048,
            max_output_tokens=0,
        ),
    ]

    def __init__(self, config: AdapterConfig):
        super().__init__(config)

    def _auth_headers(self) -> Dict[str, str]:
        # Header auth keeps the key out of URLs (and access logs)
        return {"x-goog-api-key": self.config.api_key}

    async def chat_completion(
        self,
        request: ProviderRequest,
        request_id: str = ""
    ) -> ProviderCompletion:
        payload = self._build_chat_payload(request)
        data = await self._post_json(
            f"/models/{request.model}:generateContent", payload, handle_google_error, request_id
        )
        return self._parse_chat_response(data)

    async def chat_completion_stream(
        self,
        request: ProviderRequest,
        request_id: str = ""
    ) -> AsyncIterator[ProviderChunk]:
        payload = self._build_chat_payload(request)
        usage: Optional[Usage] = None
        tool_index = 0
        saw_tool_call = False

        async for data in self._stream_data_lines(
            f"/models/{request.model}:streamGenerateContent",
            payload,
            handle_google_error,
            request_id,
            params={"alt": "sse"},
        ):
            if data.get("usageMetadata"):
                usage = _parse_usage(data["usageMetadata"])

            candidates = data.get("candidates") or []
            if not candidates:
                continue
            candidate = candidates[0]
            parts = candidate.get("content", {}).get("parts", [])

            text = "".join(p.get("text", "") for p in parts)
            if text:
                yield ProviderChunk(content=text)

            calls = tool_calls_from_google(parts)
            if calls:
                saw_tool_call = True
                deltas = []
                for call in calls:
                    deltas.append(ToolCallDelta(
                        index=tool_index,
                        id=call.id,
                        name=call.function.name,
                        arguments=call.function.arguments,
                    ))
                    tool_index += 1
                yield ProviderChunk(tool_calls=deltas)

            finish = candidate.get("finishReason")
            if finish:
                reason = FINISH_REASON_MAP.get(finish, FinishReason.STOP)
                if saw_tool_call and reason == FinishReason.STOP:
                    reason = FinishReason.TOOL_CALLS
                yield ProviderChunk(finish_reason=reason)

        if usage is not None:
            yield ProviderChunk(usage=usage)

    async def embedding(
        self,
        request: EmbeddingRequest,
        request_id: str = ""
    ) -> EmbeddingResponse:
        inputs = request.input if isinstance(request.input, list) else [request.input]

        payload = {
            "requests": [
                {
                    "model": f"models/{request.model}",
                    "content": {"parts": [{"text": text}]},
                    **({"outputDimensionality": request.dimensions} if request.dimensions else {}),
                }
                for text in inputs
            ]
        }
        data = await self._post_json(
            f"/models/{request.model}:batchEmbedContents", payload, handle_google_error, request_id
        )

        return EmbeddingResponse(
            data=[
                EmbeddingData(embedding=item.get("values", []), index=i)
                for i, item in enumerate(data.get("embeddings", []))
            ],
            model=request.model,
            # Gemini does not report embedding token usage
            usage=Usage(),
        )

    # ============================================================
    # Private helper methods
    # ============================================================

    def _build_chat_payload(self, request: ProviderRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": self._convert_messages(request.messages),
        }

        generation_config: Dict[str, Any] = {}
        if request.temperature is not None:
            generation_config["temperature"] = request.temperature
        if request.top_p is not None:
            generation_config["topP"] = request.top_p
        if request.max_tokens is not None:
            generation_config["maxOutputTokens"] = request.max_tokens
        if request.stop:
            generation_config["stopSequences"] = request.stop
        if request.response_format and request.response_format.get("type") == "json_object":
            generation_config["responseMimeType"] = "application/json"
        if generation_config:
            payload["generationConfig"] = generation_config

        if request.tools:
            payload["tools"] = tools_for_google(request.tools)
            if request.tool_choice:
                payload["toolConfig"] = tool_choice_for_google(request.tool_choice)

        system_parts = [m.text() for m in request.messages if m.role == Role.SYSTEM]
        if system_parts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}

        return payload

    def _convert_parts(self, msg: Message) -> List[Dict[str, Any]]:
        if msg.content is None:
            return []
        if isinstance(msg.content, str):
            return [{"text": msg.content}] if msg.content else []

        parts: List[Dict[str, Any]] = []
        for part in msg.content:
            if isinstance(part, TextContent):
                parts.append({"text": part.text})
                continue
            url = part.image_url.url
            if url.startswith("data:"):
                parts.append({
                    "inlineData": {
                        "mimeType": url.split(";")[0].split(":")[1],
                        "data": url.split(",", 1)[1],
                    }
                })
            else:
                parts.append({"fileData": {"fileUri": url, "mimeType": "image/jpeg"}})
        return parts

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        result = []
        # Gemini answers tool results by function name, not call id
        call_names: Dict[str, str] = {}

        for msg in messages:
            if msg.role == Role.SYSTEM:
                continue

            if msg.role == Role.TOOL:
                name = call_names.get(msg.tool_call_id or "", msg.tool_call_id or "")
                result.append({
                    "role": "user",
                    "parts": [{
                        "functionResponse": {
                            "name": name,
                            "response": {"content": msg.text()},
                        }
                    }]
                })
                continue

            parts = self._convert_parts(msg)
            for tc in msg.tool_calls or []:
                call_names[tc.id] = tc.function.name
                parts.append({
                    "functionCall": {
                        "name": tc.function.name,
                        "args": json.loads(tc.function.arguments or "{}"),
                    }
                })

            if parts:
                result.append({
                    "role": "model" if msg.role == Role.ASSISTANT else "user",
                    "parts": parts,
                })

        return result

    def _parse_chat_response(self, data: Dict[str, Any]) -> ProviderCompletion:
        candidates = data.get("candidates") or []
        candidate = candidates[0] if candidates else {}
        parts = candidate.get("content", {}).get("parts", [])

        text = "".join(p.get("text", "") for p in parts)
        tool_calls = tool_calls_from_google(parts)

        finish_reason = FINISH_REASON_MAP.get(candidate.get("finishReason", "STOP"), FinishReason.STOP)
        if tool_calls and finish_reason == FinishReason.STOP:
            finish_reason = FinishReason.TOOL_CALLS

        return ProviderCompletion(
            content=text or None,
            finish_reason=finish_reason,
            usage=_parse_usage(data.get("usageMetadata", {})),
            tool_calls=tool_calls or None,
            provider_request_id=data.get("responseId") or f"gemini-{uuid.uuid4().hex[:12]}",
        )
