"""
Inference Gateway - Message Mapper

Maps caller messages into the engine's Message representation, one to one
and in order. Any message that cannot be represented fails the whole
request with MessageMappingError; no partial message list is executed.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import InvalidRequestError, MessageMappingError
from ..core.models import (
    ChatMessage,
    ContentPart,
    FunctionCall,
    ImageContent,
    ImageUrl,
    Message,
    Role,
    TextContent,
    ToolCall,
)

_IMAGE_DETAILS = {"low", "high", "auto"}


@dataclass(frozen=True)
class GatewayMessage:
    """A mapped message plus the bookkeeping it was mapped for."""
    model_name: str
    user_id: str
    message: Message


class MessageMapper:
    """
    Validates and converts caller messages for one request.

    Args:
        model_name: Upstream model name the messages are sent to
        user_id: Caller/session identifier forwarded to the provider
        request_id: Attached to mapping errors
    """

    def __init__(self, model_name: str, user_id: str, request_id: str = ""):
        self.model_name = model_name
        self.user_id = user_id
        self.request_id = request_id

    def _fail(self, index: int, reason: str) -> MessageMappingError:
        return MessageMappingError(index, reason, self.request_id)

    def map(self, index: int, message: ChatMessage) -> GatewayMessage:
        try:
            role = Role(message.role)
        except ValueError:
            raise self._fail(index, f"unsupported role '{message.role}'")

        tool_calls = self._map_tool_calls(index, role, message.tool_calls)
        content = self._map_content(index, role, message.content, has_tool_calls=bool(tool_calls))

        if role == Role.TOOL and not message.tool_call_id:
            raise self._fail(index, "tool messages require tool_call_id")

        return GatewayMessage(
            model_name=self.model_name,
            user_id=self.user_id,
            message=Message(
                role=role,
                content=content,
                name=message.name,
                tool_call_id=message.tool_call_id if role == Role.TOOL else None,
                tool_calls=tool_calls,
            ),
        )

    def map_all(self, messages: Sequence[ChatMessage]) -> List[GatewayMessage]:
        if not messages:
            raise InvalidRequestError("messages must not be empty", param="messages", request_id=self.request_id)
        return [self.map(i, message) for i, message in enumerate(messages)]

    def _map_content(
        self,
        index: int,
        role: Role,
        content: Any,
        has_tool_calls: bool,
    ):
        if content is None:
            if role == Role.ASSISTANT and has_tool_calls:
                return None
            raise self._fail(index, "content is required")

        if isinstance(content, str):
            return content

        if not isinstance(content, list):
            raise self._fail(index, f"content must be a string or a list of parts, got {type(content).__name__}")
        if not content:
            raise self._fail(index, "content must not be an empty list")

        parts: List[ContentPart] = []
        for part in content:
            parts.append(self._map_part(index, role, part))
        return parts

    def _map_part(self, index: int, role: Role, part: Any) -> ContentPart:
        if not isinstance(part, dict):
            raise self._fail(index, "content parts must be objects")

        part_type = part.get("type")
        if part_type == "text":
            text = part.get("text")
            if not isinstance(text, str):
                raise self._fail(index, "text part requires a string 'text'")
            return TextContent(text=text)

        if part_type == "image_url":
            if role != Role.USER:
                raise self._fail(index, f"image parts are only allowed in user messages, not {role.value}")
            image = part.get("image_url")
            if isinstance(image, str):
                image = {"url": image}
            if not isinstance(image, dict) or not image.get("url"):
                raise self._fail(index, "image_url part requires a url")
            detail = image.get("detail") or "auto"
            if detail not in _IMAGE_DETAILS:
                raise self._fail(index, f"unsupported image detail '{detail}'")
            return ImageContent(image_url=ImageUrl(url=image["url"], detail=detail))

        raise self._fail(index, f"unsupported content part type '{part_type}'")

    def _map_tool_calls(
        self,
        index: int,
        role: Role,
        raw_calls: Optional[List[Dict[str, Any]]],
    ) -> Optional[List[ToolCall]]:
        if not raw_calls:
            return None
        if role != Role.ASSISTANT:
            raise self._fail(index, "only assistant messages may carry tool_calls")

        calls = []
        for raw in raw_calls:
            function = raw.get("function") if isinstance(raw, dict) else None
            if not isinstance(function, dict) or not function.get("name") or not raw.get("id"):
                raise self._fail(index, "tool_calls entries require id and function.name")
            arguments = function.get("arguments", "{}")
            if isinstance(arguments, dict):
                arguments = json.dumps(arguments)
            elif not isinstance(arguments, str):
                raise self._fail(index, "tool call arguments must be a JSON string or object")
            calls.append(ToolCall(
                id=raw["id"],
                function=FunctionCall(name=function["name"], arguments=arguments),
            ))
        return calls
