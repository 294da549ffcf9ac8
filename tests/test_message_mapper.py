"""
Inference Gateway - Message Mapper Tests

Verifies that caller messages map one to one and in order, and that any
message that cannot be represented fails the whole request with its index.
"""

import json

import pytest

from gateway.core.errors import InvalidRequestError, MessageMappingError
from gateway.core.models import ChatMessage, ImageContent, Role, TextContent
from gateway.engine.message_mapper import MessageMapper


@pytest.fixture
def mapper():
    return MessageMapper("gpt-4-0613", "user-1", request_id="req_map")


class TestMessageMapper:
    """Tests for MessageMapper."""

    def test_order_and_bookkeeping_preserved(self, mapper):
        """Output is one message per input, in order, tagged with model and user."""
        mapped = mapper.map_all([
            ChatMessage(role="system", content="Be brief"),
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello"),
        ])

        assert [m.message.role for m in mapped] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
        assert [m.message.content for m in mapped] == ["Be brief", "Hi", "Hello"]
        assert all(m.model_name == "gpt-4-0613" and m.user_id == "user-1" for m in mapped)

    def test_multipart_user_content(self, mapper):
        """Text and image parts become typed content parts."""
        [mapped] = mapper.map_all([
            ChatMessage(role="user", content=[
                {"type": "text", "text": "What is this?"},
                {"type": "image_url", "image_url": {"url": "https://example.test/a.png", "detail": "low"}},
            ])
        ])

        text, image = mapped.message.content
        assert isinstance(text, TextContent) and text.text == "What is this?"
        assert isinstance(image, ImageContent)
        assert image.image_url.url == "https://example.test/a.png"
        assert image.image_url.detail == "low"

    def test_image_url_string_shorthand(self, mapper):
        """A bare string image_url is accepted with auto detail."""
        [mapped] = mapper.map_all([
            ChatMessage(role="user", content=[{"type": "image_url", "image_url": "https://example.test/b.png"}])
        ])

        assert mapped.message.content[0].image_url.detail == "auto"

    def test_assistant_tool_calls(self, mapper):
        """Assistant tool calls are mapped; dict arguments are serialized."""
        [mapped] = mapper.map_all([
            ChatMessage(role="assistant", content=None, tool_calls=[
                {"id": "call_1", "type": "function",
                 "function": {"name": "lookup", "arguments": {"q": "x"}}}
            ])
        ])

        assert mapped.message.content is None
        call = mapped.message.tool_calls[0]
        assert call.id == "call_1"
        assert json.loads(call.function.arguments) == {"q": "x"}

    def test_tool_result(self, mapper):
        """Tool messages keep their tool_call_id."""
        [mapped] = mapper.map_all([
            ChatMessage(role="tool", content="42", tool_call_id="call_1")
        ])

        assert mapped.message.role == Role.TOOL
        assert mapped.message.tool_call_id == "call_1"

    def test_empty_message_list(self, mapper):
        """An empty conversation is rejected."""
        with pytest.raises(InvalidRequestError) as exc_info:
            mapper.map_all([])

        assert exc_info.value.error.param == "messages"


class TestMessageMappingFailures:
    """One bad message fails the whole list, reporting its index."""

    @pytest.mark.parametrize("message,reason", [
        (ChatMessage(role="narrator", content="x"), "unsupported role"),
        (ChatMessage(role="user", content=None), "content is required"),
        (ChatMessage(role="user", content=[]), "must not be an empty list"),
        (ChatMessage(role="user", content=[{"type": "audio"}]), "unsupported content part type"),
        (ChatMessage(role="user", content=[{"type": "text"}]), "requires a string 'text'"),
        (ChatMessage(role="user", content=[{"type": "image_url", "image_url": {"url": "u", "detail": "max"}}]),
         "unsupported image detail"),
        (ChatMessage(role="assistant", content=[{"type": "image_url", "image_url": "u"}]),
         "only allowed in user messages"),
        (ChatMessage(role="tool", content="42"), "require tool_call_id"),
        (ChatMessage(role="user", content="x", tool_calls=[{"id": "c", "function": {"name": "f"}}]),
         "only assistant messages"),
        (ChatMessage(role="assistant", content=None, tool_calls=[{"function": {"name": "f"}}]),
         "require id and function.name"),
    ])
    def test_unrepresentable_message(self, mapper, message, reason):
        """The failing index and reason are reported."""
        conversation = [ChatMessage(role="user", content="ok"), message]

        with pytest.raises(MessageMappingError) as exc_info:
            mapper.map_all(conversation)

        error = exc_info.value
        assert error.index == 1
        assert error.error.param == "messages[1]"
        assert error.error.request_id == "req_map"
        assert reason in error.error.message
