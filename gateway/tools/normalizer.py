"""
Inference Gateway - Tool Normalizer

Converts tool definitions, tool choices and tool calls between the
OpenAI-style canonical format and other providers.
"""

import json
import uuid
from typing import Any, Dict, List, Optional

from ..core.models import FunctionCall, ToolCall, ToolChoice, ToolDefinition

_EMPTY_SCHEMA = {"type": "object", "properties": {}}


def _specific_choice_name(choice: Any) -> Optional[str]:
    if isinstance(choice, dict):
        return (choice.get("function") or {}).get("name")
    return None


# ============================================================
# Tool Definition Normalization (Request → Provider)
# ============================================================

def tools_for_openai(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.function.name,
                "description": tool.function.description,
                "parameters": tool.function.parameters or _EMPTY_SCHEMA,
            },
        }
        for tool in tools
    ]


def tools_for_anthropic(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
    """
    Anthropic uses input_schema instead of parameters and no wrapper type.
    input_schema is mandatory.
    """
    result = []
    for tool in tools:
        anthropic_tool: Dict[str, Any] = {"name": tool.function.name}
        if tool.function.description:
            anthropic_tool["description"] = tool.function.description
        anthropic_tool["input_schema"] = tool.function.parameters or _EMPTY_SCHEMA
        result.append(anthropic_tool)
    return result


def tools_for_google(tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
    """Gemini wraps function declarations: [{"functionDeclarations": [...]}]."""
    declarations = []
    for tool in tools:
        declaration: Dict[str, Any] = {"name": tool.function.name}
        if tool.function.description:
            declaration["description"] = tool.function.description
        declaration["parameters"] = tool.function.parameters or _EMPTY_SCHEMA
        declarations.append(declaration)
    return [{"functionDeclarations": declarations}]


# ============================================================
# Tool Choice Normalization (Request → Provider)
# ============================================================

def tool_choice_for_anthropic(choice: ToolChoice) -> Dict[str, Any]:
    """
    auto -> {"type": "auto"}, required -> {"type": "any"},
    specific -> {"type": "tool", "name": ...}
    """
    if choice == "none":
        return {"type": "none"}
    if choice == "required":
        return {"type": "any"}
    name = _specific_choice_name(choice)
    if name:
        return {"type": "tool", "name": name}
    return {"type": "auto"}


def tool_choice_for_google(choice: ToolChoice) -> Dict[str, Any]:
    if choice == "none":
        return {"functionCallingConfig": {"mode": "NONE"}}
    if choice == "required":
        return {"functionCallingConfig": {"mode": "ANY"}}
    name = _specific_choice_name(choice)
    if name:
        return {"functionCallingConfig": {"mode": "ANY", "allowedFunctionNames": [name]}}
    return {"functionCallingConfig": {"mode": "AUTO"}}


# ============================================================
# Tool Call Normalization (Provider Response → Unified)
# ============================================================

def tool_calls_from_openai(raw_calls: List[Dict[str, Any]]) -> List[ToolCall]:
    return [
        ToolCall(
            id=tc.get("id") or f"call_{uuid.uuid4().hex[:8]}",
            function=FunctionCall(
                name=tc.get("function", {}).get("name", ""),
                arguments=tc.get("function", {}).get("arguments", "") or "{}",
            ),
        )
        for tc in raw_calls
    ]


def tool_calls_from_anthropic(content_blocks: List[Dict[str, Any]]) -> List[ToolCall]:
    """Anthropic returns tool uses as content blocks with a dict `input`."""
    return [
        ToolCall(
            id=block.get("id", f"call_{uuid.uuid4().hex[:8]}"),
            function=FunctionCall(
                name=block.get("name", ""),
                arguments=json.dumps(block.get("input", {})),
            ),
        )
        for block in content_blocks
        if block.get("type") == "tool_use"
    ]


def tool_calls_from_google(parts: List[Dict[str, Any]]) -> List[ToolCall]:
    """Gemini returns function calls as parts with dict `args` and no id."""
    return [
        ToolCall(
            id=f"call_{uuid.uuid4().hex[:8]}_{i}",
            function=FunctionCall(
                name=part["functionCall"].get("name", ""),
                arguments=json.dumps(part["functionCall"].get("args", {})),
            ),
        )
        for i, part in enumerate(parts)
        if "functionCall" in part
    ]
