"""
Inference Gateway - Tools Module

Tool capability wiring and provider tool-format conversion.
"""

from .capability import (
    EMPTY_TOOL_SET,
    GatewayTool,
    ModelTool,
    ModelTools,
    Tool,
    ToolSet,
    build_tool_set,
)

__all__ = [
    "EMPTY_TOOL_SET",
    "GatewayTool",
    "ModelTool",
    "ModelTools",
    "Tool",
    "ToolSet",
    "build_tool_set",
]
