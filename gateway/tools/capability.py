"""
Inference Gateway - Tool Capability Set

Turns caller-declared tool definitions into two views that are built together
and never separately:

- descriptors: ordered ModelTool records (name + description) attached to
  model metadata for telemetry and introspection
- capabilities: name -> Tool mapping the engine dispatches tool calls through

Duplicate names are kept in the descriptor list but collapse to the last
definition in the mapping.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..core.errors import CustomError
from ..core.models import FunctionDefinition, ToolDefinition
from ..observability.logging import get_logger

logger = get_logger("gateway.tools")


@dataclass(frozen=True)
class ModelTool:
    """Lightweight tool descriptor (no bound arguments)."""
    name: str
    description: Optional[str] = None
    passed_args: Tuple[str, ...] = ()


ModelTools = Tuple[ModelTool, ...]


class Tool(ABC):
    """An invocable function-calling target."""

    def __init__(self, name: str, description: str = "", parameters: Optional[Dict[str, Any]] = None):
        self.name = name
        self.description = description
        self.parameters = parameters or {"type": "object", "properties": {}}

    def stop_at_call(self) -> bool:
        """Whether the engine should hand the call back to the caller instead of running it."""
        return False

    @abstractmethod
    async def run(self, arguments: Dict[str, Any], tool_call_id: str) -> str:
        """Execute the tool and return its result as text."""
        pass

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            function=FunctionDefinition(
                name=self.name,
                description=self.description,
                parameters=self.parameters,
            )
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class GatewayTool(Tool):
    """
    A tool declared by the caller.

    The gateway cannot execute it; a call to it ends the turn and is returned
    to the caller as a tool call.
    """

    def __init__(self, definition: ToolDefinition):
        super().__init__(
            name=definition.function.name,
            description=definition.function.description,
            parameters=definition.function.parameters or None,
        )
        self.definition = definition

    def stop_at_call(self) -> bool:
        return True

    async def run(self, arguments: Dict[str, Any], tool_call_id: str) -> str:
        raise CustomError(f"Tool '{self.name}' is executed by the caller, not the gateway")

    def to_definition(self) -> ToolDefinition:
        return self.definition


@dataclass(frozen=True)
class ToolSet:
    """Both views of one request's tools."""
    descriptors: ModelTools
    capabilities: Mapping[str, Tool]

    def __bool__(self) -> bool:
        return bool(self.descriptors)


EMPTY_TOOL_SET = ToolSet(descriptors=(), capabilities=MappingProxyType({}))


def build_tool_set(tools: Optional[Sequence[ToolDefinition]]) -> ToolSet:
    """Build descriptors and the dispatch mapping from caller tool definitions."""
    if not tools:
        return EMPTY_TOOL_SET

    descriptors: List[ModelTool] = []
    capabilities: Dict[str, Tool] = {}

    for definition in tools:
        name = definition.function.name
        descriptors.append(
            ModelTool(name=name, description=definition.function.description or None)
        )
        if name in capabilities:
            logger.warning(
                "Duplicate tool name, last definition wins",
                tool_name=name,
            )
        capabilities[name] = GatewayTool(definition)

    return ToolSet(
        descriptors=tuple(descriptors),
        capabilities=MappingProxyType(capabilities),
    )
