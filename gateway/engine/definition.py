"""
Inference Gateway - Execution Plan

Immutable descriptions of how one request is executed:

- Model: descriptive metadata carried alongside every emitted event
- CompletionEngineParams: the provider-bound engine handle
- CompletionModelDefinition: the full plan (engine, prompt, tools, metadata)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..core.credentials import Credentials
from ..core.models import ChatCompletionRequest, ProviderKind
from ..tools.capability import ModelTools


class ModelType(str, Enum):
    """Kind of model a request is executed against."""
    COMPLETIONS = "completions"
    EMBEDDING = "embedding"
    IMAGE = "image"


@dataclass(frozen=True)
class ExecutionOptions:
    """Engine knobs that are not part of the provider request."""
    max_tool_iterations: int = 10


@dataclass(frozen=True)
class InputArgs:
    """Named template arguments (empty when the caller sends the whole prompt)."""
    names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Prompt:
    """Server-side prompt template."""
    name: Optional[str] = None
    system: Optional[str] = None

    @classmethod
    def empty(cls) -> Prompt:
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.name is None and self.system is None


@dataclass(frozen=True)
class Model:
    """Descriptive metadata for telemetry attribution."""
    name: str
    description: str
    provider_name: str
    model_type: ModelType
    prompt_name: Optional[str] = None
    model_params: Dict[str, Any] = field(default_factory=dict)
    execution_options: ExecutionOptions = field(default_factory=ExecutionOptions)
    input_args: InputArgs = field(default_factory=InputArgs)
    tools: ModelTools = ()
    response_schema: Optional[Dict[str, Any]] = None
    credentials: Optional[Credentials] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class CompletionEngineParams:
    """Provider-bound engine handle plus the sampling parameters for it."""
    provider: ProviderKind
    model_name: str
    endpoint: Optional[str] = None
    credentials: Optional[Credentials] = field(default=None, repr=False, compare=False)
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: Optional[Tuple[str, ...]] = None
    tool_choice: Any = None
    response_format: Optional[Dict[str, Any]] = None

    @classmethod
    def from_request(
        cls,
        provider: ProviderKind,
        request: ChatCompletionRequest,
        endpoint: Optional[str],
        credentials: Optional[Credentials]
    ) -> CompletionEngineParams:
        return cls(
            provider=provider,
            model_name=request.model,
            endpoint=endpoint,
            credentials=credentials,
            temperature=request.temperature,
            top_p=request.top_p,
            max_tokens=request.max_tokens,
            stop=tuple(request.stop) if request.stop else None,
            tool_choice=request.tool_choice,
            response_format=request.response_format,
        )


@dataclass(frozen=True)
class CompletionModelParams:
    engine: CompletionEngineParams
    provider_name: str
    prompt_name: Optional[str] = None


@dataclass(frozen=True)
class CompletionModelDefinition:
    """The fully resolved execution plan for one chat completion."""
    name: str
    model_params: CompletionModelParams
    input_args: InputArgs
    prompt: Prompt
    tools: ModelTools
    metadata: Model

    @property
    def engine(self) -> CompletionEngineParams:
        return self.model_params.engine
