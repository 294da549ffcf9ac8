"""
Inference Gateway Adapters Module

Provider-specific adapters that translate between the provider-neutral
gateway format and each provider's native API format.
"""

from typing import Dict, Type

from .base import AdapterConfig, BaseAdapter
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter
from .google_adapter import GoogleAdapter
from .stub_adapter import StubAdapter
from ..core.models import ProviderKind

__all__ = [
    "ADAPTERS",
    "BaseAdapter",
    "AdapterConfig",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "StubAdapter",
]

ADAPTERS: Dict[ProviderKind, Type[BaseAdapter]] = {
    ProviderKind.OPENAI: OpenAIAdapter,
    ProviderKind.ANTHROPIC: AnthropicAdapter,
    ProviderKind.GOOGLE: GoogleAdapter,
    ProviderKind.STUB: StubAdapter,
}
