"""
Inference Gateway - Pytest Configuration

Configures:
- Integration test markers (skip by default)
- Stub-backed settings, catalogue and application
- A scripted provider adapter for engine tests
- A recording callback sink
"""

import os
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Union
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from gateway.adapters import ADAPTERS, AdapterConfig, BaseAdapter, OpenAIAdapter
from gateway.config import GatewaySettings
from gateway.core.models import (
    ModelInfo,
    ModelPricing,
    ProviderChunk,
    ProviderCompletion,
    ProviderKind,
    ProviderRequest,
)
from gateway.engine.events import CallbackHandlerFn, ModelEventWithDetails
from gateway.registry import AvailableModels, InferenceProviderBinding, ModelDefinition


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )
    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


# ============================================================
# Settings and Catalogue
# ============================================================

@pytest.fixture
def stub_settings():
    """Settings with stub adapters and a fake OpenAI key."""
    return GatewaySettings(
        provider_api_keys={ProviderKind.OPENAI: "sk-test"},
        use_stub_adapters=True,
    )


@pytest.fixture
def stub_models(stub_settings):
    """Built-in catalogue including the stub models."""
    return AvailableModels.from_settings(stub_settings)


@pytest.fixture
def gpt4_models():
    """Catalogue with one OpenAI model whose upstream name differs from its id."""
    info = ModelInfo(
        id="openai/gpt-4",
        provider=ProviderKind.OPENAI,
        name="gpt-4-0613",
        capabilities=["chat", "tools"],
        context_window=8192,
        max_output_tokens=4096,
        pricing=ModelPricing(input_per_1m_tokens=30.0, output_per_1m_tokens=60.0),
    )
    return AvailableModels([
        ModelDefinition(
            info=info,
            inference_provider=InferenceProviderBinding(
                provider=ProviderKind.OPENAI,
                model_name="gpt-4-0613",
            ),
        )
    ])


# ============================================================
# Callback Sink
# ============================================================

class EventRecorder:
    """Listener that keeps every delivered event."""

    def __init__(self):
        self.messages: List[ModelEventWithDetails] = []

    def __call__(self, message: ModelEventWithDetails) -> None:
        self.messages.append(message)

    @property
    def event_types(self) -> List[str]:
        return [m.event.event_type.value for m in self.messages]


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def callback_handler(recorder):
    return CallbackHandlerFn(recorder)


# ============================================================
# Scripted Provider
# ============================================================

ScriptedChunk = Union[ProviderChunk, Exception]


@dataclass
class AdapterScript:
    """
    Canned provider behaviour.

    Each chat_completion call pops one entry from `completions`; each
    streamed call pops one list from `streams`. Exceptions are raised in
    place.
    """
    completions: List[Union[ProviderCompletion, Exception]] = field(default_factory=list)
    streams: List[List[ScriptedChunk]] = field(default_factory=list)
    requests: List[ProviderRequest] = field(default_factory=list)
    configs: List[AdapterConfig] = field(default_factory=list)
    closed: int = 0
    adapter_class: Optional[type] = None

    def adapter(self) -> BaseAdapter:
        return self.adapter_class(AdapterConfig(api_key="sk-test"))


def _scripted_adapter_class(script: AdapterScript) -> type:
    class ScriptedAdapter(BaseAdapter):
        provider = ProviderKind.OPENAI
        MODELS = OpenAIAdapter.MODELS

        def __init__(self, config: AdapterConfig):
            super().__init__(config)
            script.configs.append(config)

        def _auth_headers(self):
            return {}

        async def chat_completion(self, request: ProviderRequest, request_id: str = ""):
            script.requests.append(request)
            item = script.completions.pop(0)
            if isinstance(item, Exception):
                raise item
            return item

        async def chat_completion_stream(
            self, request: ProviderRequest, request_id: str = ""
        ) -> AsyncIterator[ProviderChunk]:
            script.requests.append(request)
            for item in script.streams.pop(0):
                if isinstance(item, Exception):
                    raise item
                yield item

        async def close(self):
            script.closed += 1
            await super().close()

    return ScriptedAdapter


@pytest.fixture
def scripted():
    """Replace the OpenAI adapter with a scripted one for the test."""
    script = AdapterScript()
    script.adapter_class = _scripted_adapter_class(script)
    with patch.dict(ADAPTERS, {ProviderKind.OPENAI: script.adapter_class}):
        yield script


# ============================================================
# Provider Payloads
# ============================================================

@pytest.fixture
def mock_openai_response():
    """Standard mock OpenAI chat response."""
    return {
        "id": "chatcmpl-test123",
        "object": "chat.completion",
        "created": 1234567890,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": "Hello! I'm a mock response."
                },
                "finish_reason": "stop"
            }
        ],
        "usage": {
            "prompt_tokens": 10,
            "completion_tokens": 8,
            "total_tokens": 18
        }
    }


@pytest.fixture
def mock_anthropic_response():
    """Standard mock Anthropic response."""
    return {
        "id": "msg-test123",
        "type": "message",
        "role": "assistant",
        "content": [
            {
                "type": "text",
                "text": "Hello! I'm a mock Claude response."
            }
        ],
        "model": "claude-3-5-sonnet-20241022",
        "stop_reason": "end_turn",
        "usage": {
            "input_tokens": 10,
            "output_tokens": 8
        }
    }


@pytest.fixture
def mock_error_500():
    """Mock 500 error response."""
    return {
        "error": {
            "code": "internal_error",
            "message": "Internal server error",
            "type": "server_error"
        }
    }


@pytest.fixture
def mock_error_429():
    """Mock 429 rate limit response."""
    return {
        "error": {
            "code": "rate_limit_exceeded",
            "message": "Rate limit exceeded",
            "type": "rate_limit_error"
        }
    }


# ============================================================
# Application
# ============================================================

@pytest.fixture
def app(stub_settings, stub_models, callback_handler):
    """Application wired to the stub catalogue (lifespan not started)."""
    from gateway.server import create_app

    return create_app(
        settings=stub_settings,
        available_models=stub_models,
        callback_handler=callback_handler,
    )


@pytest.fixture
def client(app):
    return TestClient(app)
