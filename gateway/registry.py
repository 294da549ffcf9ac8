"""
Inference Gateway - Model Registry

The catalogue of models the gateway serves, and the resolver that maps a
caller-facing model name ("provider/model") to an inference provider binding.

The catalogue is built from each adapter's built-in model list, optionally
extended by a JSON file (GATEWAY_MODELS_FILE):

    [
      {
        "id": "acme/fast-chat",
        "provider": "openai",
        "model_name": "gpt-4o-mini",
        "endpoint": "https://llm.acme.internal/v1",
        "capabilities": ["chat", "tools"],
        "pricing": {"input_per_1m_tokens": 0.15, "output_per_1m_tokens": 0.6}
      }
    ]

File entries replace built-in entries with the same id.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .adapters import ADAPTERS
from .config import GatewaySettings
from .core.errors import ModelNotFoundError
from .core.models import ModelInfo, ModelPricing, ProviderKind
from .engine.definition import ModelType
from .observability.logging import get_logger

logger = get_logger("gateway.registry")


@dataclass(frozen=True)
class InferenceProviderBinding:
    """Where a model is served: provider kind, upstream model name, optional endpoint."""
    provider: ProviderKind
    model_name: str
    endpoint: Optional[str] = None


@dataclass(frozen=True)
class ModelDefinition:
    """One catalogue entry."""
    info: ModelInfo
    inference_provider: InferenceProviderBinding

    @property
    def model(self) -> str:
        """Caller-facing full name."""
        return self.info.id

    @property
    def model_type(self) -> ModelType:
        if self.info.supports("embedding"):
            return ModelType.EMBEDDING
        if self.info.supports("image"):
            return ModelType.IMAGE
        return ModelType.COMPLETIONS

    @classmethod
    def from_model_info(cls, info: ModelInfo, endpoint: Optional[str] = None) -> "ModelDefinition":
        return cls(
            info=info,
            inference_provider=InferenceProviderBinding(
                provider=info.provider,
                model_name=info.name,
                endpoint=endpoint,
            ),
        )


class AvailableModels:
    """
    Ordered, read-only model catalogue.

    Shared by every request; nothing mutates it after construction.
    """

    def __init__(self, models: Iterable[ModelDefinition] = ()):
        entries: Dict[str, ModelDefinition] = {}
        for definition in models:
            entries[definition.model] = definition
        self._models = entries

    def __iter__(self) -> Iterator[ModelDefinition]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def get(self, name: str) -> Optional[ModelDefinition]:
        return self._models.get(name)

    def list_models(self) -> List[ModelInfo]:
        return [definition.info for definition in self]

    @classmethod
    def builtin(cls, include_stub: bool = False) -> "AvailableModels":
        """Catalogue built from each adapter's model list."""
        models = []
        for provider, adapter_class in ADAPTERS.items():
            if provider == ProviderKind.STUB and not include_stub:
                continue
            models.extend(ModelDefinition.from_model_info(info) for info in adapter_class.list_models())
        return cls(models)

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "AvailableModels":
        catalogue = cls.builtin(include_stub=settings.use_stub_adapters)
        if not settings.models_file:
            return catalogue
        extra = load_models_file(settings.models_file)
        logger.info(
            "Loaded model catalogue file",
            path=settings.models_file,
            model_count=len(extra),
        )
        return cls([*catalogue, *extra])


def _parse_entry(index: int, entry: Dict[str, Any]) -> ModelDefinition:
    try:
        model_id = entry["id"]
        provider = ProviderKind(entry["provider"])
    except KeyError as e:
        raise ValueError(f"models file entry {index}: missing field {e.args[0]!r}")
    except ValueError:
        raise ValueError(f"models file entry {index}: unknown provider {entry.get('provider')!r}")

    pricing = entry.get("pricing") or {}
    info = ModelInfo(
        id=model_id,
        provider=provider,
        name=entry.get("model_name") or model_id.split("/", 1)[-1],
        capabilities=list(entry.get("capabilities") or ["chat"]),
        context_window=int(entry.get("context_window", 0)),
        max_output_tokens=int(entry.get("max_output_tokens", 0)),
        pricing=ModelPricing(
            input_per_1m_tokens=float(pricing.get("input_per_1m_tokens", 0.0)),
            output_per_1m_tokens=float(pricing.get("output_per_1m_tokens", 0.0)),
        ),
    )
    return ModelDefinition.from_model_info(info, endpoint=entry.get("endpoint"))


def load_models_file(path: str) -> List[ModelDefinition]:
    """
    Read extra catalogue entries from a JSON file.

    Raises:
        ValueError: If the file is not a JSON list of valid entries
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of models")
    return [_parse_entry(i, entry) for i, entry in enumerate(raw)]


def find_model_by_full_name(
    model_name: str,
    available_models: AvailableModels,
    request_id: str = "",
) -> ModelDefinition:
    """
    Resolve a caller-facing model name by exact match.

    No fuzzy matching and no provider fallback; pure lookup.

    Raises:
        ModelNotFoundError: If the name is not in the catalogue
    """
    definition = available_models.get(model_name)
    if definition is None:
        raise ModelNotFoundError(model_name, request_id)
    return definition
