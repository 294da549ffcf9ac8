"""
Inference Gateway - Configuration

Settings are read from environment variables once per process.
Tests call reset_settings() after changing the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .core.models import ProviderKind


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def get_provider_env_keys() -> Dict[ProviderKind, Optional[str]]:
    """
    Get fallback provider API keys from environment.

    Used when a request does not carry its own credentials.
    """
    return {
        ProviderKind.OPENAI: os.getenv("OPENAI_API_KEY"),
        ProviderKind.ANTHROPIC: os.getenv("ANTHROPIC_API_KEY"),
        ProviderKind.GOOGLE: os.getenv("GOOGLE_API_KEY"),
    }


def get_cors_allowed_origins() -> List[str]:
    """Parse CORS_ALLOW_ORIGINS from environment."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "")
    if not raw.strip():
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass
class GatewaySettings:
    """Process-wide gateway settings."""
    provider_api_keys: Dict[ProviderKind, Optional[str]] = field(default_factory=dict)
    models_file: Optional[str] = None
    use_stub_adapters: bool = False
    request_timeout: int = 60
    max_tool_iterations: int = 10
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "inference-gateway"
    otlp_endpoint: Optional[str] = None
    cors_allow_origins: List[str] = field(default_factory=list)
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "GatewaySettings":
        log_format = os.getenv("LOG_FORMAT", "json").lower()
        if log_format not in {"json", "text"}:
            raise ValueError("Invalid LOG_FORMAT. Use one of: json, text")

        return cls(
            provider_api_keys=get_provider_env_keys(),
            models_file=os.getenv("GATEWAY_MODELS_FILE") or None,
            use_stub_adapters=_env_bool("USE_STUB_ADAPTERS"),
            request_timeout=_env_int("GATEWAY_REQUEST_TIMEOUT", 60),
            max_tool_iterations=_env_int("GATEWAY_MAX_TOOL_ITERATIONS", 10),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=log_format,
            service_name=os.getenv("OTEL_SERVICE_NAME", "inference-gateway"),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
            cors_allow_origins=get_cors_allowed_origins(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
        )

    def api_key_for(self, provider: ProviderKind) -> Optional[str]:
        return self.provider_api_keys.get(provider)


_settings: Optional[GatewaySettings] = None


def get_settings() -> GatewaySettings:
    """Get process settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = GatewaySettings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop cached settings (for testing)."""
    global _settings
    _settings = None
