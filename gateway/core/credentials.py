"""
Inference Gateway - Request Credentials

Optional per-request secret material attached by the transport layer.
Values are read-only once attached and never rendered in logs or reprs.
"""

from dataclasses import dataclass
from typing import Optional


class Credentials:
    """Base class for credential variants."""

    @property
    def api_key(self) -> Optional[str]:
        return None

    @property
    def endpoint(self) -> Optional[str]:
        return None


@dataclass(frozen=True, repr=False)
class ApiKeyCredentials(Credentials):
    """A bare provider API key."""
    key: str

    @property
    def api_key(self) -> Optional[str]:
        return self.key

    def __repr__(self) -> str:
        return "ApiKeyCredentials(key='[REDACTED]')"


@dataclass(frozen=True, repr=False)
class ApiKeyWithEndpointCredentials(Credentials):
    """A provider API key bound to a custom endpoint (self-hosted, proxies)."""
    key: str
    url: str

    @property
    def api_key(self) -> Optional[str]:
        return self.key

    @property
    def endpoint(self) -> Optional[str]:
        return self.url

    def __repr__(self) -> str:
        return f"ApiKeyWithEndpointCredentials(key='[REDACTED]', url={self.url!r})"
