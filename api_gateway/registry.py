"""
Backend registry: logical service name -> backend base URL.

Built once from settings and never mutated afterwards; the proxy and the
health aggregator both receive the same instance.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from types import MappingProxyType

import httpx

from .config import Settings
from .errors import ConfigurationError, ServiceNotFoundError


def redact_url(url: httpx.URL) -> str:
    """URL as text with any user:password removed."""
    return str(url.copy_with(userinfo=b""))


@dataclass(frozen=True)
class BackendEntry:
    name: str
    url: httpx.URL

    @property
    def base_url(self) -> str:
        return str(self.url).rstrip("/")

    @property
    def display_url(self) -> str:
        """Base URL without credentials, safe for logs and /health output."""
        return redact_url(self.url).rstrip("/")


def _parse_backend_url(name: str, raw: str) -> httpx.URL:
    if not raw or not raw.strip():
        raise ConfigurationError(f"Backend URL for service '{name}' is not set")
    try:
        url = httpx.URL(raw.strip())
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"Backend URL for service '{name}' is malformed: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(
            f"Backend URL for service '{name}' must be an absolute http(s) URL, got {raw!r}"
        )
    return url


class BackendRegistry:
    """Read-only lookup of backends by logical service name."""

    def __init__(self, entries: Iterable[tuple[str, str]]):
        backends: dict[str, BackendEntry] = {}
        for name, raw_url in entries:
            if not name or "/" in name:
                raise ConfigurationError(f"Invalid service name {name!r}")
            if name in backends:
                raise ConfigurationError(f"Service '{name}' is registered more than once")
            backends[name] = BackendEntry(name=name, url=_parse_backend_url(name, raw_url))

        if not backends:
            raise ConfigurationError("No backend services configured")

        self._backends = MappingProxyType(backends)

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackendRegistry":
        return cls(settings.service_urls())

    def resolve(self, name: str) -> BackendEntry:
        try:
            return self._backends[name]
        except KeyError:
            raise ServiceNotFoundError(f"No backend registered for '{name}'") from None

    @property
    def names(self) -> list[str]:
        return list(self._backends)

    def __iter__(self) -> Iterator[BackendEntry]:
        return iter(self._backends.values())

    def __len__(self) -> int:
        return len(self._backends)

    def __contains__(self, name: object) -> bool:
        return name in self._backends
