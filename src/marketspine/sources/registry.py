"""Adapter registry, in registration order (the order sources run in)."""

from __future__ import annotations

import httpx

from marketspine.core.errors import ConfigError
from marketspine.core.settings import IngestSettings
from marketspine.sources.eu_funds import EuFundsAdapter
from marketspine.sources.protocol import SourceAdapter
from marketspine.sources.seap import SeapAdapter
from marketspine.sources.third_party import ThirdPartyAdapter


class AdapterRegistry:
    """
    Usage:
        registry = AdapterRegistry()
        registry.register(SeapAdapter(url))
        registry.get("SEAP").discover(None, 100)
    """

    def __init__(self) -> None:
        self._adapters: dict[str, SourceAdapter] = {}

    def register(self, adapter: SourceAdapter) -> SourceAdapter:
        if adapter.name in self._adapters:
            raise ConfigError(f"Source already registered: {adapter.name}")
        self._adapters[adapter.name] = adapter
        return adapter

    def get(self, name: str) -> SourceAdapter:
        try:
            return self._adapters[name]
        except KeyError:
            raise ConfigError(f"Source not registered: {name}") from None

    def names(self) -> list[str]:
        return list(self._adapters)

    def select(self, names: list[str] | None = None) -> list[SourceAdapter]:
        """Adapters for ``names`` (registration order kept), or all of them."""
        if names is None:
            return list(self._adapters.values())
        unknown = [name for name in names if name not in self._adapters]
        if unknown:
            raise ConfigError(f"Unknown sources requested: {', '.join(unknown)}")
        wanted = set(names)
        return [adapter for name, adapter in self._adapters.items() if name in wanted]

    def __contains__(self, name: object) -> bool:
        return name in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)


def build_registry(settings: IngestSettings, client: httpx.Client | None = None) -> AdapterRegistry:
    """Register every source that has an upstream URL configured."""
    client = client or httpx.Client(follow_redirects=True)
    registry = AdapterRegistry()
    limits = {"timeout": settings.http_timeout_seconds, "max_bytes": settings.max_download_bytes}
    if settings.seap_csv_url:
        registry.register(SeapAdapter(settings.seap_csv_url, client=client, **limits))
    if settings.eu_funds_url:
        registry.register(EuFundsAdapter(settings.eu_funds_url, client=client, **limits))
    if settings.third_party_url:
        registry.register(
            ThirdPartyAdapter(
                settings.third_party_url,
                api_key=settings.third_party_api_key,
                client=client,
                timeout=settings.http_timeout_seconds,
            )
        )
    return registry
