"""Source adapters: SEAP, EU funds, third-party provider, static fixtures."""

from marketspine.sources.eu_funds import EuFundsAdapter
from marketspine.sources.protocol import (
    NOMINAL_TRUST,
    BaseAdapter,
    DiscoveredRecord,
    ItemKind,
    ItemResult,
    SourceAdapter,
    SourceId,
    nominal_trust,
)
from marketspine.sources.registry import AdapterRegistry, build_registry
from marketspine.sources.sanitize import sanitize_payload
from marketspine.sources.seap import SeapAdapter
from marketspine.sources.static import StaticAdapter
from marketspine.sources.third_party import ThirdPartyAdapter

__all__ = [
    "SourceId",
    "NOMINAL_TRUST",
    "nominal_trust",
    "DiscoveredRecord",
    "ItemKind",
    "ItemResult",
    "SourceAdapter",
    "BaseAdapter",
    "AdapterRegistry",
    "build_registry",
    "SeapAdapter",
    "EuFundsAdapter",
    "ThirdPartyAdapter",
    "StaticAdapter",
    "sanitize_payload",
]
