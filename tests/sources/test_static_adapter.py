"""Tests for the adapter protocol helpers, the static adapter and the registry."""

import pytest

from marketspine.core.errors import ConfigError, SourceError
from marketspine.core.settings import IngestSettings
from marketspine.sources import (
    AdapterRegistry,
    DiscoveredRecord,
    ItemKind,
    SourceAdapter,
    SourceId,
    StaticAdapter,
    build_registry,
    nominal_trust,
)
from marketspine.sources.protocol import parse_offset


class TestProtocolHelpers:
    def test_parse_offset(self):
        assert parse_offset(None) == 0
        assert parse_offset("") == 0
        assert parse_offset("42") == 42

    @pytest.mark.parametrize("cursor", ["abc", "-1"])
    def test_parse_offset_rejects_garbage(self, cursor):
        with pytest.raises(SourceError):
            parse_offset(cursor)

    def test_nominal_trust(self):
        assert nominal_trust("SEAP") == 60
        assert nominal_trust("EU_FUNDS") == 70
        assert nominal_trust("THIRD_PARTY") == 40
        assert nominal_trust("SOMETHING_ELSE") == 50


class TestStaticAdapter:
    def test_satisfies_protocol(self):
        assert isinstance(StaticAdapter([]), SourceAdapter)

    def test_yields_records_with_cursors(self):
        adapter = StaticAdapter(
            [
                {"identifier": "RO18547290", "name": "Alpha SRL", "contractId": "C-1"},
                {"name": "No identifier"},
                {"identifier": "14399840"},
            ]
        )
        items = list(adapter.discover(None, 10))
        assert [item.kind for item in items] == [ItemKind.OK, ItemKind.SKIP, ItemKind.OK]
        assert [item.cursor for item in items] == ["1", "2", "3"]
        first = items[0].record
        assert first.raw_identifier == "RO18547290"
        assert first.company_name == "Alpha SRL"
        assert first.evidence["contractId"] == "C-1"
        assert first.evidence["source"] == "STATIC"
        assert len(first.evidence["rowHash"]) == 32

    def test_limit_counts_ok_items(self):
        adapter = StaticAdapter([{"identifier": str(n)} for n in range(5)])
        items = list(adapter.discover(None, 2))
        assert [item.cursor for item in items] == ["1", "2"]

    def test_resume_from_cursor(self):
        adapter = StaticAdapter([{"identifier": str(n)} for n in range(5)])
        items = list(adapter.discover("3", 10))
        assert [item.record.raw_identifier for item in items] == ["3", "4"]

    def test_accepts_records(self):
        record = DiscoveredRecord(raw_identifier="18547290", company_name="Alpha")
        [item] = StaticAdapter([record], source_id=SourceId.SEAP).discover(None, 1)
        assert item.record is record

    def test_custom_name(self):
        assert StaticAdapter([], name="FIXTURE").name == "FIXTURE"


class TestAdapterRegistry:
    def test_select_keeps_registration_order(self):
        registry = AdapterRegistry()
        registry.register(StaticAdapter([], name="A"))
        registry.register(StaticAdapter([], name="B"))
        assert [a.name for a in registry.select(["B", "A"])] == ["A", "B"]
        assert [a.name for a in registry.select()] == ["A", "B"]
        assert "A" in registry
        assert len(registry) == 2

    def test_duplicate_registration(self):
        registry = AdapterRegistry()
        registry.register(StaticAdapter([], name="A"))
        with pytest.raises(ConfigError):
            registry.register(StaticAdapter([], name="A"))

    def test_unknown_sources(self):
        registry = AdapterRegistry()
        with pytest.raises(ConfigError, match="NOPE"):
            registry.select(["NOPE"])
        with pytest.raises(ConfigError):
            registry.get("NOPE")

    def test_build_registry_from_settings(self):
        settings = IngestSettings(
            seap_csv_url="https://example.test/seap.csv",
            third_party_url="https://provider.test/companies",
        )
        registry = build_registry(settings)
        assert registry.names() == ["SEAP", "THIRD_PARTY"]

    def test_build_registry_empty(self):
        assert len(build_registry(IngestSettings())) == 0
