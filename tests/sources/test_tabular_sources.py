"""Tests for the SEAP and EU funds export adapters (HTTP mocked with httpx)."""

import json

import httpx
import pytest

from marketspine.core.errors import ParseError, SourceError, SourceTimeoutError, SourceUnavailableError
from marketspine.sources.eu_funds import EuFundsAdapter
from marketspine.sources.protocol import ItemKind
from marketspine.sources.seap import SeapAdapter
from marketspine.sources.tabular import RowError, parse_csv, parse_json, to_number, to_year

SEAP_CSV = (
    "CUI;Furnizor;Valoare;Autoritate;Contract ID\n"
    "RO18547290;Alpha Tech SRL;12500,50;Primaria Cluj;C-1\n"
    ";Fara Cod SRL;100;Primaria Iasi;C-2\n"
    "14399840;Beta Construct SA;7000;CN Drumuri;C-3\n"
    "RO123;Gamma SRL;50;Primaria Arad;C-4\n"
).encode()

# Row 2 carries a field past the csv module's default field size limit
OVERSIZED_CSV = (
    "CUI,Furnizor,Descriere\n"
    "18547290,Alpha Tech SRL,ok\n"
    "14399840,Beta Construct SA," + "x" * 200_000 + "\n"
    "13548146,Gamma Soft SRL,ok\n"
).encode()


def _client(body: bytes, status: int = 200, seen: list | None = None) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, content=body)

    return httpx.Client(transport=httpx.MockTransport(handler))


class TestParsing:
    @pytest.mark.parametrize("delimiter", [",", ";", "|", "\t"])
    def test_csv_delimiters(self, delimiter):
        text = delimiter.join(["CUI", "Furnizor"]) + "\n"
        text += delimiter.join(["18547290", "Alpha"]) + "\n"
        text += delimiter.join(["14399840", "Beta"]) + "\n"
        rows = list(parse_csv(text.encode()))
        assert rows == [{"CUI": "18547290", "Furnizor": "Alpha"}, {"CUI": "14399840", "Furnizor": "Beta"}]

    def test_csv_skips_blank_rows_and_bom(self):
        content = "\ufeffCUI,Furnizor\n18547290,Alpha\n,\n14399840,Beta\n".encode()
        rows = list(parse_csv(content))
        assert [row["CUI"] for row in rows] == ["18547290", "14399840"]

    def test_csv_unreadable_row_does_not_stop_parsing(self):
        rows = list(parse_csv(OVERSIZED_CSV))
        assert len(rows) == 3
        assert rows[0]["CUI"] == "18547290"
        assert isinstance(rows[1], RowError)
        assert "field larger than field limit" in rows[1].message
        assert rows[2]["CUI"] == "13548146"

    def test_csv_extra_columns_are_dropped(self):
        rows = list(parse_csv(b"CUI,Furnizor\n18547290,Alpha,surplus\n"))
        assert rows == [{"CUI": "18547290", "Furnizor": "Alpha"}]

    def test_json_shapes(self):
        assert list(parse_json(b'[{"CUI": "1"}]')) == [{"CUI": "1"}]
        assert list(parse_json(b'{"data": [{"CUI": "2"}]}')) == [{"CUI": "2"}]
        assert list(parse_json(b'{"other": 1}')) == []

    def test_json_errors(self):
        with pytest.raises(ParseError):
            list(parse_json(b"not json"))
        with pytest.raises(ParseError):
            list(parse_json(b'"a string"'))

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("12500,50", 12500.5),
            ("12 345,60", 12345.6),
            ("12,345.60", 12345.6),
            ("1.234,5", 1234.5),
            (42, 42.0),
            ("n/a", None),
            (None, None),
            (True, None),
        ],
    )
    def test_to_number(self, raw, expected):
        assert to_number(raw) == expected

    def test_to_year(self):
        assert to_year("2024") == 2024
        assert to_year(99) is None
        assert to_year("x") is None


class TestSeapAdapter:
    def test_discover(self):
        adapter = SeapAdapter("https://example.test/seap.csv", client=_client(SEAP_CSV))
        items = list(adapter.discover(None, 10))
        assert [item.kind for item in items] == [ItemKind.OK, ItemKind.SKIP, ItemKind.OK, ItemKind.OK]
        assert [item.cursor for item in items] == ["1", "2", "3", "4"]

        alpha = items[0].record
        assert alpha.raw_identifier == "RO18547290"
        assert alpha.company_name == "Alpha Tech SRL"
        assert alpha.evidence["value"] == 12500.5
        assert alpha.evidence["contractId"] == "C-1"
        assert alpha.evidence["authorityName"] == "Primaria Cluj"
        assert alpha.evidence["supplierName"] == "Alpha Tech SRL"
        assert alpha.evidence["source"] == "SEAP"
        assert alpha.evidence["Valoare"] == "12500,50"

        # Malformed identifiers are passed through so they can be counted
        assert items[3].record.raw_identifier == "RO123"

    def test_limit_and_resume(self):
        adapter = SeapAdapter("https://example.test/seap.csv", client=_client(SEAP_CSV))
        first = list(adapter.discover(None, 1))
        assert [item.cursor for item in first] == ["1"]
        rest = list(adapter.discover(first[-1].cursor, 10))
        assert [item.cursor for item in rest] == ["2", "3", "4"]

    def test_unreadable_row_is_an_error_item(self):
        adapter = SeapAdapter("https://example.test/seap.csv", client=_client(OVERSIZED_CSV))
        items = list(adapter.discover(None, 10))
        assert [item.kind for item in items] == [ItemKind.OK, ItemKind.ERROR, ItemKind.OK]
        assert [item.cursor for item in items] == ["1", "2", "3"]
        assert items[1].item_ref == "row:2"
        assert "field larger than field limit" in items[1].reason

        resumed = list(adapter.discover(items[1].cursor, 10))
        assert [item.record.raw_identifier for item in resumed] == ["13548146"]

    def test_zero_limit_downloads_nothing(self):
        seen: list = []
        adapter = SeapAdapter("https://example.test/seap.csv", client=_client(SEAP_CSV, seen=seen))
        assert list(adapter.discover(None, 0)) == []
        assert seen == []

    def test_sends_user_agent(self):
        seen: list = []
        adapter = SeapAdapter("https://example.test/seap.csv", client=_client(SEAP_CSV, seen=seen))
        list(adapter.discover(None, 1))
        assert seen[0].headers["User-Agent"] == "MarketSpine/1.0"

    def test_http_error_is_unavailable(self):
        adapter = SeapAdapter("https://example.test/seap.csv", client=_client(b"", status=503))
        with pytest.raises(SourceUnavailableError) as exc_info:
            list(adapter.discover(None, 10))
        assert exc_info.value.retryable is True
        assert exc_info.value.context.http_status == 503

    def test_timeout_is_unavailable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        adapter = SeapAdapter("https://example.test/seap.csv", client=httpx.Client(transport=httpx.MockTransport(handler)))
        with pytest.raises(SourceTimeoutError, match="timed out") as exc_info:
            list(adapter.discover(None, 10))
        assert exc_info.value.retryable is True

    def test_oversize_export(self):
        adapter = SeapAdapter("https://example.test/seap.csv", client=_client(SEAP_CSV), max_bytes=16)
        with pytest.raises(SourceError) as exc_info:
            list(adapter.discover(None, 10))
        assert not isinstance(exc_info.value, SourceUnavailableError)

    def test_health_check(self):
        assert SeapAdapter("https://example.test/seap.csv", client=_client(b"")).health_check() is True
        assert SeapAdapter("https://example.test/seap.csv", client=_client(b"", status=404)).health_check() is False


class TestEuFundsAdapter:
    def test_json_export(self):
        body = json.dumps(
            {
                "items": [
                    {
                        "CUI Beneficiar": "14399840",
                        "Beneficiary": "Beta SA",
                        "Grant Amount": "1,250.00",
                        "Award Date": "2024-05-02",
                        "Project ID": "P-7",
                        "Program": "POR 2021-2027",
                    }
                ]
            }
        ).encode()
        adapter = EuFundsAdapter("https://example.test/beneficiaries.json", client=_client(body))
        assert adapter.format == "json"
        [item] = list(adapter.discover(None, 10))
        evidence = item.record.evidence
        assert item.record.raw_identifier == "14399840"
        assert evidence["amount"] == 1250.0
        assert evidence["date"] == "2024-05-02"
        assert evidence["fundProjectId"] == "P-7"
        assert evidence["programName"] == "POR 2021-2027"
        assert evidence["source"] == "EU_FUNDS"

    def test_csv_export(self):
        body = b"CUI,Beneficiar,Valoare\n18547290,Alpha,1000\n"
        adapter = EuFundsAdapter("https://example.test/beneficiaries.csv", client=_client(body))
        [item] = list(adapter.discover(None, 10))
        assert item.record.company_name == "Alpha"
        assert item.record.evidence["value"] == 1000.0
