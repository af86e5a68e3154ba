"""SEAP (public procurement) supplier discovery.

Reads the procurement contracts export and yields one record per
contract row, keyed on the supplier's fiscal code.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from marketspine.sources.protocol import SourceId
from marketspine.sources.tabular import TabularAdapter, first_value


class SeapAdapter(TabularAdapter):
    source_id = SourceId.SEAP

    IDENTIFIER_COLUMNS = (
        "CUI",
        "CUI Furnizor",
        "Cod fiscal",
        "CodFiscal",
        "CIF",
        "CIF/CUI",
        "CUI_Furnizor",
        "CUI_FURNIZOR",
        "cui_furnizor",
        "cui",
        "Fiscal Code",
        "FiscalCode",
        "Supplier CUI",
        "Supplier_CUI",
    )
    NAME_COLUMNS = (
        "Furnizor",
        "Denumire Furnizor",
        "Supplier",
        "Supplier Name",
        "Nume Furnizor",
        "Denumire_Furnizor",
        "supplier_name",
    )

    def build_evidence(self, row: Mapping[str, Any], row_hash: str) -> dict[str, Any]:
        evidence = self.common_evidence(row, row_hash)
        contract_id = first_value(row, ("Contract ID", "contract_id", "ID"))
        if contract_id is not None:
            evidence["contractId"] = str(contract_id)
        authority = first_value(row, ("Autoritate", "authority", "Contracting Authority"))
        if authority is not None:
            evidence["authorityName"] = str(authority)
        if "companyName" in evidence:
            evidence["supplierName"] = evidence["companyName"]
        return self.with_raw_columns(evidence, row)
