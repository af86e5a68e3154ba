"""EU funds beneficiary discovery (CSV or JSON lists)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from marketspine.sources.protocol import SourceId
from marketspine.sources.tabular import AMOUNT_COLUMNS, DATE_COLUMNS, TabularAdapter, first_value


class EuFundsAdapter(TabularAdapter):
    source_id = SourceId.EU_FUNDS

    IDENTIFIER_COLUMNS = (
        "CUI",
        "Cod fiscal",
        "CodFiscal",
        "CIF",
        "CUI Beneficiar",
        "Beneficiary CUI",
        "Fiscal Code",
        "FiscalCode",
    )
    NAME_COLUMNS = (
        "Beneficiar",
        "Beneficiary",
        "Denumire Beneficiar",
        "Beneficiary Name",
        "Nume Beneficiar",
    )

    def amount_columns(self) -> Sequence[str]:
        return (*AMOUNT_COLUMNS, "Grant Amount")

    def date_columns(self) -> Sequence[str]:
        return (*DATE_COLUMNS, "Award Date")

    def build_evidence(self, row: Mapping[str, Any], row_hash: str) -> dict[str, Any]:
        evidence = self.common_evidence(row, row_hash)
        project_id = first_value(row, ("Project ID", "project_id", "ID"))
        if project_id is not None:
            evidence["fundProjectId"] = str(project_id)
        program = first_value(row, ("Program", "program", "Program Name"))
        if program is not None:
            evidence["programName"] = str(program)
        return self.with_raw_columns(evidence, row)
