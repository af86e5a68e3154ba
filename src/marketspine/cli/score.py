"""
CLI: ``marketspine score`` - recompute company scores.
"""

from __future__ import annotations

import typer

from marketspine.cli.utils import fail, make_context, print_dict, print_json
from marketspine.core.errors import IntegrityError
from marketspine.core.identifiers import normalize_cui
from marketspine.scoring.service import ScoreService
from marketspine.stores.companies import CompanyStore

app = typer.Typer(no_args_is_help=True)


@app.command()
def company(
    key: str = typer.Argument(..., help="Company id, slug or CUI"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Recompute and store one company's score."""
    ctx = make_context(database)
    companies = CompanyStore(ctx.conn)
    cui = normalize_cui(key)
    row = companies.get(key) or companies.by_slug(key) or (companies.by_tax_id(cui) if cui else None)
    if row is None:
        fail(f"No company matches {key!r}")

    try:
        result = ScoreService(ctx.conn).recompute(row["id"])
    except IntegrityError as e:
        ctx.conn.rollback()
        fail(str(e))
    ctx.conn.commit()

    if json_out:
        print_json(result)
    else:
        data = result.to_dict()
        print_dict(
            {k: data[k] for k in ("score", "confidence", "risk_flags", "integrity_score", "valuation")},
            title=f"Score: {row['name']}",
        )
