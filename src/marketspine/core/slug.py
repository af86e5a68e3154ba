"""URL-safe company slugs."""

from __future__ import annotations

import re
import unicodedata

MAX_BASE_LENGTH = 80

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
# Legal-form suffixes that add nothing to a slug
_LEGAL_FORMS = re.compile(r"\b(s\.?\s?r\.?\s?l\.?|s\.?\s?a\.?|p\.?\s?f\.?\s?a\.?|i\.?\s?i\.?)\s*$", re.IGNORECASE)


def slugify(name: str) -> str:
    """Lowercase ASCII slug of ``name``; diacritics folded, legal form dropped.

    >>> slugify("Construcții Ardeal S.R.L.")
    'constructii-ardeal'
    """
    stripped = _LEGAL_FORMS.sub("", name.strip())
    folded = unicodedata.normalize("NFKD", stripped).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM.sub("-", folded.lower()).strip("-")
    return slug[:MAX_BASE_LENGTH].rstrip("-")


def make_company_slug(name: str | None, identifier: str) -> str:
    """Base slug for a newly discovered company: ``<name>-<identifier>``."""
    base = slugify(name or "")
    if not base:
        return f"company-{identifier}"
    return f"{base}-{identifier}"


def collision_suffixes(identifier: str, company_id: str) -> list[str]:
    """Suffixes to try, in order, when the base slug is taken."""
    digits = re.sub(r"\D", "", identifier)
    return [f"-cui{digits[-8:]}", f"-{company_id[:8]}"]


__all__ = ["slugify", "make_company_slug", "collision_suffixes"]
