"""Keys used to match and deduplicate records across sheets and sync cycles."""
from __future__ import annotations

import re
import unicodedata
from typing import Optional

from painel.core.models import LetterRecord, is_absent

IDENTITY_FIELDS = ("doc_id", "url_pdf", "data_emissao", "nome")


def normalize_match_key(value: Optional[str]) -> str:
    """Lowercase ASCII alphanumerics only; sentinels become an empty key."""

    if is_absent(value):
        return ""
    decomposed = unicodedata.normalize("NFD", value.strip().lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]", "", stripped)


def record_key(record: LetterRecord) -> str:
    """Composite identity of a letter for dedup and hide/delete actions.

    Uses doc id, PDF URL, emission timestamp and name; when all four are
    missing the whole row is fingerprinted instead.
    """

    parts = []
    for name in IDENTITY_FIELDS:
        value = getattr(record, name)
        parts.append("" if is_absent(value) else value.strip())

    if any(parts):
        return "|".join(parts).lower()

    pairs = sorted(f"{key}:{value}" for key, value in record.to_dict().items())
    return "|".join(pairs)
