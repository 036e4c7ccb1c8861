"""Transform raw sheet rows into canonical letter, worker, and access records."""
from __future__ import annotations

import re
import unicodedata
from dataclasses import fields
from typing import Dict, Tuple

from painel.core.models import ABSENT, AccessRecord, LetterRecord, RawRow, WorkerRecord, is_absent
from painel.ingestion.aliases import (
    ACCESS_ALIASES,
    DEACON_MARKER,
    LETTER_ALIASES,
    MEMBER_MARKER,
    PASTOR_MARKER,
    WORKER_ALIASES,
    WORKER_MARKER,
    AliasTable,
    aliases_for,
    resolve,
)

PASTOR = "Pastor"
DEACON = "Diácono"
WORKER = "Obreiro"
MEMBER = "Membro"

# Precedence order when the role comes from marker columns.
ROLE_MARKERS: Tuple[Tuple[str, str], ...] = (
    (PASTOR_MARKER, PASTOR),
    (DEACON_MARKER, DEACON),
    (WORKER_MARKER, WORKER),
    (MEMBER_MARKER, MEMBER),
)

ROLE_VOCABULARY: Dict[str, str] = {
    "ps": PASTOR,
    "pastor": PASTOR,
    "dic": DEACON,
    "diacono": DEACON,
    "diaconoa": DEACON,
    "ob": WORKER,
    "obreiro": WORKER,
    "mem": MEMBER,
    "membro": MEMBER,
}

# Fields that must carry data for a row to count as a real record.
LETTER_CONTENT_FIELDS = (
    "data_emissao",
    "nome",
    "data_pregacao",
    "igreja_origem",
    "igreja_destino",
    "status",
    "url_pdf",
)
WORKER_CONTENT_FIELDS = ("nome", "igreja", "campo", "status", "telefone", "email")
ACCESS_CONTENT_FIELDS = ("email", "nome", "telefone")


def normalize_role(value: str) -> str:
    """Collapse free-text role variants ("ps", "Diacono") onto one label each.

    Unrecognized text is returned as typed.
    """

    raw = (value or "").strip()
    if is_absent(raw):
        return ABSENT
    decomposed = unicodedata.normalize("NFD", raw.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    key = re.sub(r"[^a-z0-9]", "", stripped)
    return ROLE_VOCABULARY.get(key, raw)


def derive_role(raw: RawRow, table: AliasTable) -> str:
    """Return the explicit role when filled, otherwise the first truthy marker column."""

    role = resolve(raw, aliases_for(table, "cargo"))
    if not role:
        for marker, label in ROLE_MARKERS:
            if resolve(raw, table.get(marker, ())):
                role = label
                break
    return normalize_role(role)


def _canonical_values(raw: RawRow, table: AliasTable, record_type) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for field in fields(record_type):
        if field.name not in table:
            continue
        values[field.name] = resolve(raw, aliases_for(table, field.name)) or ABSENT
    return values


def transform_letter(raw: RawRow) -> LetterRecord:
    """Map a raw CARTAS row onto the canonical letter shape."""

    values = _canonical_values(raw, LETTER_ALIASES, LetterRecord)
    values["cargo"] = derive_role(raw, LETTER_ALIASES)
    return LetterRecord(**values)


def transform_worker(raw: RawRow) -> WorkerRecord:
    """Map a raw OBREIROS row onto the canonical worker shape."""

    values = _canonical_values(raw, WORKER_ALIASES, WorkerRecord)
    values["cargo"] = derive_role(raw, WORKER_ALIASES)
    return WorkerRecord(**values)


def transform_access(raw: RawRow) -> AccessRecord:
    """Map a raw ACESSO row onto the access shape.

    Some people type their name into the email question, so the email is
    reused as the display name when the name column is empty.
    """

    values = _canonical_values(raw, ACCESS_ALIASES, AccessRecord)
    if is_absent(values["nome"]):
        values["nome"] = values["email"]
    return AccessRecord(**values)


def has_content(record, content_fields: Tuple[str, ...]) -> bool:
    """Return True when at least one of the given fields carries data."""

    return any(not is_absent(getattr(record, name)) for name in content_fields)
