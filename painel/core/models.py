"""Canonical record shapes produced by the ingestion pipeline."""
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

ABSENT = "-"

# Placeholders seen in exported sheets, including the mojibake em-dash.
_ABSENT_VARIANTS = {"", ABSENT, "—", "–", "â€”", "â€“"}

RawRow = Mapping[str, str]


def is_absent(value: Optional[str]) -> bool:
    """Return True when a value carries no data (empty or a sentinel placeholder)."""

    if value is None:
        return True
    return value.strip() in _ABSENT_VARIANTS


def or_absent(value: Optional[str]) -> str:
    """Collapse empty or placeholder values into the ``ABSENT`` sentinel."""

    if is_absent(value):
        return ABSENT
    return value.strip()


class _Record:
    """Shared helpers for the canonical dataclasses."""

    def to_dict(self) -> Dict[str, str]:
        """Return a plain dictionary representation for CSV serialization."""

        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        """Build a record from a loose mapping, ignoring unknown keys."""

        known = {field.name for field in fields(cls)}
        values = {
            key: or_absent(str(value)) if value is not None else ABSENT
            for key, value in data.items()
            if key in known
        }
        return cls(**values)


@dataclass
class LetterRecord(_Record):
    """A preaching letter (carta) request as shown on the dashboard."""

    data_emissao: str = ABSENT
    regiao: str = ABSENT
    igreja_origem: str = ABSENT
    nome: str = ABSENT
    email: str = ABSENT
    telefone: str = ABSENT
    data_pregacao: str = ABSENT
    data_ordenacao: str = ABSENT
    funcao: str = ABSENT
    cargo: str = ABSENT
    ipda_destino: str = ABSENT
    igreja_destino: str = ABSENT
    status: str = ABSENT
    status_merge: str = ABSENT
    url_pdf: str = ABSENT
    doc_id: str = ABSENT
    motivo_bloqueio: str = ABSENT


@dataclass
class WorkerRecord(_Record):
    """A registered worker (obreiro)."""

    nome: str = ABSENT
    cargo: str = ABSENT
    igreja: str = ABSENT
    campo: str = ABSENT
    status: str = ABSENT
    data_ordenacao: str = ABSENT
    data_batismo: str = ABSENT
    telefone: str = ABSENT
    email: str = ABSENT
    funcao: str = ABSENT
    regiao: str = ABSENT
    foto: str = ABSENT


@dataclass
class AccessRecord(_Record):
    """Access status row used only to enrich letters."""

    email: str = ABSENT
    nome: str = ABSENT
    telefone: str = ABSENT
    status: str = ABSENT
    motivo: str = ABSENT
