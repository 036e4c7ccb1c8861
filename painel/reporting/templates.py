"""Presentation-boundary rows: labels, display sentinel, and status badges."""
from typing import Any, Dict, Iterable, List, Tuple
from urllib.parse import quote

from painel.core.models import LetterRecord, WorkerRecord, is_absent
from painel.ingestion.dates import format_date
from painel.processing.filters import AUTHORIZED_VALUES

DISPLAY_EMPTY = "—"

AUTHORIZED_LABEL = "Autorizado"
BLOCKED_LABEL = "Bloqueado"

LETTER_COLUMNS: List[Tuple[str, str]] = [
    ("data_emissao", "Data"),
    ("nome", "Nome"),
    ("data_pregacao", "Dia da pregação"),
    ("igreja_origem", "Igreja origem"),
    ("igreja_destino", "Igreja destino"),
    ("status", "Status"),
    ("motivo_bloqueio", "Motivo"),
    ("url_pdf", "PDF"),
]

LETTER_DETAIL_FIELDS: List[Tuple[str, str]] = [
    ("regiao", "Qual região Pertence"),
    ("igreja_origem", "Qual Igreja Você Pertence?"),
    ("nome", "Nome completo"),
    ("telefone", "Telefone"),
    ("data_pregacao", "Data da pregação"),
    ("data_ordenacao", "Data da Ordenação"),
    ("funcao", "Função Ministerial ?"),
    ("ipda_destino", "Igreja Destino"),
    ("igreja_destino", "Qual Igreja você está indo pregar?"),
]

WORKER_COLUMNS: List[Tuple[str, str]] = [
    ("nome", "Nome"),
    ("cargo", "Cargo"),
    ("igreja", "Igreja"),
    ("campo", "Campo"),
    ("status", "Status"),
    ("data_ordenacao", "Data Ordenação"),
    ("data_batismo", "Data Batismo"),
]

_DATE_FIELDS = {"data_emissao", "data_pregacao", "data_ordenacao", "data_batismo"}


def display(value: str) -> str:
    return DISPLAY_EMPTY if is_absent(value) else " ".join(value.split())


def status_label(record: LetterRecord) -> str:
    """Badge text for a letter's access status."""

    if is_absent(record.status):
        return DISPLAY_EMPTY
    if record.status.strip().lower() in AUTHORIZED_VALUES:
        return AUTHORIZED_LABEL
    return BLOCKED_LABEL


def _cell(record, field: str) -> str:
    value = getattr(record, field)
    if field in _DATE_FIELDS and not is_absent(value):
        formatted = format_date(value)
        return display(formatted)
    return display(value)


def letter_to_row(record: LetterRecord) -> Dict[str, Any]:
    """Convert a letter into a labelled row for tables and exports."""

    row = {label: _cell(record, field) for field, label in LETTER_COLUMNS}
    row["Status"] = status_label(record)
    if row["Status"] != BLOCKED_LABEL:
        row["Motivo"] = DISPLAY_EMPTY
    return row


def worker_to_row(record: WorkerRecord) -> Dict[str, Any]:
    return {label: _cell(record, field) for field, label in WORKER_COLUMNS}


def letters_to_rows(records: Iterable[LetterRecord]) -> List[Dict[str, Any]]:
    return [letter_to_row(record) for record in records]


def workers_to_rows(records: Iterable[WorkerRecord]) -> List[Dict[str, Any]]:
    return [worker_to_row(record) for record in records]


def visible_columns(rows: List[Dict[str, Any]]) -> List[str]:
    """Columns with at least one non-empty value, in their original order."""

    if not rows:
        return []
    return [column for column in rows[0] if any(row.get(column) not in ("", DISPLAY_EMPTY) for row in rows)]


def detail_pairs(record: LetterRecord) -> List[Tuple[str, str]]:
    """Label/value pairs for the letter detail view, skipping empty fields."""

    return [(label, display(getattr(record, field))) for field, label in LETTER_DETAIL_FIELDS
            if not is_absent(getattr(record, field))]


def share_link(record: LetterRecord) -> str:
    """WhatsApp share URL pointing at the letter's PDF when there is one."""

    name = record.nome if not is_absent(record.nome) else "registro"
    if not is_absent(record.url_pdf):
        message = f"Confira esta carta de {name}: {record.url_pdf}"
    else:
        message = f"Confira este registro de {name}."
    return f"https://wa.me/?text={quote(message, safe='')}"
