"""Dashboard filters and summary metrics over canonical records."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from painel.core.models import LetterRecord, WorkerRecord, is_absent
from painel.ingestion.dates import parse_date

AUTHORIZED_VALUES = {"sim", "autorizado"}


@dataclass
class LetterFilters:
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    igreja: str = ""
    campo: str = ""
    cargo: str = ""
    status: str = ""
    search: str = ""

    def is_active(self) -> bool:
        return any(
            [self.date_start, self.date_end, self.igreja, self.campo, self.cargo, self.status, self.search]
        )


@dataclass
class DashboardMetrics:
    total_letters: int
    letters_today: int
    letters_last_7_days: int
    total_workers: int
    role_counts: List[tuple]


def filter_letters(letters: Iterable[LetterRecord], filters: LetterFilters) -> List[LetterRecord]:
    """Apply the dashboard filters; date bounds are inclusive and compare emission dates."""

    search = filters.search.strip().lower()
    selected: List[LetterRecord] = []
    for letter in letters:
        if search and search not in letter.nome.lower():
            continue
        if filters.igreja and letter.igreja_origem != filters.igreja:
            continue
        if filters.campo and letter.regiao != filters.campo:
            continue
        if filters.cargo and letter.cargo != filters.cargo:
            continue
        if filters.status and letter.status != filters.status:
            continue
        if filters.date_start or filters.date_end:
            emitted = parse_date(letter.data_emissao)
            if not emitted:
                continue
            if filters.date_start and emitted < filters.date_start:
                continue
            if filters.date_end and emitted > filters.date_end:
                continue
        selected.append(letter)
    return selected


def unique_values(records: Iterable, field_name: str) -> List[str]:
    """Sorted distinct values of a field, skipping sentinels."""

    values = {getattr(record, field_name) for record in records}
    return sorted(value for value in values if not is_absent(value))


def compute_metrics(
    letters: Sequence[LetterRecord],
    workers: Sequence[WorkerRecord],
    today: Optional[date] = None,
) -> DashboardMetrics:
    """Count letters per day window and records per role."""

    today = today or date.today()
    week_start = today - timedelta(days=7)

    letters_today = 0
    letters_week = 0
    for letter in letters:
        emitted = parse_date(letter.data_emissao)
        if not emitted:
            continue
        if emitted == today:
            letters_today += 1
        if emitted >= week_start:
            letters_week += 1

    role_source: Sequence = workers if workers else letters
    counts: Dict[str, int] = {}
    for record in role_source:
        if is_absent(record.cargo):
            continue
        counts[record.cargo] = counts.get(record.cargo, 0) + 1

    return DashboardMetrics(
        total_letters=len(letters),
        letters_today=letters_today,
        letters_last_7_days=letters_week,
        total_workers=len(workers),
        role_counts=sorted(counts.items(), key=lambda item: (-item[1], item[0])),
    )


def is_blocked_status(value: Optional[str]) -> bool:
    """Anything other than an explicit authorization counts as blocked; empty does not."""

    lowered = (value or "").strip().lower()
    if is_absent(lowered):
        return False
    return lowered not in AUTHORIZED_VALUES
