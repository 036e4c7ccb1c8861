"""Date helpers for the day-first formats Google Forms exports in pt-BR."""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from painel.core.models import ABSENT, is_absent

_FORMATS = [
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y-%m-%d",
    "%Y/%m/%d",
]


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a sheet timestamp into a naive datetime; return None for anything unreadable."""

    if is_absent(value):
        return None
    text = " ".join(value.split())

    for fmt in _FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_date(value: Optional[str]) -> Optional[date]:
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


def format_date(value: Optional[str]) -> str:
    """Render a sheet date as ``DD/MM/YYYY`` or the sentinel when it cannot be read."""

    parsed = parse_date(value)
    if not parsed:
        return ABSENT
    return parsed.strftime("%d/%m/%Y")
