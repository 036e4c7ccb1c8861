"""Export sinks for dashboard rows."""
import csv
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence


def ensure_output_dir(output_path: Path) -> None:
    """Create parent folders for sink outputs when missing."""

    output_path.parent.mkdir(parents=True, exist_ok=True)


def write_csv(
    rows: Iterable[Dict[str, Any]],
    output_path: Path,
    headers: Optional[Sequence[str]] = None,
) -> None:
    """Write rows to a CSV file.

    Headers default to the first row's keys; pass them explicitly to get a
    header-only file when there are no rows.
    """

    rows = list(rows)
    ensure_output_dir(output_path)
    if not rows and not headers:
        return

    fieldnames: List[str] = list(headers) if headers else list(rows[0].keys())
    with output_path.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)


def write_excel(sheets: Mapping[str, Iterable[Dict[str, Any]]], output_path: Path) -> None:
    """Write one worksheet per entry (title -> rows) using openpyxl."""

    try:
        from openpyxl import Workbook
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ImportError("openpyxl is required for Excel sinks") from exc

    ensure_output_dir(output_path)
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        rows = list(rows)
        sheet = workbook.create_sheet(title=title)
        if not rows:
            continue
        headers: List[str] = list(rows[0].keys())
        sheet.append(headers)
        for row in rows:
            sheet.append([row.get(header, "") for header in headers])
    if not workbook.worksheets:
        workbook.create_sheet(title="cartas")
    workbook.save(output_path)
