"""Presentation rows and export sinks."""
from painel.reporting.sinks import write_csv, write_excel
from painel.reporting.templates import (
    DISPLAY_EMPTY,
    letters_to_rows,
    status_label,
    visible_columns,
    workers_to_rows,
)

__all__ = [
    "DISPLAY_EMPTY",
    "letters_to_rows",
    "status_label",
    "visible_columns",
    "workers_to_rows",
    "write_csv",
    "write_excel",
]
