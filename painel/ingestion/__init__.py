"""Ingestion package: CSV decoding, header aliasing, row transforms, and sheet fetching."""
from painel.ingestion.aliases import normalize_header, resolve
from painel.ingestion.csv_decoder import column_letter, parse_csv
from painel.ingestion.dates import format_date, parse_date, parse_datetime
from painel.ingestion.sheets import (
    Found,
    NotFound,
    RecordKind,
    SheetFetchError,
    SheetsClient,
    build_csv_url,
    candidate_sheet_names,
    extract_spreadsheet_id,
)
from painel.ingestion.transformers import normalize_role, transform_access, transform_letter, transform_worker

__all__ = [
    "Found",
    "NotFound",
    "RecordKind",
    "SheetFetchError",
    "SheetsClient",
    "build_csv_url",
    "candidate_sheet_names",
    "column_letter",
    "extract_spreadsheet_id",
    "format_date",
    "normalize_header",
    "normalize_role",
    "parse_csv",
    "parse_date",
    "parse_datetime",
    "resolve",
    "transform_access",
    "transform_letter",
    "transform_worker",
]
