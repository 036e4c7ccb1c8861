"""Dashboard core for preaching letters and workers published in Google Sheets."""
from painel.core import (
    ABSENT,
    AccessRecord,
    LetterRecord,
    LocalStore,
    WorkerRecord,
    configure_logging,
    is_absent,
)
from painel.ingestion import (
    RecordKind,
    SheetsClient,
    extract_spreadsheet_id,
    parse_csv,
    resolve,
    transform_access,
    transform_letter,
    transform_worker,
)
from painel.processing import merge_access, record_key
from painel.sync import SyncEngine, SyncSettings

__all__ = [
    "ABSENT",
    "AccessRecord",
    "LetterRecord",
    "LocalStore",
    "RecordKind",
    "SheetsClient",
    "SyncEngine",
    "SyncSettings",
    "WorkerRecord",
    "configure_logging",
    "extract_spreadsheet_id",
    "is_absent",
    "merge_access",
    "parse_csv",
    "record_key",
    "resolve",
    "transform_access",
    "transform_letter",
    "transform_worker",
]
