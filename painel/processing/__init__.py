"""Processing steps applied after ingestion: merge, identity, filters."""
from painel.processing.filters import (
    DashboardMetrics,
    LetterFilters,
    compute_metrics,
    filter_letters,
    is_blocked_status,
    unique_values,
)
from painel.processing.identity import normalize_match_key, record_key
from painel.processing.merge import merge_access

__all__ = [
    "DashboardMetrics",
    "LetterFilters",
    "compute_metrics",
    "filter_letters",
    "is_blocked_status",
    "merge_access",
    "normalize_match_key",
    "record_key",
    "unique_values",
]
