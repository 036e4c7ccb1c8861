"""Core building blocks for the painel package."""
from painel.core.logging import configure_logging
from painel.core.models import ABSENT, AccessRecord, LetterRecord, WorkerRecord, is_absent
from painel.core.store import LocalStore
from painel.core.utils import get_config_value, load_env_file

__all__ = [
    "ABSENT",
    "AccessRecord",
    "LetterRecord",
    "LocalStore",
    "WorkerRecord",
    "configure_logging",
    "get_config_value",
    "is_absent",
    "load_env_file",
]
