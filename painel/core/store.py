"""Small JSON-backed key/value store for state persisted between sessions."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = Path(".painel/state.json")

URL_KEY = "sheets_dashboard_url"
SHEET_NAME_KEY = "sheets_dashboard_custom_sheet"
RECENT_SNAPSHOT_KEY = "recent_letters_snapshot"
CLIENT_ID_KEY = "clientId"
CHURCH_NAME_KEY = "church_name"
PASTOR_NAME_KEY = "pastor_name"
FORM_URL_KEY = "google_form_url"
BLOCK_FORM_URL_KEY = "bloqueio_form_url"


def default_state_path() -> Path:
    return Path(os.getenv("PAINEL_STATE_FILE", DEFAULT_STATE_PATH))


class LocalStore:
    """Persist small values (last URL, sheet override, recent snapshot) to disk.

    Session and tenant keys are written by the login layer; this package only
    reads them.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else default_state_path()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s with unexpected shape", self.path)
            return {}
        return data

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(self._data, handle, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def get_text(self, key: str) -> str:
        value = self._data.get(key)
        return value.strip() if isinstance(value, str) else ""

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()

    def clear(self, keys: Iterable[str]) -> None:
        """Remove several keys with a single write."""

        changed = False
        for key in keys:
            if key in self._data:
                del self._data[key]
                changed = True
        if changed:
            self._save()
