"""Best-effort client for the hosted functions (letters cache and push notify)."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from painel.core.models import LetterRecord
from painel.core.utils import ensure_env_loaded, get_config_value

logger = logging.getLogger(__name__)

CACHE_FUNCTION = "letters-cache"
NOTIFY_FUNCTION = "notify-carta"


class RemoteServices:
    """Invoke hosted functions over HTTP.

    Every call is best-effort: failures are logged and reported as an empty
    result so the sync loop never stops because the cache or push service
    is down. Without a base URL and key every call is a no-op.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout
        self.session = session or (requests.Session() if self.enabled else None)

    @classmethod
    def from_env(cls) -> "RemoteServices":
        ensure_env_loaded()
        return cls(
            base_url=get_config_value("SUPABASE_URL").strip(),
            api_key=get_config_value("SUPABASE_ANON_KEY").strip(),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.api_key)

    def invoke(self, function_name: str, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """POST a JSON body to a hosted function and return its JSON payload."""

        if not self.enabled or self.session is None:
            logger.debug("Remote services not configured; skipping %s", function_name)
            return None

        try:
            response = self.session.post(
                f"{self.base_url}/functions/v1/{function_name}",
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.debug("Function %s failed: %s", function_name, exc)
            return None
        return payload if isinstance(payload, dict) else {"data": payload}

    def read_cache(self, client_id: str) -> Optional[List[LetterRecord]]:
        """Return the cached letters for a client, or None on a miss."""

        payload = self.invoke(CACHE_FUNCTION, {"action": "read", "client_id": client_id})
        if not payload:
            return None
        rows = payload.get("records") or payload.get("data")
        if not isinstance(rows, list) or not rows:
            return None
        return [LetterRecord.from_dict(row) for row in rows if isinstance(row, dict)]

    def write_cache(self, client_id: str, records: Iterable[LetterRecord]) -> bool:
        payload = self.invoke(
            CACHE_FUNCTION,
            {"action": "write", "client_id": client_id, "records": [record.to_dict() for record in records]},
        )
        return payload is not None

    def notify(self, title: str, body: str, url: str = "/", data: Optional[Dict[str, Any]] = None) -> bool:
        """Ask the push service to broadcast a notification to subscribed devices."""

        payload = self.invoke(NOTIFY_FUNCTION, {"title": title, "body": body, "url": url, "data": data or {}})
        return payload is not None
