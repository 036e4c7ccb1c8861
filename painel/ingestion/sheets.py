"""Fetch published Google Sheets tabs as CSV and turn them into canonical records."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import quote

import httpx

from painel.core.models import RawRow
from painel.ingestion.csv_decoder import parse_csv
from painel.ingestion.transformers import (
    ACCESS_CONTENT_FIELDS,
    LETTER_CONTENT_FIELDS,
    WORKER_CONTENT_FIELDS,
    has_content,
    transform_access,
    transform_letter,
    transform_worker,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://docs.google.com"
DEFAULT_TIMEOUT_SECONDS = 20.0

_SPREADSHEET_ID_PATTERN = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")


class SheetFetchError(Exception):
    """A single sheet tab could not be read (missing, unpublished, or unreachable)."""

    def __init__(self, sheet_name: str, message: str) -> None:
        self.sheet_name = sheet_name
        self.message = message
        super().__init__(f"{sheet_name}: {message}")


class RecordKind(str, Enum):
    LETTERS = "letters"
    WORKERS = "workers"
    ACCESS = "access"


@dataclass(frozen=True)
class KindSpec:
    """How to locate and decode one kind of record."""

    primary: str
    historical: Tuple[str, ...]
    fallback: str
    transform: Callable
    content_fields: Tuple[str, ...]


KIND_SPECS: Dict[RecordKind, KindSpec] = {
    RecordKind.LETTERS: KindSpec(
        primary="CARTAS_DB",
        historical=("CARTA_DB", "CARTAS_BD"),
        fallback="CARTAS",
        transform=transform_letter,
        content_fields=LETTER_CONTENT_FIELDS,
    ),
    RecordKind.WORKERS: KindSpec(
        primary="OBREIROS_DB",
        historical=("OBREIRO_DB", "OBREIROS_BD"),
        fallback="OBREIROS",
        transform=transform_worker,
        content_fields=WORKER_CONTENT_FIELDS,
    ),
    RecordKind.ACCESS: KindSpec(
        primary="ACESSO",
        historical=("ACESSOS",),
        fallback="ACESSO_DB",
        transform=transform_access,
        content_fields=ACCESS_CONTENT_FIELDS,
    ),
}


@dataclass(frozen=True)
class Found:
    """A candidate sheet produced usable records."""

    records: List
    sheet_name: str
    attempted: Tuple[str, ...]


@dataclass(frozen=True)
class NotFound:
    """Every candidate sheet failed or was empty."""

    attempted: Tuple[str, ...]
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def records(self) -> List:
        return []

    @property
    def sheet_name(self) -> str:
        return ""


FetchResult = Union[Found, NotFound]


def extract_spreadsheet_id(url: str) -> Optional[str]:
    """Return the spreadsheet id from a ``/spreadsheets/d/<id>/`` URL, or None."""

    match = _SPREADSHEET_ID_PATTERN.search(url or "")
    return match.group(1) if match else None


def build_csv_url(spreadsheet_id: str, sheet_name: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Return the gviz CSV export URL for one sheet tab."""

    return (
        f"{base_url.rstrip('/')}/spreadsheets/d/{spreadsheet_id}/gviz/tq"
        f"?tqx=out:csv&sheet={quote(sheet_name, safe='')}"
    )


def candidate_sheet_names(kind: RecordKind, hint: Optional[str] = None) -> List[str]:
    """Ordered sheet names to try for a record kind.

    A caller-supplied hint goes right before the generic fallback; duplicates
    keep their first position.
    """

    spec = KIND_SPECS[kind]
    names = [spec.primary, *spec.historical]
    hint = (hint or "").strip()
    if hint:
        names.append(hint)
    names.append(spec.fallback)

    ordered: List[str] = []
    for name in names:
        if name not in ordered:
            ordered.append(name)
    return ordered


def looks_like_html(text: str) -> bool:
    body = text.lower()
    return "<!doctype html>" in body or "<html" in body


class SheetsClient:
    """Read published sheet tabs over HTTP.

    Pass an ``httpx.AsyncClient`` to share a connection pool (or a mock
    transport in tests); otherwise one is created and closed with the client.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._owns_client = http_client is None
        self._http_client = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0), follow_redirects=True)
        )
        self.base_url = base_url

    async def __aenter__(self) -> "SheetsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    async def fetch_rows(self, spreadsheet_id: str, sheet_name: str) -> List[RawRow]:
        """Download one tab and decode it; raise ``SheetFetchError`` when it is unusable."""

        url = build_csv_url(spreadsheet_id, sheet_name, self.base_url)
        try:
            response = await self._http_client.get(url)
        except httpx.HTTPError as exc:
            raise SheetFetchError(sheet_name, f"request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise SheetFetchError(
                sheet_name,
                f"HTTP {response.status_code}; check that the spreadsheet is published to the web",
            )
        text = response.text
        if looks_like_html(text):
            raise SheetFetchError(sheet_name, "sheet not found or spreadsheet not published")
        return parse_csv(text)

    async def fetch_canonical(
        self,
        spreadsheet_id: str,
        kind: RecordKind,
        hint: Optional[str] = None,
    ) -> FetchResult:
        """Try candidate sheets in order and stop at the first with real records.

        Candidates are requested one at a time; later ones are never touched
        once an earlier one succeeds.
        """

        spec = KIND_SPECS[kind]
        attempted: List[str] = []
        errors: Dict[str, str] = {}

        for sheet_name in candidate_sheet_names(kind, hint):
            attempted.append(sheet_name)
            try:
                rows = await self.fetch_rows(spreadsheet_id, sheet_name)
            except SheetFetchError as exc:
                logger.debug("Skipping %s sheet %r: %s", kind.value, sheet_name, exc.message)
                errors[sheet_name] = exc.message
                continue

            records = [spec.transform(row) for row in rows]
            records = [record for record in records if has_content(record, spec.content_fields)]
            if records:
                logger.info("Loaded %d %s from sheet %r", len(records), kind.value, sheet_name)
                return Found(records=records, sheet_name=sheet_name, attempted=tuple(attempted))

            logger.debug("Sheet %r has no usable %s rows", sheet_name, kind.value)
            errors[sheet_name] = "no usable rows"

        logger.info("No %s found after trying %s", kind.value, ", ".join(attempted))
        return NotFound(attempted=tuple(attempted), errors=errors)
