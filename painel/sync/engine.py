"""Sync engine: connection lifecycle, polling, change detection, and offline fallback.

One ``SyncEngine`` is created per dashboard session. It owns every piece of
mutable sync state (current records, last-seen timestamp, notified keys) and
is driven from a single asyncio task at a time; the ``_in_flight`` flag drops
overlapping ``connect`` calls instead of queueing them.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set, Tuple

from painel.core.models import LetterRecord, WorkerRecord, is_absent
from painel.core.store import (
    CLIENT_ID_KEY,
    RECENT_SNAPSHOT_KEY,
    SHEET_NAME_KEY,
    URL_KEY,
    LocalStore,
)
from painel.core.utils import ensure_env_loaded, get_config_value, get_int_config
from painel.ingestion.dates import parse_datetime
from painel.ingestion.sheets import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    RecordKind,
    SheetsClient,
    candidate_sheet_names,
    extract_spreadsheet_id,
)
from painel.processing.identity import record_key
from painel.processing.merge import merge_access
from painel.sync.services import RemoteServices

logger = logging.getLogger(__name__)

INVALID_URL_MESSAGE = "URL inválida. Cole uma URL do Google Sheets que contenha /spreadsheets/d/ID/"
GENERIC_ERROR_MESSAGE = "Erro ao conectar à planilha."


class SyncError(Exception):
    """A sync cycle produced no usable data."""


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    REFRESHING = "refreshing"


@dataclass
class SyncSettings:
    """Tunable intervals and limits for the sync loop."""

    refresh_interval: float = 60.0
    recent_window: timedelta = timedelta(minutes=120)
    notify_window: timedelta = timedelta(minutes=10)
    cache_size: int = 20
    sheets_base_url: str = DEFAULT_BASE_URL
    http_timeout: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "SyncSettings":
        ensure_env_loaded()
        return cls(
            refresh_interval=float(get_int_config("PAINEL_REFRESH_SECONDS", 60)),
            recent_window=timedelta(minutes=get_int_config("PAINEL_RECENT_WINDOW_MINUTES", 120)),
            notify_window=timedelta(minutes=get_int_config("PAINEL_NOTIFY_WINDOW_MINUTES", 10)),
            cache_size=get_int_config("PAINEL_CACHE_SIZE", 20),
            sheets_base_url=get_config_value("PAINEL_SHEETS_BASE_URL", DEFAULT_BASE_URL) or DEFAULT_BASE_URL,
            http_timeout=float(get_int_config("PAINEL_HTTP_TIMEOUT", int(DEFAULT_TIMEOUT_SECONDS))),
        )


@dataclass(frozen=True)
class Notification:
    """One alert covering a burst of newly emitted letters."""

    title: str
    body: str
    count: int
    newest: datetime
    created_at: datetime
    keys: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SyncSnapshot:
    """Read-only view of the engine state for the presentation layer."""

    state: ConnectionState
    url: str
    letters: Tuple[LetterRecord, ...]
    workers: Tuple[WorkerRecord, ...]
    has_workers: bool
    letters_sheet: str
    workers_sheet: str
    offline: bool
    loading: bool
    error: Optional[str]
    last_synced_at: Optional[datetime]
    new_letters: Tuple[LetterRecord, ...] = ()

    @property
    def connected(self) -> bool:
        return self.state in (ConnectionState.CONNECTED, ConnectionState.REFRESHING)


@dataclass
class _Loaded:
    letters: List[LetterRecord]
    workers: List[WorkerRecord]
    letters_sheet: str
    workers_sheet: str


def sort_newest_first(letters: Sequence[LetterRecord]) -> List[LetterRecord]:
    """Order letters by emission timestamp, unparseable timestamps last."""

    return sorted(letters, key=lambda letter: parse_datetime(letter.data_emissao) or datetime.min, reverse=True)


def no_data_message(hint: str = "") -> str:
    names = candidate_sheet_names(RecordKind.LETTERS, hint) + candidate_sheet_names(RecordKind.WORKERS)
    listed = ", ".join(f'"{name}"' for name in names)
    return (
        f"Nenhum dado encontrado nas abas {listed}. Verifique se a planilha está publicada na web "
        "(Arquivo -> Compartilhar -> Publicar na web) e se as abas existem."
    )


class SyncEngine:
    """Keep letters and workers in sync with one published spreadsheet."""

    def __init__(
        self,
        store: LocalStore,
        services: Optional[RemoteServices] = None,
        settings: Optional[SyncSettings] = None,
        sheets_factory: Optional[Callable[[], SheetsClient]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.services = services or RemoteServices()
        self.settings = settings or SyncSettings()
        self._sheets_factory = sheets_factory or self._default_sheets
        self._clock = clock

        self.state = ConnectionState.DISCONNECTED
        self.url = store.get_text(URL_KEY)
        self.sheet_hint = store.get_text(SHEET_NAME_KEY)
        self.letters: List[LetterRecord] = []
        self.workers: List[WorkerRecord] = []
        self.has_workers = False
        self.letters_sheet = ""
        self.workers_sheet = ""
        self.offline = False
        self.loading = False
        self.error: Optional[str] = None
        self.last_synced_at: Optional[datetime] = None
        self.new_letters: List[LetterRecord] = []
        self.digest: List[LetterRecord] = []

        self._last_seen: Optional[datetime] = None
        self._notified_keys: Set[str] = set()
        self._hidden_keys: Set[str] = set()
        self._digest_shown = False
        self._notifications: List[Notification] = []
        self._in_flight = False
        self._session = 0
        self._refresh_task: Optional[asyncio.Task] = None

    def _default_sheets(self) -> SheetsClient:
        return SheetsClient(base_url=self.settings.sheets_base_url, timeout=self.settings.http_timeout)

    @property
    def connected(self) -> bool:
        return self.state in (ConnectionState.CONNECTED, ConnectionState.REFRESHING)

    @property
    def visible_letters(self) -> List[LetterRecord]:
        """Letters minus the ones hidden after an external delete."""

        if not self._hidden_keys:
            return list(self.letters)
        return [letter for letter in self.letters if record_key(letter) not in self._hidden_keys]

    async def open(self) -> bool:
        """Reconnect silently to the last persisted spreadsheet, if any."""

        if not self.url:
            return False
        logger.info("Reconnecting to saved spreadsheet")
        return await self.connect(self.url, self.sheet_hint or None, silent=True)

    async def close(self) -> None:
        await self.stop_auto_refresh()

    async def connect(self, url: str, sheet_name: Optional[str] = None, silent: bool = False) -> bool:
        """Load letters, access status and workers from a spreadsheet URL.

        Returns True when the engine ends up connected (live or from cache).
        ``silent`` runs suppress the loading flag and error message but still
        update records and run change detection.
        """

        spreadsheet_id = extract_spreadsheet_id(url)
        if not spreadsheet_id:
            logger.warning("Rejected spreadsheet URL without /spreadsheets/d/<id>/")
            if not silent:
                self.error = INVALID_URL_MESSAGE
            return False

        if self._in_flight:
            logger.debug("Sync already running; dropping connect request")
            return False

        self._in_flight = True
        session = self._session
        was_connected = self.connected
        keep_offline = silent and was_connected and url == self.url
        hint = (sheet_name or "").strip()
        self.state = ConnectionState.REFRESHING if was_connected else ConnectionState.CONNECTING
        if not silent:
            self.loading = True
            self.error = None

        try:
            try:
                loaded = await self._load(spreadsheet_id, hint)
                if self._session != session:
                    logger.info("Discarding sync result that finished after disconnect")
                    return False
                notification = self._apply(loaded, url, hint, silent)
            except SyncError as exc:
                logger.warning("Sync of %s found no data", spreadsheet_id)
                message = str(exc)
            except Exception:
                logger.exception("Unexpected failure while syncing %s", spreadsheet_id)
                message = GENERIC_ERROR_MESSAGE
            else:
                if notification:
                    await self._push(notification)
                await self._write_cache()
                return True

            if self._session != session:
                return False
            return await self._recover(message, url, hint, keep_offline, silent, session)
        finally:
            # A disconnect hands the guard to the next session.
            if self._session == session:
                self._in_flight = False
                if not silent:
                    self.loading = False

    async def refresh(self) -> bool:
        """Re-run the current connection silently."""

        if not self.url:
            return False
        return await self.connect(self.url, self.sheet_hint or None, silent=True)

    async def disconnect(self) -> None:
        """Drop all records, the persisted URL, and the per-session dedup state.

        A sync still running for the old session is discarded when it
        finishes and no longer blocks the next ``connect``.
        """

        self._session += 1
        self._in_flight = False
        self._clear_records()
        self.store.remove(URL_KEY)
        logger.info("Disconnected from spreadsheet")
        await self.stop_auto_refresh()

    def _clear_records(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self.url = ""
        self.letters = []
        self.workers = []
        self.has_workers = False
        self.letters_sheet = ""
        self.workers_sheet = ""
        self.offline = False
        self.loading = False
        self.error = None
        self.last_synced_at = None
        self.new_letters = []
        self.digest = []

        self._last_seen = None
        self._notified_keys.clear()
        self._hidden_keys.clear()
        self._digest_shown = False
        self._notifications.clear()

    def exclude(self, record: LetterRecord) -> None:
        """Hide a letter that was deleted elsewhere until a resync drops it."""

        self._hidden_keys.add(record_key(record))

    def pending_notifications(self) -> List[Notification]:
        """Return and clear notifications emitted since the last call."""

        pending, self._notifications = self._notifications, []
        return pending

    def take_digest(self) -> List[LetterRecord]:
        """Return the first-connect digest once."""

        digest, self.digest = self.digest, []
        return digest

    def snapshot(self) -> SyncSnapshot:
        return SyncSnapshot(
            state=self.state,
            url=self.url,
            letters=tuple(self.visible_letters),
            workers=tuple(self.workers),
            has_workers=self.has_workers,
            letters_sheet=self.letters_sheet,
            workers_sheet=self.workers_sheet,
            offline=self.offline,
            loading=self.loading,
            error=self.error,
            last_synced_at=self.last_synced_at,
            new_letters=tuple(self.new_letters),
        )

    def start_auto_refresh(self) -> asyncio.Task:
        """Schedule silent refreshes every ``refresh_interval`` seconds."""

        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_loop())
        return self._refresh_task

    async def stop_auto_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.refresh_interval)
            if self.connected:
                await self.refresh()

    async def _load(self, spreadsheet_id: str, hint: str) -> _Loaded:
        async with self._sheets_factory() as sheets:
            letters_result = await sheets.fetch_canonical(spreadsheet_id, RecordKind.LETTERS, hint or None)
            letters = list(letters_result.records)
            if letters:
                access_result = await sheets.fetch_canonical(spreadsheet_id, RecordKind.ACCESS)
                if access_result.records:
                    letters = merge_access(letters, access_result.records)
            workers_result = await sheets.fetch_canonical(spreadsheet_id, RecordKind.WORKERS)

        workers = list(workers_result.records)
        if not letters and not workers:
            raise SyncError(no_data_message(hint))
        return _Loaded(
            letters=letters,
            workers=workers,
            letters_sheet=letters_result.sheet_name,
            workers_sheet=workers_result.sheet_name,
        )

    def _apply(self, loaded: _Loaded, url: str, hint: str, silent: bool) -> Optional[Notification]:
        letters = sort_newest_first(loaded.letters)
        self.letters = letters
        self.workers = loaded.workers
        self.has_workers = bool(loaded.workers)
        self.letters_sheet = loaded.letters_sheet
        self.workers_sheet = loaded.workers_sheet
        self.offline = False
        self.error = None
        self.state = ConnectionState.CONNECTED
        self.last_synced_at = self._clock()
        self.url = url
        self.sheet_hint = hint

        self.store.set(URL_KEY, url)
        if hint:
            self.store.set(SHEET_NAME_KEY, hint)
        self.store.set(
            RECENT_SNAPSHOT_KEY,
            {"url": url, "records": [letter.to_dict() for letter in letters[: self.settings.cache_size]]},
        )

        present = {record_key(letter) for letter in letters}
        self._hidden_keys &= present

        logger.info(
            "Synced %d letters (sheet %r) and %d workers (sheet %r)",
            len(letters),
            loaded.letters_sheet,
            len(loaded.workers),
            loaded.workers_sheet,
        )
        return self._detect_changes(letters, silent)

    def _detect_changes(self, letters: Sequence[LetterRecord], silent: bool) -> Optional[Notification]:
        now = self._clock()
        stamped = []
        for letter in letters:
            emitted = parse_datetime(letter.data_emissao)
            if emitted is not None:
                stamped.append((emitted, letter))

        self.new_letters = []
        if not silent and not self._digest_shown:
            cutoff = now - self.settings.recent_window
            self.digest = [letter for emitted, letter in stamped if emitted >= cutoff]
            self._digest_shown = True

        if not stamped:
            return None

        newest = max(emitted for emitted, _ in stamped)
        if self._last_seen is None:
            self._last_seen = newest
            return None

        fresh = [
            (emitted, letter)
            for emitted, letter in stamped
            if emitted > self._last_seen and record_key(letter) not in self._notified_keys
        ]
        if newest > self._last_seen:
            self._last_seen = newest
        if not fresh:
            return None

        self.new_letters = [letter for _, letter in fresh]
        keys = tuple(record_key(letter) for letter in self.new_letters)
        self._notified_keys.update(keys)

        newest_fresh = max(emitted for emitted, _ in fresh)
        if now - newest_fresh > self.settings.notify_window:
            logger.info("Not notifying %d new letters older than the notify window", len(fresh))
            return None

        notification = self._build_notification(self.new_letters, newest_fresh, now, keys)
        self._notifications.append(notification)
        return notification

    def _build_notification(
        self,
        fresh: Sequence[LetterRecord],
        newest: datetime,
        now: datetime,
        keys: Tuple[str, ...],
    ) -> Notification:
        latest = fresh[0]
        name = latest.nome if not is_absent(latest.nome) else "sem nome"
        if len(fresh) == 1:
            title = "Nova carta cadastrada"
            body = f"Carta de {name}."
        else:
            title = f"{len(fresh)} novas cartas cadastradas"
            body = f"Mais recente: {name}."
        return Notification(title=title, body=body, count=len(fresh), newest=newest, created_at=now, keys=keys)

    async def _push(self, notification: Notification) -> None:
        if not self.services.enabled:
            return
        await asyncio.to_thread(
            self.services.notify,
            notification.title,
            notification.body,
            "/",
            {"count": notification.count, "newest": notification.newest.isoformat()},
        )

    async def _write_cache(self) -> None:
        client_id = self.store.get_text(CLIENT_ID_KEY)
        if not client_id or not self.services.enabled:
            return
        top = self.letters[: self.settings.cache_size]
        await asyncio.to_thread(self.services.write_cache, client_id, top)

    async def _read_cache(self, url: str) -> List[LetterRecord]:
        client_id = self.store.get_text(CLIENT_ID_KEY)
        if client_id and self.services.enabled:
            cached = await asyncio.to_thread(self.services.read_cache, client_id)
            if cached:
                return cached

        snapshot = self.store.get(RECENT_SNAPSHOT_KEY)
        if isinstance(snapshot, dict) and snapshot.get("url") == url:
            rows = snapshot.get("records") or []
            return [LetterRecord.from_dict(row) for row in rows if isinstance(row, dict)]
        return []

    async def _recover(
        self,
        message: str,
        url: str,
        hint: str,
        keep_offline: bool,
        silent: bool,
        session: int,
    ) -> bool:
        if keep_offline:
            logger.warning("Refresh failed; keeping %d letters in offline mode", len(self.letters))
            self.offline = True
            self.state = ConnectionState.CONNECTED
            return False

        cached = await self._read_cache(url)
        if self._session != session:
            return False
        if self.url and self.url != url:
            logger.info("Dropping records of the previous spreadsheet")
            self._clear_records()
        if cached:
            logger.warning("Live sync failed; serving %d cached letters", len(cached))
            self.letters = sort_newest_first(cached)
            self.workers = []
            self.has_workers = False
            self.letters_sheet = ""
            self.workers_sheet = ""
            self.offline = True
            self.state = ConnectionState.CONNECTED
            self.url = url
            self.sheet_hint = hint
            return True

        logger.error("Could not connect to spreadsheet: %s", message)
        self.state = ConnectionState.DISCONNECTED
        self.letters = []
        self.workers = []
        self.has_workers = False
        self.offline = False
        if not silent:
            self.error = message
        return False
