"""Pytest configuration to make the local package importable without installation."""
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

# Ensure repository root is on sys.path for module resolution
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from painel.cli import main as cli_main
from painel.core.store import LocalStore
from painel.ingestion.sheets import SheetsClient
from painel.sync.engine import SyncEngine, SyncSettings

DATA_DIR = Path(__file__).resolve().parent / "data"
SPREADSHEET_URL = "https://docs.google.com/spreadsheets/d/sheet123/edit#gid=0"

NOT_PUBLISHED_PAGE = "<!DOCTYPE html><html><body>Página não encontrada</body></html>"


class SheetServer:
    """In-memory stand-in for the published-sheets CSV endpoint.

    Unknown tab names answer with the HTML error page Google serves, and every
    requested tab name is recorded in order.
    """

    def __init__(self) -> None:
        self.sheets: Dict[str, Tuple[int, str]] = {}
        self.requested: List[str] = []
        self.down = False
        self.started: Optional[asyncio.Event] = None
        self.gate: Optional[asyncio.Event] = None

    def publish(self, name: str, text: str, status: int = 200) -> None:
        self.sheets[name] = (status, text)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        name = request.url.params.get("sheet", "")
        self.requested.append(name)
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.down:
            return httpx.Response(500, text="Internal error")
        if name not in self.sheets:
            return httpx.Response(400, text=NOT_PUBLISHED_PAGE)
        status, text = self.sheets[name]
        return httpx.Response(status, text=text)

    def sheets_client(self) -> SheetsClient:
        return SheetsClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)))


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from real state files, env files and hosted services."""

    monkeypatch.setenv("PAINEL_STATE_FILE", str(tmp_path / "state.json"))
    monkeypatch.setenv("PAINEL_ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)


@pytest.fixture
def read_fixture():
    """Return the text of a CSV file from ``tests/data``."""

    def _read(name: str) -> str:
        return (DATA_DIR / name).read_text(encoding="utf-8")

    return _read


@pytest.fixture
def spreadsheet_url() -> str:
    return SPREADSHEET_URL


@pytest.fixture
def sheet_server() -> SheetServer:
    return SheetServer()


@pytest.fixture
def published_server(sheet_server: SheetServer, read_fixture) -> SheetServer:
    """A spreadsheet with letters, access rows and workers on their primary tabs."""

    sheet_server.publish("CARTAS_DB", read_fixture("cartas.csv"))
    sheet_server.publish("ACESSO", read_fixture("acesso.csv"))
    sheet_server.publish("OBREIROS_DB", read_fixture("obreiros.csv"))
    return sheet_server


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0))


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state.json"


@pytest.fixture
def make_engine(sheet_server: SheetServer, clock: FakeClock, state_path: Path):
    """Build engines that share the fake sheet server, clock and state file."""

    def _make(**kwargs) -> SyncEngine:
        kwargs.setdefault("settings", SyncSettings())
        return SyncEngine(
            LocalStore(state_path),
            sheets_factory=sheet_server.sheets_client,
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def run_cli(monkeypatch: pytest.MonkeyPatch):
    """Helper to invoke the CLI with custom arguments inside tests."""

    def _run(args: list[str]) -> None:
        monkeypatch.setattr(sys, "argv", ["painel.cli", *args])
        cli_main()

    return _run
