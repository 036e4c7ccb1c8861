"""Tests for the sync engine lifecycle, change detection and offline fallback."""
import asyncio
from datetime import datetime, timedelta

import pytest

from painel.core.models import LetterRecord
from painel.core.store import RECENT_SNAPSHOT_KEY, SHEET_NAME_KEY, URL_KEY, LocalStore
from painel.sync.engine import (
    GENERIC_ERROR_MESSAGE,
    INVALID_URL_MESSAGE,
    ConnectionState,
    SyncEngine,
    SyncSettings,
    no_data_message,
    sort_newest_first,
)

NEW_LETTER = "01/05/2024 11:58:00,Carla Mendes,carla@example.com,11977770000,Sede,Norte,08/05/2024,https://docs.example.com/carla.pdf,\n"


@pytest.mark.asyncio
async def test_connect_loads_merges_and_persists(published_server, make_engine, spreadsheet_url, state_path):
    engine = make_engine()

    assert await engine.connect(spreadsheet_url)

    assert engine.state is ConnectionState.CONNECTED
    assert [letter.nome for letter in engine.letters] == ["Bruno Lima", "Ana Souza"]
    assert engine.letters[0].status == "não"
    assert engine.letters[0].motivo_bloqueio == "Pendência na secretaria"
    assert engine.letters[1].status == "sim"
    assert [worker.nome for worker in engine.workers] == ["Carlos Dias", "Daniela Reis"]
    assert engine.has_workers
    assert engine.letters_sheet == "CARTAS_DB"
    assert engine.workers_sheet == "OBREIROS_DB"
    assert published_server.requested == ["CARTAS_DB", "ACESSO", "OBREIROS_DB"]
    assert not engine.loading
    assert engine.error is None

    store = LocalStore(state_path)
    assert store.get(URL_KEY) == spreadsheet_url
    assert store.get(RECENT_SNAPSHOT_KEY)["url"] == spreadsheet_url
    assert len(store.get(RECENT_SNAPSHOT_KEY)["records"]) == 2


@pytest.mark.asyncio
async def test_invalid_url_is_rejected_without_requests(sheet_server, make_engine):
    engine = make_engine()

    assert not await engine.connect("https://example.com/planilha")

    assert engine.error == INVALID_URL_MESSAGE
    assert engine.state is ConnectionState.DISCONNECTED
    assert sheet_server.requested == []


@pytest.mark.asyncio
async def test_overlapping_connect_is_dropped(published_server, make_engine, spreadsheet_url):
    """A second call while a sync is running returns immediately without fetching."""

    published_server.started = asyncio.Event()
    published_server.gate = asyncio.Event()
    engine = make_engine()

    first = asyncio.create_task(engine.connect(spreadsheet_url))
    await published_server.started.wait()
    requested_before = list(published_server.requested)

    assert not await engine.connect(spreadsheet_url)
    assert published_server.requested == requested_before

    published_server.gate.set()
    assert await first
    assert published_server.requested == ["CARTAS_DB", "ACESSO", "OBREIROS_DB"]


@pytest.mark.asyncio
async def test_first_connect_builds_recent_digest_without_notifying(published_server, make_engine, spreadsheet_url):
    engine = make_engine()

    await engine.connect(spreadsheet_url)

    assert [letter.nome for letter in engine.take_digest()] == ["Bruno Lima"]
    assert engine.take_digest() == []
    assert engine.pending_notifications() == []


@pytest.mark.asyncio
async def test_new_letter_notifies_once(published_server, make_engine, spreadsheet_url, read_fixture):
    engine = make_engine()
    await engine.connect(spreadsheet_url)

    published_server.publish("CARTAS_DB", read_fixture("cartas.csv") + NEW_LETTER)
    await engine.refresh()

    notifications = engine.pending_notifications()
    assert len(notifications) == 1
    assert notifications[0].title == "Nova carta cadastrada"
    assert notifications[0].count == 1
    assert "Carla Mendes" in notifications[0].body
    assert [letter.nome for letter in engine.new_letters] == ["Carla Mendes"]

    await engine.refresh()
    assert engine.pending_notifications() == []
    assert engine.new_letters == []


@pytest.mark.asyncio
async def test_bursts_produce_a_single_plural_notification(published_server, make_engine, spreadsheet_url, read_fixture):
    engine = make_engine()
    await engine.connect(spreadsheet_url)

    burst = NEW_LETTER + NEW_LETTER.replace("11:58:00", "11:59:00").replace("Carla Mendes", "Diego Alves")
    published_server.publish("CARTAS_DB", read_fixture("cartas.csv") + burst)
    await engine.refresh()

    notifications = engine.pending_notifications()
    assert len(notifications) == 1
    assert notifications[0].title == "2 novas cartas cadastradas"
    assert "Diego Alves" in notifications[0].body


@pytest.mark.asyncio
async def test_letters_older_than_notify_window_are_not_announced(
    published_server, make_engine, spreadsheet_url, read_fixture, clock
):
    engine = make_engine()
    await engine.connect(spreadsheet_url)

    clock.now = datetime(2024, 5, 1, 12, 30, 0)
    published_server.publish("CARTAS_DB", read_fixture("cartas.csv") + NEW_LETTER)
    await engine.refresh()

    assert [letter.nome for letter in engine.new_letters] == ["Carla Mendes"]
    assert engine.pending_notifications() == []


@pytest.mark.asyncio
async def test_letters_only_sheet_skips_merge_when_access_is_missing(sheet_server, make_engine, spreadsheet_url):
    sheet_server.publish("CARTAS_DB", "Nome completo,Status\nAna Souza,sim\n")
    engine = make_engine()

    assert await engine.connect(spreadsheet_url)

    assert engine.letters[0].status == "sim"
    assert not engine.has_workers
    assert engine.workers_sheet == ""


@pytest.mark.asyncio
async def test_workers_only_sheet_is_still_connected(sheet_server, make_engine, spreadsheet_url, read_fixture):
    sheet_server.publish("OBREIROS", read_fixture("obreiros.csv"))
    engine = make_engine()

    assert await engine.connect(spreadsheet_url)

    assert engine.letters == []
    assert engine.workers_sheet == "OBREIROS"
    assert "ACESSO" not in sheet_server.requested


@pytest.mark.asyncio
async def test_no_data_anywhere_reports_checked_sheets(sheet_server, make_engine, spreadsheet_url):
    engine = make_engine()

    assert not await engine.connect(spreadsheet_url, "Respostas")

    assert engine.state is ConnectionState.DISCONNECTED
    assert engine.error == no_data_message("Respostas")
    assert '"CARTAS_DB"' in engine.error
    assert '"Respostas"' in engine.error


@pytest.mark.asyncio
async def test_unexpected_failure_uses_generic_message(spreadsheet_url, state_path, caplog):
    def broken_factory():
        raise RuntimeError("boom")

    engine = SyncEngine(LocalStore(state_path), settings=SyncSettings(), sheets_factory=broken_factory)
    caplog.set_level("ERROR")

    assert not await engine.connect(spreadsheet_url)

    assert engine.error == GENERIC_ERROR_MESSAGE
    assert "Unexpected failure" in caplog.text


@pytest.mark.asyncio
async def test_failed_refresh_keeps_data_offline(published_server, make_engine, spreadsheet_url):
    engine = make_engine()
    await engine.connect(spreadsheet_url)

    published_server.down = True
    assert not await engine.refresh()

    assert engine.connected
    assert engine.offline
    assert len(engine.letters) == 2
    assert engine.error is None


@pytest.mark.asyncio
async def test_cold_start_falls_back_to_local_snapshot(published_server, make_engine, spreadsheet_url):
    first = make_engine()
    await first.connect(spreadsheet_url)

    published_server.down = True
    second = make_engine()

    assert await second.connect(spreadsheet_url)
    assert second.offline
    assert second.connected
    assert [letter.nome for letter in second.letters] == ["Bruno Lima", "Ana Souza"]
    assert second.letters[0].status == "não"


@pytest.mark.asyncio
async def test_snapshot_for_other_spreadsheet_is_not_used(published_server, make_engine, spreadsheet_url):
    await make_engine().connect(spreadsheet_url)

    published_server.down = True
    engine = make_engine()

    assert not await engine.connect("https://docs.google.com/spreadsheets/d/other456/edit")
    assert engine.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_silent_open_failure_sets_no_error(sheet_server, make_engine, spreadsheet_url, state_path):
    LocalStore(state_path).set(URL_KEY, spreadsheet_url)
    engine = make_engine()

    assert engine.url == spreadsheet_url
    assert not await engine.open()
    assert engine.error is None
    assert not engine.connected


@pytest.mark.asyncio
async def test_open_reconnects_with_saved_sheet_hint(sheet_server, make_engine, spreadsheet_url, state_path, read_fixture):
    store = LocalStore(state_path)
    store.set(URL_KEY, spreadsheet_url)
    store.set(SHEET_NAME_KEY, "Respostas")
    sheet_server.publish("Respostas", read_fixture("cartas.csv"))
    engine = make_engine()

    assert await engine.open()
    assert engine.letters_sheet == "Respostas"


@pytest.mark.asyncio
async def test_disconnect_clears_state_and_saved_url(published_server, make_engine, spreadsheet_url, state_path, read_fixture):
    engine = make_engine()
    await engine.connect(spreadsheet_url)
    engine.take_digest()

    await engine.disconnect()

    assert engine.state is ConnectionState.DISCONNECTED
    assert engine.letters == []
    assert engine.workers == []
    assert LocalStore(state_path).get(URL_KEY) is None

    published_server.publish("CARTAS_DB", read_fixture("cartas.csv") + NEW_LETTER)
    await engine.connect(spreadsheet_url)
    assert engine.pending_notifications() == []
    assert [letter.nome for letter in engine.take_digest()] == ["Carla Mendes", "Bruno Lima"]


@pytest.mark.asyncio
async def test_disconnect_during_sync_discards_result(published_server, make_engine, spreadsheet_url):
    published_server.started = asyncio.Event()
    published_server.gate = asyncio.Event()
    engine = make_engine()

    pending = asyncio.create_task(engine.connect(spreadsheet_url))
    await published_server.started.wait()
    await engine.disconnect()
    published_server.gate.set()

    assert not await pending
    assert engine.letters == []
    assert engine.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_reconnect_after_disconnect_is_not_blocked_by_stale_sync(published_server, make_engine, spreadsheet_url):
    published_server.started = asyncio.Event()
    published_server.gate = asyncio.Event()
    engine = make_engine()

    stale = asyncio.create_task(engine.connect(spreadsheet_url))
    await published_server.started.wait()
    await engine.disconnect()
    fresh = asyncio.create_task(engine.connect(spreadsheet_url))
    await asyncio.sleep(0)
    published_server.gate.set()

    assert not await stale
    assert await fresh
    assert engine.state is ConnectionState.CONNECTED
    assert [letter.nome for letter in engine.letters] == ["Bruno Lima", "Ana Souza"]
    assert not engine.loading


@pytest.mark.asyncio
async def test_failed_switch_to_other_spreadsheet_reports_error(published_server, make_engine, spreadsheet_url):
    engine = make_engine()
    assert await engine.connect(spreadsheet_url)

    published_server.down = True
    assert not await engine.connect("https://docs.google.com/spreadsheets/d/other456/edit")

    assert engine.state is ConnectionState.DISCONNECTED
    assert engine.error == no_data_message()
    assert engine.letters == []
    assert not engine.offline


@pytest.mark.asyncio
async def test_failed_manual_reconnect_falls_back_to_snapshot(published_server, make_engine, spreadsheet_url):
    engine = make_engine()
    assert await engine.connect(spreadsheet_url)

    published_server.down = True
    assert await engine.connect(spreadsheet_url)

    assert engine.offline
    assert engine.url == spreadsheet_url
    assert len(engine.letters) == 2


@pytest.mark.asyncio
async def test_disconnect_waits_for_auto_refresh_to_stop(published_server, make_engine, spreadsheet_url):
    engine = make_engine(settings=SyncSettings(refresh_interval=0.01))
    await engine.connect(spreadsheet_url)
    task = engine.start_auto_refresh()

    await engine.disconnect()

    assert task.done()
    assert task.cancelled()


@pytest.mark.asyncio
async def test_excluded_letter_stays_hidden_across_refresh(published_server, make_engine, spreadsheet_url):
    engine = make_engine()
    await engine.connect(spreadsheet_url)

    engine.exclude(engine.letters[0])
    assert [letter.nome for letter in engine.visible_letters] == ["Ana Souza"]

    await engine.refresh()
    assert [letter.nome for letter in engine.visible_letters] == ["Ana Souza"]
    assert [letter.nome for letter in engine.snapshot().letters] == ["Ana Souza"]


@pytest.mark.asyncio
async def test_auto_refresh_surfaces_new_letters(published_server, make_engine, spreadsheet_url, read_fixture):
    engine = make_engine(settings=SyncSettings(refresh_interval=0.01))
    await engine.connect(spreadsheet_url)
    published_server.publish("CARTAS_DB", read_fixture("cartas.csv") + NEW_LETTER)

    engine.start_auto_refresh()
    notifications = []
    for _ in range(200):
        await asyncio.sleep(0.01)
        notifications.extend(engine.pending_notifications())
        if notifications:
            break
    await engine.close()

    assert len(notifications) == 1


def test_sort_newest_first_puts_unparseable_dates_last():
    letters = [
        LetterRecord(nome="sem data"),
        LetterRecord(nome="antiga", data_emissao="01/01/2024 08:00:00"),
        LetterRecord(nome="nova", data_emissao="2024-03-01T10:00:00"),
    ]

    assert [letter.nome for letter in sort_newest_first(letters)] == ["nova", "antiga", "sem data"]


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("PAINEL_REFRESH_SECONDS", "30")
    monkeypatch.setenv("PAINEL_NOTIFY_WINDOW_MINUTES", "abc")

    settings = SyncSettings.from_env()

    assert settings.refresh_interval == 30.0
    assert settings.notify_window == timedelta(minutes=10)
