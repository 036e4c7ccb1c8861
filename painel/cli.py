"""Command line entrypoint to pull a spreadsheet once or watch it for new letters."""
import argparse
import asyncio
import time
from pathlib import Path

from painel.core.logging import configure_logging
from painel.core.store import LocalStore
from painel.reporting.sinks import write_csv, write_excel
from painel.reporting.templates import LETTER_COLUMNS, letters_to_rows, workers_to_rows
from painel.sync.engine import GENERIC_ERROR_MESSAGE, SyncEngine, SyncSettings
from painel.sync.services import RemoteServices


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with ``fetch`` and ``watch`` commands."""

    parser = argparse.ArgumentParser(description="Sync preaching letters and workers from Google Sheets")
    parser.add_argument(
        "--state-file",
        type=Path,
        help="JSON file holding the persisted dashboard state",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    fetch = commands.add_parser("fetch", help="Connect once and export letters/workers")
    fetch.add_argument("url", help="Google Sheets URL containing /spreadsheets/d/<id>/")
    fetch.add_argument("--sheet", help="Custom name of the letters sheet tab")
    fetch.add_argument(
        "--output",
        type=Path,
        default=Path("output/cartas.csv"),
        help="CSV file to write letters to",
    )
    fetch.add_argument(
        "--workers-output",
        type=Path,
        default=Path("output/obreiros.csv"),
        help="CSV file to write workers to",
    )
    fetch.add_argument("--excel-output", type=Path, help="Also write an Excel workbook with both tables")

    watch = commands.add_parser("watch", help="Keep refreshing and print notifications for new letters")
    watch.add_argument("url", help="Google Sheets URL containing /spreadsheets/d/<id>/")
    watch.add_argument("--sheet", help="Custom name of the letters sheet tab")
    watch.add_argument("--interval", type=float, help="Seconds between refreshes")
    watch.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Stop after this many seconds (0 keeps running)",
    )
    return parser


def build_engine(state_file: Path | None) -> SyncEngine:
    return SyncEngine(
        LocalStore(state_file),
        services=RemoteServices.from_env(),
        settings=SyncSettings.from_env(),
    )


async def _fetch_once(engine: SyncEngine, url: str, sheet: str | None) -> bool:
    try:
        return await engine.connect(url, sheet)
    finally:
        await engine.close()


async def _watch(engine: SyncEngine, url: str, sheet: str | None, duration: float) -> None:
    if not await engine.connect(url, sheet):
        raise SystemExit(engine.error or GENERIC_ERROR_MESSAGE)

    for letter in engine.take_digest():
        print(f"Recente: {letter.nome} ({letter.data_emissao})")

    engine.start_auto_refresh()
    started = time.monotonic()
    poll = min(1.0, engine.settings.refresh_interval)
    try:
        while not duration or time.monotonic() - started < duration:
            await asyncio.sleep(poll)
            for notification in engine.pending_notifications():
                print(f"{notification.title}: {notification.body}")
    finally:
        await engine.close()


def main() -> None:
    """Entrypoint for running the sync from the command line."""

    configure_logging()
    args = build_parser().parse_args()
    engine = build_engine(args.state_file)

    if args.command == "watch":
        if args.interval:
            engine.settings.refresh_interval = args.interval
        asyncio.run(_watch(engine, args.url, args.sheet, args.duration))
        return

    if not asyncio.run(_fetch_once(engine, args.url, args.sheet)):
        raise SystemExit(engine.error or GENERIC_ERROR_MESSAGE)

    letter_rows = letters_to_rows(engine.visible_letters)
    worker_rows = workers_to_rows(engine.workers)
    write_csv(letter_rows, args.output, headers=[label for _, label in LETTER_COLUMNS])
    if worker_rows:
        write_csv(worker_rows, args.workers_output)
    if args.excel_output:
        write_excel({"cartas": letter_rows, "obreiros": worker_rows}, args.excel_output)

    source = engine.letters_sheet or ("the offline cache" if engine.offline else "no letters sheet")
    print(f"Wrote {len(letter_rows)} letters from {source} to {args.output}")
    if worker_rows:
        print(f"Wrote {len(worker_rows)} workers from {engine.workers_sheet} to {args.workers_output}")
    if engine.offline:
        print("Warning: live sync failed; data came from the offline cache")


if __name__ == "__main__":
    main()
