"""Command line entrypoint for the quote store and its sync loop."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from aiohttp import ClientSession

from .book import IMPORT_MERGE, IMPORT_REPLACE, QuoteBook
from .config import QuoteSyncConfig, load_config
from .errors import QuoteSyncError
from .gateway import HttpQuoteGateway
from .local_store import LocalStore
from .reconcile import ReconciliationEngine
from .scheduler import SyncReport, SyncScheduler

_LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quotesync", description="Local-first quote store with remote sync")
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--db", help="SQLite path for the local store")
    parser.add_argument("--base-url", help="Remote quote service base URL")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Add a quote")
    add.add_argument("text")
    add.add_argument("category")

    listing = sub.add_parser("list", help="List quotes")
    listing.add_argument("--category", help="Category to show (defaults to the selected one)")

    sub.add_parser("categories", help="List categories")

    select = sub.add_parser("select", help="Remember the selected category")
    select.add_argument("category")

    sub.add_parser("random", help="Show a random quote from the selected category")

    export = sub.add_parser("export", help="Export quotes as JSON")
    export.add_argument("file", nargs="?", type=Path, help="Output file (stdout when omitted)")

    importer = sub.add_parser("import", help="Import quotes from a JSON file")
    importer.add_argument("file", type=Path)
    importer.add_argument("--merge", action="store_true", help="Upsert instead of replacing the collection")

    sub.add_parser("sync", help="Run a single sync cycle")

    run = sub.add_parser("run", help="Sync on an interval until interrupted")
    run.add_argument("--interval", type=float, help="Seconds between sync cycles")
    return parser


def resolve_config(args: argparse.Namespace) -> QuoteSyncConfig:
    config = load_config(args.config)
    return config.merged(
        {
            "store_path": args.db,
            "base_url": args.base_url,
            "sync_interval": getattr(args, "interval", None),
        }
    )


def create_scheduler(
    config: QuoteSyncConfig,
    store: LocalStore,
    session: ClientSession | None = None,
) -> SyncScheduler:
    gateway = HttpQuoteGateway(
        config.base_url,
        session,
        timeout=config.request_timeout,
        text_field=config.text_field,
        category_field=config.category_field,
        default_category=config.default_category,
        trust_remote_ids=config.trust_remote_ids,
    )
    engine = ReconciliationEngine(
        policy=config.conflict_policy,
        match_by_id=config.trust_remote_ids,
        outbox=store.outbox,
    )
    return SyncScheduler(
        store,
        gateway,
        engine,
        interval=config.sync_interval,
        fetch_limit=config.fetch_limit,
    )


def _print_report(report: SyncReport) -> None:
    print(json.dumps(report.to_dict(), indent=2))


async def _sync_once(config: QuoteSyncConfig, book: QuoteBook) -> SyncReport:
    async with ClientSession() as session:
        scheduler = create_scheduler(config, book.store, session)
        return await scheduler.sync_now()


async def _run_forever(config: QuoteSyncConfig, book: QuoteBook) -> None:
    async with ClientSession() as session:
        scheduler = create_scheduler(config, book.store, session)
        scheduler.register_listener(_log_report)
        _LOGGER.info("Starting quote sync loop every %.0fs against %s", config.sync_interval, config.base_url)
        try:
            await scheduler.run_forever()
        finally:
            await scheduler.stop()


def _log_report(report: SyncReport) -> None:
    for notice in report.changes.conflicts if report.changes else ():
        _LOGGER.warning("Quote %s replaced: %r -> %r", notice.id, notice.previous_text, notice.new_text)


def run_command(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    book = QuoteBook.open(config.store_path)

    if args.command == "add":
        record = book.add(args.text, args.category)
        print(record.id)
    elif args.command == "list":
        records = book.store.by_category(args.category) if args.category else book.filtered()
        for record in records:
            print(f'[{record.category}] "{record.text}"')
    elif args.command == "categories":
        for category in book.store.category_options():
            marker = "*" if category == book.selected_category else " "
            print(f"{marker} {category}")
    elif args.command == "select":
        print(book.select_category(args.category))
    elif args.command == "random":
        quote = book.random_quote()
        print(f'"{quote.text}"' if quote else "No quotes available.")
    elif args.command == "export":
        if args.file:
            book.export_to_file(args.file)
        else:
            print(book.export_json())
    elif args.command == "import":
        count = book.import_from_file(args.file, mode=IMPORT_MERGE if args.merge else IMPORT_REPLACE)
        print(f"Imported {count} quotes")
    elif args.command == "sync":
        report = asyncio.run(_sync_once(config, book))
        _print_report(report)
        return 0 if report.fetch_error is None else 2
    elif args.command == "run":
        try:
            asyncio.run(_run_forever(config, book))
        except KeyboardInterrupt:  # pragma: no cover - manual interruption
            _LOGGER.info("Sync loop stopped")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.WARNING))
    try:
        return run_command(args)
    except QuoteSyncError as err:
        print(f"error: {err}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
