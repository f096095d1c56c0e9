#!/usr/bin/env python3
"""
Bhakti Tracker - command-line sync client.

Usage:
    python -m tracker --status                     # Local state and connectivity
    python -m tracker --sync                       # Reconcile today and push pending work
    python -m tracker --increment first            # Count one recitation
    python -m tracker --toggle morning_aarti       # Flip a checklist item
    python -m tracker --streak                     # Streak and 7-day table
"""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional

from .config import SyncConfig
from .engine import SyncEngine, sync_session
from .exceptions import SyncError
from .models import CompletionEvent, today, validate_date

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bhakti Tracker sync client")
    parser.add_argument("--date", type=validate_date, default=None, help="Day to act on (YYYY-MM-DD, default today)")
    parser.add_argument("--api-url", default=None, help="Server base URL")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding the local store")
    parser.add_argument("--sync", action="store_true", help="Reconcile with the server and push pending work")
    parser.add_argument("--increment", action="append", default=[], metavar="NAME", help="Increment a counter (repeatable)")
    parser.add_argument("--toggle", action="append", default=[], metavar="NAME", help="Toggle a checklist item (repeatable)")
    parser.add_argument("--status", action="store_true", help="Show sync status and records")
    parser.add_argument("--streak", action="store_true", help="Show streak and weekly counts")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def print_day(engine: SyncEngine, date: str) -> None:
    day = engine.local_day(date)
    print(f"\n=== {date} ===")
    for counter in day.counters:
        target = f"/{counter.target}" if counter.target is not None else ""
        flag = " *" if counter.dirty else ""
        done = " (complete)" if counter.is_complete else ""
        print(f"  {counter.name:<12} {counter.count}{target}{done}{flag}")
    for category in ("aarti", "satsang"):
        print(f"  [{category}]")
        for item in day.by_category(category):
            mark = "x" if item.completed else " "
            flag = " *" if item.dirty else ""
            print(f"    [{mark}] {item.display_label}{flag}")


async def main(args: argparse.Namespace) -> int:
    config = SyncConfig.from_env(api_base_url=args.api_url, data_dir=args.data_dir)
    date = args.date or today()

    def on_completion(event: CompletionEvent) -> None:
        print(f"Target reached: {event.name} {event.count}/{event.target}")

    async with sync_session(config) as engine:
        engine.on_completion(on_completion)
        engine.ensure_day(date)

        try:
            for name in args.increment:
                record = await engine.increment(name, date)
                print(f"{name}: {record.count}")
            for name in args.toggle:
                item = await engine.toggle(name, date)
                print(f"{name}: {'done' if item.completed else 'not done'}")
        except SyncError as e:
            print(f"Error: {e}")
            return 1

        await engine.mutations.wait_for_pushes()

        if args.sync:
            result = await engine.sync_all([date])
            if engine.status.is_online:
                await engine.supervisor.wait_idle()
            print(
                f"\nSync result: {len(result.dates)} dates reconciled, "
                f"{engine.store.pending_count()} pending, "
                f"{'online' if engine.status.is_online else 'offline'}"
            )

        if args.status:
            status = engine.get_sync_status()
            print("\n=== Sync Status ===")
            print(f"Online: {status['online']}")
            print(f"Pending: {status['pending']}")
            print(f"Retry queue: {status['retry_queue']}")
            print_day(engine, date)

        if args.streak:
            print(f"\nStreak: {engine.streak(date)} days")
            for row in engine.weekly_stats(date):
                counts = "  ".join(f"{name}={count}" for name, count in row["counts"].items())
                print(f"  {row['date']}  {counts}")

    return 0


def run(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    return asyncio.run(main(args))


if __name__ == "__main__":
    raise SystemExit(run())
