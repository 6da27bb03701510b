"""CLI tool for admin operations.

Usage:
    python -m tranche.cli export <path>
    python -m tranche.cli import <path>
    python -m tranche.cli settle <instrument_id>
    python -m tranche.cli calendar
"""

import sys
from pathlib import Path

from sqlmodel import Session

from tranche.database import engine, create_db_and_tables
from tranche.exceptions import TrancheError
from tranche.services import backup
from tranche.services.settlement import settle_instrument
from tranche.services.trading_calendar import market_calendar
from tranche.utils.logging import setup_logging


def export_backup(path: str):
    """Write every instrument, trade and settlement to a JSON file."""
    with Session(engine) as session:
        text = backup.dumps_backup(session)
    Path(path).write_text(text, encoding="utf-8")
    print(f"Backup written to {path}")


def import_backup(path: str):
    """Add the records of a JSON backup to the database."""
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        print(f"Cannot read {path}: {e}")
        sys.exit(1)

    with Session(engine) as session:
        try:
            result = backup.import_backup(session, raw)
        except TrancheError as e:
            print(str(e))
            sys.exit(1)

    print(
        f"Imported {result.instruments} instruments, {result.trades} trades, "
        f"{result.settlements} settlements."
    )
    for skipped in result.skipped:
        print(f"  skipped {skipped.section}[{skipped.index}]: {skipped.reason}")


def settle(instrument_id: str):
    """Close the open cycle of one instrument."""
    try:
        target = int(instrument_id)
    except ValueError:
        print(f"Invalid instrument id: {instrument_id}")
        sys.exit(1)

    with Session(engine) as session:
        try:
            record = settle_instrument(session, target)
        except TrancheError as e:
            print(str(e))
            sys.exit(1)

    print(
        f"Settled {record.symbol}: profit {record.profit:.2f} ({record.profit_rate:.2f}%) "
        f"over {record.trading_days} days, {record.buy_count} buys / {record.sell_count} sells"
    )


def calendar():
    """Print holiday-table coverage and the previous trading day."""
    coverage = market_calendar.coverage()
    today = market_calendar.local_now().date()
    print(f"Timezone: {coverage['timezone']}")
    print(f"Holiday years: {', '.join(str(y) for y in coverage['years'])}")
    print(f"Today ({today}) is a trading day: {market_calendar.is_trading_day(today)}")
    print(f"Previous trading day: {market_calendar.last_trading_day_before(today)}")
    if not coverage["current_year"] or not coverage["next_year"]:
        print("WARNING: holiday data missing for this or next year; weekdays only.")


COMMANDS = {
    "export": (export_backup, 1),
    "import": (import_backup, 1),
    "settle": (settle, 1),
    "calendar": (calendar, 0),
}


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m tranche.cli <command> [arg]")
        print(f"Commands: {', '.join(COMMANDS)}")
        sys.exit(1)

    command = sys.argv[1]
    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        sys.exit(1)

    handler, arg_count = COMMANDS[command]
    args = sys.argv[2:2 + arg_count]
    if len(args) < arg_count:
        print(f"Usage: python -m tranche.cli {command} <arg>")
        sys.exit(1)

    setup_logging()
    create_db_and_tables()
    handler(*args)


if __name__ == "__main__":
    main()
