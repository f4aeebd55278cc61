#!/usr/bin/env python3
"""Initialize the quote-bot session store."""

import argparse
import sqlite3
from pathlib import Path

from quote_bot.models import VOLATILE_TABLES, SessionStore


def init_db(db_path: Path, reset: bool = False) -> None:
    """Create the session store schema and optionally clear conversation state."""
    print(f"Initializing session store: {db_path}")

    with SessionStore(db_path) as store:
        print("  Schema created.")
        if reset:
            store.truncate_volatile()
            print(f"  Cleared: {', '.join(VOLATILE_TABLES)}")

    # Show final state
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        tables = [row[0] for row in cursor if not row[0].startswith("sqlite_")]
        print(f"\nTables: {', '.join(tables)}")

        count = conn.execute("SELECT COUNT(*) FROM saved_quotes").fetchone()[0]
        print(f"Saved quotes: {count}")
    finally:
        conn.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize quote-bot session store")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path("quote_bot.db"),
        help="Path to the SQLite database file (default: quote_bot.db)",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear conversation state (saved quotes are kept)",
    )
    args = parser.parse_args()

    init_db(args.db, reset=args.reset)


if __name__ == "__main__":
    main()
