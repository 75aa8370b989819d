#!/usr/bin/env python3
"""Initialize the price-enricher cache database with all migrations."""

import argparse
import sqlite3
from pathlib import Path

from price_enricher.migrations import get_current_version, run_migrations


def init_db(db_path: Path) -> None:
    """Create the database and apply pending migrations."""
    print(f"Initializing database: {db_path}")

    applied = run_migrations(db_path)
    if applied:
        print(f"Applied {len(applied)} migration(s).")
    else:
        print("No new migrations to apply.")
    print(f"Schema version: {get_current_version(db_path)}")

    # Show final state
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.execute(
            "SELECT version, applied_ts FROM schema_migrations ORDER BY version"
        )
        print("\nSchema versions:")
        for row in cursor:
            print(f"  v{row[0]} applied at {row[1]}")

        cursor = conn.execute("SELECT COUNT(*) FROM kv_store")
        print(f"\nCached entries: {cursor.fetchone()[0]}")
    finally:
        conn.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize price-enricher database")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path("price_enricher.db"),
        help="Path to the SQLite database file (default: price_enricher.db)",
    )
    args = parser.parse_args()

    init_db(args.db)


if __name__ == "__main__":
    main()
