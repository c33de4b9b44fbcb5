"""Drop and recreate the six universal tables.

This is a destructive helper for local development. It targets the
database `db.py` resolves (``DATABASE_URL``, default ``data/universal.db``).

Usage:
    python scripts/recreate_db.py          # with confirmation prompt
    python scripts/recreate_db.py --yes    # skip confirmation
    python scripts/recreate_db.py --backup # copy the SQLite file first
"""

from __future__ import annotations

import argparse
import os
import shutil
import sys
from datetime import datetime
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from sqlalchemy import inspect

import db
import models  # noqa: F401  (registers the six tables)
from logging_utils import get_logger

logger = get_logger(__name__)


def _sqlite_path(engine) -> str | None:
    if engine.url.get_backend_name() != "sqlite":
        return None
    path = engine.url.database
    return None if path in (None, "", ":memory:") else path


def _confirm_or_exit(target: str, assume_yes: bool) -> None:
    if assume_yes:
        return

    resp = input(
        f"\nThis will DROP and RECREATE the universal tables in:\n  {target}\n\n"
        "ALL DATA IN THOSE TABLES WILL BE LOST.\n\n"
        "Continue? [y/N]: "
    ).strip()
    if resp.lower() not in {"y", "yes"}:
        print("Aborted.")
        raise SystemExit(1)


def _create_backup(db_path: str) -> str | None:
    """Create a timestamped copy of the SQLite file."""
    if not os.path.exists(db_path):
        return None

    backup_path = f"{db_path}.backup_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    shutil.copy2(db_path, backup_path)
    print(f"Backup created: {backup_path}")
    return backup_path


def recreate(engine=None) -> list[str]:
    """Drop and create all tables; returns the table names now present."""

    engine = engine or db.engine
    db.Base.metadata.drop_all(engine)
    db.Base.metadata.create_all(engine)
    tables = sorted(inspect(engine).get_table_names())
    logger.info("recreated tables: %s", ", ".join(tables))
    return tables


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Reset the database by dropping and recreating the universal tables."
    )
    parser.add_argument("--yes", "-y", action="store_true", help="Do not prompt for confirmation.")
    parser.add_argument(
        "--backup",
        "-b",
        action="store_true",
        help="Copy the SQLite file before resetting (SQLite only).",
    )
    args = parser.parse_args(argv)

    sqlite_path = _sqlite_path(db.engine)
    _confirm_or_exit(sqlite_path or db.engine.url.render_as_string(hide_password=True), args.yes)

    if args.backup and sqlite_path:
        _create_backup(sqlite_path)

    tables = recreate()
    print(f"\nRecreated tables ({len(tables)}):")
    for table in tables:
        print(f"  - {table}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
