"""
Forward-only schema migrations for the ledger.

A migration is a module named ``NNN_name.py`` in this package defining:
- VERSION: int
- NAME: str
- upgrade(conn: Connection) -> None

The ledger is append-only, and so is its schema history: there is no
downgrade path.
"""

import importlib
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]


def get_all_migrations() -> list[Migration]:
    """Migration modules of this package, ordered by version."""
    found = []
    for py_file in Path(__file__).parent.glob("[0-9][0-9][0-9]_*.py"):
        module = importlib.import_module(f"{__package__}.{py_file.stem}")
        found.append(Migration(version=module.VERSION, name=module.NAME, upgrade=module.upgrade))
    return sorted(found, key=lambda m: m.version)


class MigrationRunner:
    """Applies migrations not yet recorded in the ``migrations`` table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
        """
        )
        self.conn.commit()

    def get_applied_versions(self) -> set[int]:
        return {row[0] for row in self.conn.execute("SELECT version FROM migrations")}

    def apply_migration(self, migration: Migration) -> None:
        """Run one upgrade and record it, in a single transaction."""
        logger.info("Applying ledger migration %03d_%s", migration.version, migration.name)
        applied_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        try:
            migration.upgrade(self.conn)
            self.conn.execute(
                "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.name, applied_at),
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            logger.error("Ledger migration %03d_%s failed", migration.version, migration.name)
            raise

    def run_pending(self) -> list[int]:
        """Apply every pending migration in version order. Returns the versions applied."""
        applied = self.get_applied_versions()
        pending = [m for m in get_all_migrations() if m.version not in applied]
        for migration in pending:
            self.apply_migration(migration)
        return [m.version for m in pending]
