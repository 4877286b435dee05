"""
Migration 002: Add rate_cache table.

Historical reference rates do not change once published, so a rate looked
up once for (currency, base, date) is reused instead of calling the API again.
Fallback (assumed 1:1) rates are never stored here.
"""

import sqlite3

VERSION = 2
NAME = "rate_cache"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create rate_cache table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS rate_cache (
            currency TEXT NOT NULL,
            base_currency TEXT NOT NULL,
            rate_date TEXT NOT NULL,  -- YYYY-MM-DD
            rate TEXT NOT NULL,  -- Decimal text
            fetched_at TEXT NOT NULL,
            PRIMARY KEY (currency, base_currency, rate_date)
        )
    """
    )
