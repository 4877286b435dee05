"""
Migration 001: Add processing_failures table.

Audit log of files that could not be ingested. Rows here never block a
retry: a failed file is reprocessed on the next run because its
fingerprint is not in the ledger.
"""

import sqlite3

VERSION = 1
NAME = "processing_failures"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create processing_failures table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS processing_failures (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            content_fingerprint TEXT,  -- NULL when the file could not be read
            source_path TEXT NOT NULL,
            stage TEXT NOT NULL,  -- read, extraction, enrichment
            error_kind TEXT NOT NULL,
            message TEXT NOT NULL,
            occurred_at TEXT NOT NULL
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_failures_fingerprint "
        "ON processing_failures(content_fingerprint)"
    )
