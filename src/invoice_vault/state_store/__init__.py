"""
Ledger store (SQLite-based).

Lightweight persistent DB for tracking:
- Ingested invoices (append-only, unique by content fingerprint)
- Per-file processing failures
- Exchange rates already looked up

Enforces uniqueness on content_fingerprint.
"""

from .sqlite_store import (
    DuplicateError,
    FailureRecord,
    LedgerError,
    LedgerStore,
    PersistenceError,
)

__all__ = [
    "DuplicateError",
    "FailureRecord",
    "LedgerError",
    "LedgerStore",
    "PersistenceError",
]
