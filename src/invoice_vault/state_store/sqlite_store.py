"""
SQLite-based ledger implementation.

Tables:
- invoices: The append-only ledger, one row per unique file content
- processing_failures: Audit log of per-file failures (migration 001)
- rate_cache: Authoritative exchange rates already looked up (migration 002)
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from ..schemas.invoice_record import InvoiceRecord


class LedgerError(Exception):
    """Base exception for ledger errors."""

    pass


class DuplicateError(LedgerError):
    """A record with the same content fingerprint is already in the ledger."""

    def __init__(self, fingerprint: str):
        self.fingerprint = fingerprint
        super().__init__(f"Fingerprint already in ledger: {fingerprint}")


class PersistenceError(LedgerError):
    """The ledger database is unreachable or corrupt."""

    pass


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class FailureRecord:
    """Record of a file that could not be ingested."""

    id: int
    content_fingerprint: str | None
    source_path: str
    stage: str
    error_kind: str
    message: str
    occurred_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "FailureRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            content_fingerprint=row["content_fingerprint"],
            source_path=row["source_path"],
            stage=row["stage"],
            error_kind=row["error_kind"],
            message=row["message"],
            occurred_at=row["occurred_at"],
        )


class LedgerStore:
    """
    SQLite-based ledger of ingested invoices.

    Provides:
    - Existence check by content fingerprint
    - Append-only insert (uniqueness enforced by the database)
    - Full listing for export
    - Failure audit log and exchange rate cache

    There is deliberately no update or delete method for invoices.
    Thread-safe for single-writer scenarios.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str, run_migrations: bool = True):
        """
        Open (and if needed create) the ledger.

        Args:
            db_path: Path to SQLite database file
            run_migrations: Whether to run pending migrations (default True)

        Raises:
            PersistenceError: If the database cannot be opened or initialized
        """
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create ledger directory {self.db_path.parent}: {e}") from e
        self._init_db()
        if run_migrations:
            self._run_migrations()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        try:
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open ledger {self.db_path}: {e}") from e
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions.

        IntegrityError is re-raised untouched so callers can map uniqueness
        violations; every other SQLite error becomes PersistenceError.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Ledger operation failed on {self.db_path}: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            # Schema version tracking
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            # The ledger. Money and rates are decimal TEXT so they read back exactly.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS invoices (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    content_fingerprint TEXT NOT NULL UNIQUE,
                    source_path TEXT NOT NULL,
                    vendor_name TEXT NOT NULL,
                    invoice_number TEXT NOT NULL,
                    invoice_date TEXT NOT NULL,
                    tax_year TEXT NOT NULL,
                    category TEXT NOT NULL,
                    currency_code TEXT NOT NULL,
                    amount_original TEXT NOT NULL,
                    exchange_rate TEXT NOT NULL,
                    rate_source TEXT NOT NULL,
                    amount_base TEXT NOT NULL,
                    processed_at TEXT NOT NULL
                )
            """
            )

            conn.execute("CREATE INDEX IF NOT EXISTS idx_invoices_tax_year ON invoices(tax_year)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_invoices_category ON invoices(category)")

            # Set schema version
            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    def _run_migrations(self) -> None:
        """Run pending database migrations."""
        from .migrations import MigrationRunner

        conn = self._get_connection()
        try:
            runner = MigrationRunner(conn)
            runner.run_pending()
        except sqlite3.Error as e:
            raise PersistenceError(f"Ledger migration failed: {e}") from e
        finally:
            conn.close()

    # Invoice methods

    def exists(self, fingerprint: str) -> bool:
        """Check if content with this fingerprint has been ingested."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM invoices WHERE content_fingerprint = ?", (fingerprint,)
            ).fetchone()
            return row is not None

    def insert(self, record: InvoiceRecord) -> int:
        """
        Append a record to the ledger. Returns the new row ID.

        processed_at is assigned here, once.

        Raises:
            DuplicateError: If the fingerprint is already present
            PersistenceError: On any other database failure
        """
        now = _utc_now()
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO invoices
                    (content_fingerprint, source_path, vendor_name, invoice_number, invoice_date,
                     tax_year, category, currency_code, amount_original, exchange_rate,
                     rate_source, amount_base, processed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        record.content_fingerprint,
                        record.source_path,
                        record.vendor_name,
                        record.invoice_number,
                        record.invoice_date,
                        record.tax_year,
                        record.category.value,
                        record.currency_code.upper(),
                        str(record.amount_original),
                        str(record.exchange_rate),
                        record.rate_source.value,
                        str(record.amount_base),
                        now,
                    ),
                )
                return cursor.lastrowid or 0
        except sqlite3.IntegrityError as e:
            if "content_fingerprint" in str(e):
                raise DuplicateError(record.content_fingerprint) from e
            raise PersistenceError(f"Ledger rejected record: {e}") from e

    def get_by_fingerprint(self, fingerprint: str) -> InvoiceRecord | None:
        """Get a ledger record by content fingerprint."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM invoices WHERE content_fingerprint = ?", (fingerprint,)
            ).fetchone()
            return InvoiceRecord.from_row(row) if row else None

    def list_all(self) -> list[InvoiceRecord]:
        """All ledger records in insertion order."""
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM invoices ORDER BY id").fetchall()
            return [InvoiceRecord.from_row(row) for row in rows]

    def count(self) -> int:
        """Number of records in the ledger."""
        with self._transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM invoices").fetchone()[0]

    # Failure log methods

    def record_failure(
        self,
        source_path: str,
        stage: str,
        error_kind: str,
        message: str,
        content_fingerprint: str | None = None,
    ) -> int:
        """Append an entry to the failure audit log. Returns the entry ID."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO processing_failures
                (content_fingerprint, source_path, stage, error_kind, message, occurred_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (content_fingerprint, source_path, stage, error_kind, message, _utc_now()),
            )
            return cursor.lastrowid or 0

    def list_failures(self, limit: int = 50) -> list[FailureRecord]:
        """Most recent failures first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM processing_failures ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
            return [FailureRecord.from_row(row) for row in rows]

    # === Rate Cache Methods ===

    def get_cached_rate(self, currency: str, base_currency: str, rate_date: str) -> Decimal | None:
        """Get a previously looked-up rate."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT rate FROM rate_cache
                WHERE currency = ? AND base_currency = ? AND rate_date = ?
            """,
                (currency.upper(), base_currency.upper(), rate_date),
            ).fetchone()
            return Decimal(row["rate"]) if row else None

    def set_cached_rate(
        self, currency: str, base_currency: str, rate_date: str, rate: Decimal
    ) -> None:
        """Store an authoritative rate. Historical rates never change, so first write wins."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO rate_cache
                (currency, base_currency, rate_date, rate, fetched_at)
                VALUES (?, ?, ?, ?, ?)
            """,
                (currency.upper(), base_currency.upper(), rate_date, str(rate), _utc_now()),
            )

    # Statistics

    def get_stats(self) -> dict[str, Any]:
        """Get ledger statistics."""
        with self._transaction() as conn:
            total = conn.execute("SELECT COUNT(*) FROM invoices").fetchone()[0]

            by_category = {
                row["category"]: row["n"]
                for row in conn.execute(
                    "SELECT category, COUNT(*) AS n FROM invoices GROUP BY category ORDER BY category"
                )
            }
            by_tax_year = {
                row["tax_year"]: row["n"]
                for row in conn.execute(
                    "SELECT tax_year, COUNT(*) AS n FROM invoices GROUP BY tax_year ORDER BY tax_year"
                )
            }
            fallback_rates = conn.execute(
                "SELECT COUNT(*) FROM invoices WHERE rate_source = 'FALLBACK'"
            ).fetchone()[0]
            failures = conn.execute("SELECT COUNT(*) FROM processing_failures").fetchone()[0]

            return {
                "invoices_total": total,
                "by_category": by_category,
                "by_tax_year": by_tax_year,
                "fallback_rates": fallback_rates,
                "failures_logged": failures,
            }
