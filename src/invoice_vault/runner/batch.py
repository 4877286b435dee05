"""
Batch driver.

Runs every scanned document through the per-file state machine:

    DISCOVERED → HASHED → SKIPPED_DUPLICATE
                        → EXTRACTING → EXTRACTION_FAILED
                                     → EXTRACTED → ENRICHING → ENRICHMENT_FAILED
                                                             → ENRICHED → PERSISTING → PERSISTED

READ_FAILED is reached straight from DISCOVERED when the file cannot be read.

Per-file failures are contained: they are logged, written to the failure
audit table and reported, and the batch moves on. Only PersistenceError
aborts the batch, since nothing further could be recorded.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from ..extractors.errors import SchemaValidationError
from ..notifications import NotificationKind, Notifier
from ..schemas.dedupe import compute_file_hash
from ..schemas.invoice_record import InvoiceRecord
from ..state_store import DuplicateError

if TYPE_CHECKING:
    from ..enrichment import Enricher
    from ..export import ReportExporter
    from ..extractors import ExtractionAdapter
    from ..scanner import ScannedDocument
    from ..state_store import LedgerStore

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Invoice Vault"


class FileState(str, Enum):
    """Processing state of a single file."""

    DISCOVERED = "DISCOVERED"
    READ_FAILED = "READ_FAILED"
    HASHED = "HASHED"
    SKIPPED_DUPLICATE = "SKIPPED_DUPLICATE"
    EXTRACTING = "EXTRACTING"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    EXTRACTED = "EXTRACTED"
    ENRICHING = "ENRICHING"
    ENRICHMENT_FAILED = "ENRICHMENT_FAILED"
    ENRICHED = "ENRICHED"
    PERSISTING = "PERSISTING"
    PERSISTED = "PERSISTED"


FAILED_STATES = frozenset(
    {FileState.READ_FAILED, FileState.EXTRACTION_FAILED, FileState.ENRICHMENT_FAILED}
)


@dataclass
class FileOutcome:
    """What happened to one file."""

    path: str
    fingerprint: str | None = None
    state: FileState = FileState.DISCOVERED
    history: list[FileState] = field(default_factory=lambda: [FileState.DISCOVERED])
    error_kind: str | None = None
    message: str | None = None
    record: InvoiceRecord | None = None

    def advance(self, state: FileState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def failed(self) -> bool:
        return self.state in FAILED_STATES

    @property
    def skipped(self) -> bool:
        return self.state == FileState.SKIPPED_DUPLICATE

    @property
    def persisted(self) -> bool:
        return self.state == FileState.PERSISTED


@dataclass
class BatchSummary:
    """Counters for one run."""

    scanned: int = 0
    added: int = 0
    skipped: int = 0
    failed: int = 0
    outcomes: list[FileOutcome] = field(default_factory=list)
    exported: bool = False

    @property
    def message(self) -> str:
        return f"Added: {self.added} | Errors: {self.failed}"


class BatchDriver:
    """
    Sequential ingestion of a list of scanned documents.

    Collaborators are injected so the driver can run against fakes:
    the clock is only touched through ``sleep`` and ``clock``.
    """

    def __init__(
        self,
        store: LedgerStore,
        adapter: ExtractionAdapter,
        enricher: Enricher,
        exporter: ReportExporter | None,
        notifier: Notifier,
        throttle_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.adapter = adapter
        self.enricher = enricher
        self.exporter = exporter
        self.notifier = notifier
        self.throttle_seconds = throttle_seconds
        self.sleep = sleep
        self.clock = clock

    def _fail(
        self,
        outcome: FileOutcome,
        state: FileState,
        stage: str,
        error_kind: str,
        message: str,
    ) -> FileOutcome:
        outcome.advance(state)
        outcome.error_kind = error_kind
        outcome.message = message

        logger.error("Failed %s (%s): %s", outcome.path, error_kind, message)
        self.store.record_failure(
            source_path=outcome.path,
            stage=stage,
            error_kind=error_kind,
            message=message,
            content_fingerprint=outcome.fingerprint,
        )
        self.notifier.notify(
            NOTIFICATION_TITLE,
            f"Failed: {Path(outcome.path).name} ({error_kind})",
            NotificationKind.FAILURE,
        )
        return outcome

    def process_file(self, document: ScannedDocument) -> FileOutcome:
        """
        Run one document through the state machine.

        Raises:
            PersistenceError: The ledger is unusable
        """
        outcome = FileOutcome(path=str(document.path))

        try:
            file_bytes = document.path.read_bytes()
        except OSError as e:
            return self._fail(outcome, FileState.READ_FAILED, "read", "READ_ERROR", str(e))

        outcome.fingerprint = compute_file_hash(file_bytes)
        outcome.advance(FileState.HASHED)

        if self.store.exists(outcome.fingerprint):
            logger.info("Skipping %s: content already in ledger", outcome.path)
            outcome.advance(FileState.SKIPPED_DUPLICATE)
            return outcome

        outcome.advance(FileState.EXTRACTING)
        extraction = self.adapter.extract(file_bytes)
        if not extraction.ok:
            return self._fail(
                outcome,
                FileState.EXTRACTION_FAILED,
                "extraction",
                extraction.error.kind.value,
                extraction.error.message,
            )
        outcome.advance(FileState.EXTRACTED)

        outcome.advance(FileState.ENRICHING)
        try:
            record = self.enricher.enrich(
                extraction.candidate,
                fingerprint=outcome.fingerprint,
                source_path=document.path,
                category=document.category,
            )
        except SchemaValidationError as e:
            return self._fail(
                outcome, FileState.ENRICHMENT_FAILED, "enrichment", "SCHEMA_VALIDATION", str(e)
            )
        outcome.advance(FileState.ENRICHED)

        outcome.advance(FileState.PERSISTING)
        try:
            row_id = self.store.insert(record)
        except DuplicateError:
            # Same content inserted since the existence check
            logger.info("Skipping %s: content already in ledger", outcome.path)
            outcome.advance(FileState.SKIPPED_DUPLICATE)
            return outcome

        outcome.record = dataclasses.replace(record, id=row_id)
        outcome.advance(FileState.PERSISTED)

        logger.info(
            "Added %s: %s %s %s (%s, %s)",
            record.vendor_name,
            record.invoice_number,
            record.amount_original,
            record.currency_code,
            record.tax_year,
            record.category.value,
        )
        self.notifier.notify(
            NOTIFICATION_TITLE,
            f"{record.vendor_name}: {record.amount_original} {record.currency_code}",
            NotificationKind.SUCCESS,
        )
        return outcome

    def run(self, documents: list[ScannedDocument]) -> BatchSummary:
        """
        Process all documents in order, then export and summarize.

        Raises:
            PersistenceError: The ledger is unusable; the batch stops
        """
        summary = BatchSummary(scanned=len(documents))
        total = len(documents)
        processed_time = 0.0
        processed_count = 0

        logger.info("Found %d documents", total)

        for index, document in enumerate(documents, start=1):
            if processed_count:
                remaining = total - index + 1
                eta = processed_time / processed_count * remaining
                logger.info("[%d/%d] %s (ETA ~%.0fs)", index, total, document.path.name, eta)
            else:
                logger.info("[%d/%d] %s", index, total, document.path.name)

            started = self.clock()
            outcome = self.process_file(document)
            summary.outcomes.append(outcome)

            if outcome.skipped:
                summary.skipped += 1
                continue

            processed_time += self.clock() - started
            processed_count += 1
            if outcome.persisted:
                summary.added += 1
            else:
                summary.failed += 1

            if index < total and self.throttle_seconds > 0:
                self.sleep(self.throttle_seconds)

        logger.info(
            "Batch complete: %d scanned, %d added, %d skipped, %d failed",
            summary.scanned,
            summary.added,
            summary.skipped,
            summary.failed,
        )

        if summary.added > 0 and self.exporter is not None:
            self.exporter.export()
            summary.exported = True

        if summary.added > 0 or summary.failed > 0:
            self.notifier.notify(NOTIFICATION_TITLE, summary.message, NotificationKind.SUMMARY)

        return summary
