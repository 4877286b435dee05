"""Tests for the batch driver.

Documents are plain-text stand-ins for PDFs; the scripted model reads the
"Key: value" lines back out of the prompt, so each file's content decides
what the model answers.
"""

import json
import shutil
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from invoice_vault.enrichment import Enricher
from invoice_vault.export import ReportExporter
from invoice_vault.extractors import ExtractionAdapter
from invoice_vault.notifications import NotificationKind, RecordingNotifier
from invoice_vault.rates_client import RateLookupError
from invoice_vault.runner import BatchDriver, FileState
from invoice_vault.scanner import ScannedDocument, scan
from invoice_vault.schemas import Category, RateSource, compute_file_hash
from invoice_vault.state_store import LedgerStore, PersistenceError

FULL_HISTORY = [
    FileState.DISCOVERED,
    FileState.HASHED,
    FileState.EXTRACTING,
    FileState.EXTRACTED,
    FileState.ENRICHING,
    FileState.ENRICHED,
    FileState.PERSISTING,
    FileState.PERSISTED,
]


def invoice_text(
    number: str,
    vendor: str = "Acme Cloud Services Ltd",
    amount: str = "100.00",
    currency: str = "GBP",
    invoice_date: str = "2023-04-05",
) -> bytes:
    return (
        f"Vendor: {vendor}\n"
        f"Invoice number: {number}\n"
        f"Date: {invoice_date}\n"
        f"Amount: {amount}\n"
        f"Currency: {currency}\n"
        "Thank you for your business. Payment due within 30 days.\n"
    ).encode()


def scripted_model(user_message: str) -> str:
    fields = dict(line.split(": ", 1) for line in user_message.splitlines() if ": " in line)
    if "Amount" not in fields:
        return "Sorry, I could not find a total on this invoice."
    return json.dumps(
        {
            "invoiceNumber": fields["Invoice number"],
            "date": fields["Date"],
            "vendorName": fields["Vendor"],
            "totalAmount": float(fields["Amount"]),
            "currency": fields["Currency"],
        }
    )


def fixed_rates(currency: str, iso_date: str, base: str) -> Decimal:
    if currency == "EUR":
        return Decimal("0.8567")
    raise RateLookupError(f"No rate for {currency}")


def write(path: Path, content: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class Harness:
    """A driver wired to a real ledger and exporter with scripted externals."""

    def __init__(
        self, tmp_path: Path, temp_db: Path, plain_extractor, fake_llm, throttle_seconds: float = 2.0
    ):
        self.root = tmp_path / "Invoices"
        self.root.mkdir()
        self.report = tmp_path / "Numbers_Import.csv"
        self.store = LedgerStore(temp_db)
        self.llm = fake_llm({"fast": scripted_model})
        self.notifier = RecordingNotifier()
        self.sleeps: list[float] = []
        self.driver = BatchDriver(
            store=self.store,
            adapter=ExtractionAdapter(plain_extractor, self.llm),
            enricher=Enricher(fixed_rates, store=self.store),
            exporter=ReportExporter(self.store, self.report),
            notifier=self.notifier,
            throttle_seconds=throttle_seconds,
            sleep=self.sleeps.append,
        )

    def run(self):
        return self.driver.run(scan(self.root))


@pytest.fixture
def harness(tmp_path, temp_db, plain_extractor, fake_llm):
    return Harness(tmp_path, temp_db, plain_extractor, fake_llm)


class TestHappyPath:
    """Tests for ingesting new documents."""

    def test_ingests_new_files(self, harness):
        write(harness.root / "Income" / "a.pdf", invoice_text("A-1"))
        write(harness.root / "Expenditure" / "b.pdf", invoice_text("B-1", amount="20.50"))

        summary = harness.run()

        assert (summary.scanned, summary.added, summary.skipped, summary.failed) == (2, 2, 0, 0)
        assert summary.exported
        assert all(o.history == FULL_HISTORY for o in summary.outcomes)
        assert harness.store.count() == 2

    def test_record_fields(self, harness):
        path = write(harness.root / "Income" / "a.pdf", invoice_text("A-1", amount="57.6"))

        summary = harness.run()

        record = summary.outcomes[0].record
        assert record.id is not None
        assert record.content_fingerprint == compute_file_hash(path.read_bytes())
        assert record.category == Category.INCOME
        assert record.tax_year == "2022-2023"
        assert record.amount_base == Decimal("57.60")
        assert record.rate_source == RateSource.IDENTITY

    def test_report_written(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1"))
        write(harness.root / "b.pdf", invoice_text("B-1"))

        harness.run()

        lines = harness.report.read_text().splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("Category,Tax Year,Vendor")

    def test_notifications(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1", vendor="Acme", amount="12.5"))

        harness.run()

        success = harness.notifier.of_kind(NotificationKind.SUCCESS)
        summary = harness.notifier.of_kind(NotificationKind.SUMMARY)
        assert [n.message for n in success] == ["Acme: 12.5 GBP"]
        assert [n.message for n in summary] == ["Added: 1 | Errors: 0"]

    def test_foreign_currency_and_fallback(self, harness):
        write(harness.root / "eur.pdf", invoice_text("E-1", amount="100", currency="EUR"))
        write(harness.root / "usd.pdf", invoice_text("U-1", amount="100", currency="USD"))

        harness.run()

        by_number = {r.invoice_number: r for r in harness.store.list_all()}
        assert by_number["E-1"].amount_base == Decimal("85.67")
        assert by_number["E-1"].rate_source == RateSource.LOOKUP
        assert by_number["U-1"].amount_base == Decimal("100.00")
        assert by_number["U-1"].rate_source == RateSource.FALLBACK


class TestIdempotence:
    """Tests for content-based deduplication across runs."""

    def test_second_run_adds_nothing(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1"))
        write(harness.root / "b.pdf", invoice_text("B-1"))
        harness.run()
        calls_after_first_run = len(harness.llm.calls)
        sent_after_first_run = len(harness.notifier.sent)

        summary = harness.run()

        assert (summary.added, summary.skipped, summary.failed) == (0, 2, 0)
        assert not summary.exported
        assert harness.store.count() == 2
        assert len(harness.llm.calls) == calls_after_first_run
        assert len(harness.notifier.sent) == sent_after_first_run

    def test_renamed_copy_is_skipped(self, harness):
        original = write(harness.root / "a.pdf", invoice_text("A-1"))
        harness.run()
        (harness.root / "Archive").mkdir()
        shutil.copy(original, harness.root / "Archive" / "renamed.pdf")

        summary = harness.run()

        assert summary.skipped == 2
        assert harness.store.count() == 1
        assert all(o.state == FileState.SKIPPED_DUPLICATE for o in summary.outcomes)

    def test_identical_files_in_one_batch(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1"))
        write(harness.root / "copy-of-a.pdf", invoice_text("A-1"))

        summary = harness.run()

        assert (summary.added, summary.skipped) == (1, 1)
        assert len(harness.llm.calls) == 1

    def test_skip_history(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1"))
        harness.run()

        outcome = harness.run().outcomes[0]

        assert outcome.history == [
            FileState.DISCOVERED,
            FileState.HASHED,
            FileState.SKIPPED_DUPLICATE,
        ]

    def test_duplicate_error_on_insert_is_a_skip(self, harness):
        """Content that appears between the existence check and the insert is skipped."""
        write(harness.root / "a.pdf", invoice_text("A-1"))
        harness.run()

        with patch.object(harness.store, "exists", return_value=False):
            summary = harness.run()

        assert summary.skipped == 1
        assert summary.failed == 0
        assert summary.outcomes[0].history[-2:] == [
            FileState.PERSISTING,
            FileState.SKIPPED_DUPLICATE,
        ]


class TestFailureIsolation:
    """Tests for per-file failures not affecting the rest of the batch."""

    def test_mixed_batch(self, harness):
        write(harness.root / "1-good.pdf", invoice_text("G-1"))
        write(harness.root / "2-scan.pdf", b"\x00\x01")
        write(harness.root / "3-garbled.pdf", b"Vendor: Mystery\nDate: 2023-01-01\n" * 3)
        write(harness.root / "4-good.pdf", invoice_text("G-2"))

        summary = harness.run()

        states = [o.state for o in summary.outcomes]
        assert states == [
            FileState.PERSISTED,
            FileState.EXTRACTION_FAILED,
            FileState.EXTRACTION_FAILED,
            FileState.PERSISTED,
        ]
        assert (summary.added, summary.failed) == (2, 2)
        assert [o.error_kind for o in summary.outcomes if o.failed] == [
            "UNREADABLE_DOCUMENT",
            "SCHEMA_VALIDATION",
        ]
        assert harness.store.count() == 2
        assert summary.exported

    def test_failures_logged_and_notified(self, harness):
        write(harness.root / "scan.pdf", b"tiny")

        summary = harness.run()

        failures = harness.store.list_failures()
        assert len(failures) == 1
        assert failures[0].stage == "extraction"
        assert failures[0].error_kind == "UNREADABLE_DOCUMENT"
        assert failures[0].content_fingerprint == summary.outcomes[0].fingerprint
        assert len(harness.notifier.of_kind(NotificationKind.FAILURE)) == 1

    def test_only_errors_still_summarized_without_export(self, harness):
        write(harness.root / "scan.pdf", b"tiny")

        summary = harness.run()

        assert not summary.exported
        assert not harness.report.exists()
        assert [n.message for n in harness.notifier.of_kind(NotificationKind.SUMMARY)] == [
            "Added: 0 | Errors: 1"
        ]

    def test_out_of_range_amount_fails_only_that_file(self, harness):
        write(harness.root / "a-huge.pdf", invoice_text("H-1", amount="1e30"))
        write(harness.root / "b-normal.pdf", invoice_text("N-1"))

        summary = harness.run()

        assert (summary.failed, summary.added) == (1, 1)
        assert summary.outcomes[0].state == FileState.EXTRACTION_FAILED
        assert summary.outcomes[0].error_kind == "SCHEMA_VALIDATION"
        assert [r.invoice_number for r in harness.store.list_all()] == ["N-1"]

    def test_out_of_range_rate_fails_only_that_file(self, harness):
        harness.driver.enricher.rate_lookup = lambda currency, iso_date, base: Decimal("1e30")
        write(harness.root / "a-eur.pdf", invoice_text("E-1", amount="100", currency="EUR"))
        write(harness.root / "b-gbp.pdf", invoice_text("G-1"))

        summary = harness.run()

        assert (summary.failed, summary.added) == (1, 1)
        assert summary.outcomes[0].state == FileState.ENRICHMENT_FAILED
        assert harness.store.list_failures()[0].stage == "enrichment"

    def test_unparseable_date_fails_enrichment(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1", invoice_date="the other day"))

        summary = harness.run()

        outcome = summary.outcomes[0]
        assert outcome.state == FileState.ENRICHMENT_FAILED
        assert outcome.error_kind == "SCHEMA_VALIDATION"
        assert harness.store.list_failures()[0].stage == "enrichment"

    def test_unreadable_file(self, harness):
        missing = ScannedDocument(path=harness.root / "vanished.pdf", category=Category.OTHER)

        outcome = harness.driver.process_file(missing)

        assert outcome.state == FileState.READ_FAILED
        assert outcome.fingerprint is None
        assert harness.store.list_failures()[0].error_kind == "READ_ERROR"

    def test_persistence_error_aborts_batch(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1"))
        write(harness.root / "b.pdf", invoice_text("B-1"))

        with patch.object(harness.store, "insert", side_effect=PersistenceError("disk full")):
            with pytest.raises(PersistenceError):
                harness.run()

        assert harness.notifier.of_kind(NotificationKind.SUMMARY) == []


class TestResumability:
    """Tests for picking up where an interrupted or failed run stopped."""

    def test_interrupted_run_resumes(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1"))
        write(harness.root / "b.pdf", invoice_text("B-1"))
        write(harness.root / "c.pdf", invoice_text("C-1"))
        documents = scan(harness.root)

        harness.driver.run(documents[:1])
        summary = harness.driver.run(documents)

        assert (summary.added, summary.skipped) == (2, 1)
        assert sorted(r.invoice_number for r in harness.store.list_all()) == ["A-1", "B-1", "C-1"]

    def test_failed_file_is_retried(self, harness):
        """Nothing is recorded for a failed file, so the next run tries it again."""
        write(harness.root / "a.pdf", invoice_text("A-1"))
        harness.llm.answers["fast"] = None
        first = harness.run()

        harness.llm.answers["fast"] = scripted_model
        second = harness.run()

        assert first.failed == 1
        assert second.added == 1
        assert harness.store.count() == 1


class TestThrottle:
    """Tests for pacing between files."""

    def test_between_files_not_after_last(self, harness):
        for name in ("a", "b", "c"):
            write(harness.root / f"{name}.pdf", invoice_text(name.upper()))

        harness.run()

        assert harness.sleeps == [2.0, 2.0]

    def test_no_pause_after_skips(self, harness):
        write(harness.root / "a.pdf", invoice_text("A-1"))
        write(harness.root / "b.pdf", invoice_text("A-1"))
        write(harness.root / "c.pdf", invoice_text("C-1"))

        harness.run()

        assert harness.sleeps == [2.0]

    def test_pause_after_failures(self, harness):
        write(harness.root / "a.pdf", b"tiny")
        write(harness.root / "b.pdf", invoice_text("B-1"))

        harness.run()

        assert harness.sleeps == [2.0]

    def test_disabled(self, tmp_path, temp_db, plain_extractor, fake_llm):
        harness = Harness(tmp_path, temp_db, plain_extractor, fake_llm, throttle_seconds=0)
        write(harness.root / "a.pdf", invoice_text("A-1"))
        write(harness.root / "b.pdf", invoice_text("B-1"))

        harness.run()

        assert harness.sleeps == []


class TestEmptyBatch:
    def test_nothing_to_do(self, harness):
        summary = harness.run()

        assert summary.scanned == 0
        assert not summary.exported
        assert harness.notifier.sent == []

    def test_progress_logged(self, harness, caplog):
        write(harness.root / "a.pdf", invoice_text("A-1"))
        write(harness.root / "b.pdf", invoice_text("B-1"))

        with caplog.at_level("INFO"):
            harness.run()

        assert "[1/2] a.pdf" in caplog.text
        assert "[2/2] b.pdf (ETA" in caplog.text
