"""
Flat CSV summary of the ledger.

The report is regenerated in full from the ledger on every export, so it
always has exactly one row per ledger record.
"""

import csv
import logging
import os
import tempfile
from pathlib import Path

from ..schemas.invoice_record import InvoiceRecord
from ..state_store import LedgerStore

logger = logging.getLogger(__name__)


def report_header(base_currency: str) -> list[str]:
    """Column titles, in fixed order; Rate Source is an audit column at the end."""
    return [
        "Category",
        "Tax Year",
        "Vendor",
        "Invoice #",
        "Date",
        "Amount",
        "Currency",
        "Rate",
        f"Amount ({base_currency})",
        "Rate Source",
    ]


def report_row(record: InvoiceRecord) -> list[str]:
    return [
        record.category.value,
        record.tax_year,
        record.vendor_name,
        record.invoice_number,
        record.invoice_date,
        str(record.amount_original),
        record.currency_code,
        str(record.exchange_rate),
        str(record.amount_base),
        record.rate_source.value,
    ]


class ReportExporter:
    """Writes the whole ledger to a CSV file, replacing any previous report."""

    def __init__(self, store: LedgerStore, output_path: Path | str, base_currency: str = "GBP"):
        self.store = store
        self.output_path = Path(output_path)
        self.base_currency = base_currency.upper()

    def export(self) -> int:
        """
        Regenerate the report. Returns the number of data rows written.

        The file is written next to its destination and renamed into place,
        so an interrupted export never leaves a truncated report.
        """
        records = self.store.list_all()
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.output_path.parent, prefix=f".{self.output_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(report_header(self.base_currency))
                for record in records:
                    writer.writerow(report_row(record))
            os.replace(tmp_name, self.output_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Exported %d records to %s", len(records), self.output_path)
        return len(records)
