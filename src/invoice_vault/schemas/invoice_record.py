"""
Canonical invoice records (SSOT).

CandidateRecord is what survives validation of the model output.
InvoiceRecord is the ledger's unit of truth; it is created once, when a
file's content is first seen and validated, and never mutated afterwards.
"""

import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from .amounts import compute_base_amount

# Tax year label used only when a date could not be normalized (lenient mode)
UNKNOWN_TAX_YEAR = "Unknown"


class Category(str, Enum):
    """Tax category inferred from the document's folder path."""

    INCOME = "Income"
    EXPENDITURE = "Expenditure"
    OTHER = "Other"


class RateSource(str, Enum):
    """
    Provenance of an exchange rate.

    IDENTITY: Invoice already in base currency, no lookup made
    LOOKUP: Authoritative historical rate (rate service or its cache)
    FALLBACK: Lookup failed, 1:1 assumed
    """

    IDENTITY = "IDENTITY"
    LOOKUP = "LOOKUP"
    FALLBACK = "FALLBACK"


@dataclass(frozen=True)
class CandidateRecord:
    """Validated structured output of the language model."""

    vendor_name: str
    invoice_number: str
    invoice_date: str  # As emitted by the model, normalized during enrichment
    total_amount: Decimal
    currency_code: str  # Uppercased ISO code


@dataclass(frozen=True)
class InvoiceRecord:
    """
    One ingested invoice.

    amount_base is always amount_original × exchange_rate rounded to 2 places;
    tax_year is always derived from invoice_date.
    """

    content_fingerprint: str
    source_path: str
    vendor_name: str
    invoice_number: str
    invoice_date: str  # YYYY-MM-DD
    tax_year: str  # e.g. "2023-2024"
    category: Category
    currency_code: str
    amount_original: Decimal
    exchange_rate: Decimal
    rate_source: RateSource
    amount_base: Decimal
    processed_at: str = ""  # ISO timestamp, assigned by the ledger on insert
    id: int | None = None

    def verify_amount_base(self) -> bool:
        """Check the conversion identity for this record."""
        return self.amount_base == compute_base_amount(self.amount_original, self.exchange_rate)

    @property
    def is_fallback_rate(self) -> bool:
        """True when the stored rate is an assumed 1:1 rather than a real rate."""
        return self.rate_source == RateSource.FALLBACK

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "InvoiceRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            content_fingerprint=row["content_fingerprint"],
            source_path=row["source_path"],
            vendor_name=row["vendor_name"],
            invoice_number=row["invoice_number"],
            invoice_date=row["invoice_date"],
            tax_year=row["tax_year"],
            category=Category(row["category"]),
            currency_code=row["currency_code"],
            amount_original=Decimal(row["amount_original"]),
            exchange_rate=Decimal(row["exchange_rate"]),
            rate_source=RateSource(row["rate_source"]),
            amount_base=Decimal(row["amount_base"]),
            processed_at=row["processed_at"],
        )
