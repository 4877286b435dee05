"""
Record enrichment: canonical date, UK tax year and base-currency amount.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..extractors.errors import SchemaValidationError
from ..rates_client import RateLookupError
from ..schemas.amounts import compute_base_amount
from ..schemas.invoice_record import (
    UNKNOWN_TAX_YEAR,
    CandidateRecord,
    Category,
    InvoiceRecord,
    RateSource,
)

if TYPE_CHECKING:
    from ..state_store import LedgerStore

logger = logging.getLogger(__name__)

# (currency, iso_date, base_currency) -> rate, raising RateLookupError
RateLookup = Callable[[str, str, str], Decimal]

# Numeric forms are read day-first (UK invoices)
DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%d-%m-%Y",
    "%d/%m/%y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
]

# "2023-04-05T10:00:00Z" / "2023-04-05 10:00"
_ISO_WITH_TIME = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]")
# "5th April 2023" -> "5 April 2023"
_ORDINAL_SUFFIX = re.compile(r"\b(\d{1,2})(st|nd|rd|th)\b", re.IGNORECASE)


def parse_invoice_date(date_str: str) -> Optional[date]:
    """
    Parse a model-emitted date string.

    Returns:
        The date, or None when no supported format matches
    """
    if not date_str:
        return None

    value = date_str.strip()
    match = _ISO_WITH_TIME.match(value)
    if match:
        value = match.group(1)
    value = _ORDINAL_SUFFIX.sub(r"\1", value)
    value = " ".join(value.split())

    for date_format in DATE_FORMATS:
        try:
            return datetime.strptime(value, date_format).date()
        except ValueError:
            continue
    return None


def normalize_date(date_str: str) -> Optional[str]:
    """Canonical YYYY-MM-DD form of a date string, or None if unparseable."""
    parsed = parse_invoice_date(date_str)
    return parsed.strftime("%Y-%m-%d") if parsed else None


def compute_tax_year(invoice_date: date, start_month: int = 4, start_day: int = 6) -> str:
    """
    Tax year label for a date.

    The year starts on start_day/start_month (UK: 6 April). A date on or
    after the boundary in year Y belongs to "Y-(Y+1)", earlier dates to
    "(Y-1)-Y".

    Examples:
        >>> compute_tax_year(date(2023, 4, 5))
        '2022-2023'
        >>> compute_tax_year(date(2023, 4, 6))
        '2023-2024'
    """
    year = invoice_date.year
    boundary = date(year, start_month, start_day)
    if invoice_date >= boundary:
        return f"{year}-{year + 1}"
    return f"{year - 1}-{year}"


class Enricher:
    """
    Turns a validated candidate into a ledger record.

    Conversion order for foreign currencies:
    1. Rate cache in the ledger (authoritative, LOOKUP)
    2. Rate service (authoritative, LOOKUP; cached on success)
    3. 1:1 fallback (FALLBACK), never cached
    """

    def __init__(
        self,
        rate_lookup: RateLookup,
        base_currency: str = "GBP",
        store: LedgerStore | None = None,
        strict_dates: bool = True,
        tax_year_start_month: int = 4,
        tax_year_start_day: int = 6,
    ) -> None:
        self.rate_lookup = rate_lookup
        self.base_currency = base_currency.upper()
        self.store = store
        self.strict_dates = strict_dates
        self.tax_year_start_month = tax_year_start_month
        self.tax_year_start_day = tax_year_start_day

    def resolve_rate(self, currency: str, iso_date: str) -> tuple[Decimal, RateSource]:
        """Exchange rate into the base currency and where it came from."""
        currency = currency.upper()
        if currency == self.base_currency:
            return Decimal("1"), RateSource.IDENTITY

        if self.store is not None:
            cached = self.store.get_cached_rate(currency, self.base_currency, iso_date)
            if cached is not None:
                logger.debug("Rate cache hit for %s on %s", currency, iso_date)
                return cached, RateSource.LOOKUP

        try:
            rate = self.rate_lookup(currency, iso_date, self.base_currency)
        except RateLookupError as e:
            logger.warning(
                "Rate lookup failed for %s->%s on %s, assuming 1:1: %s",
                currency,
                self.base_currency,
                iso_date,
                e,
            )
            return Decimal("1"), RateSource.FALLBACK

        if self.store is not None:
            self.store.set_cached_rate(currency, self.base_currency, iso_date, rate)
        return rate, RateSource.LOOKUP

    def enrich(
        self,
        candidate: CandidateRecord,
        *,
        fingerprint: str,
        source_path: Path | str,
        category: Category,
    ) -> InvoiceRecord:
        """
        Build the ledger record for a candidate.

        Raises:
            SchemaValidationError: Unparseable date in strict mode, or an amount
                that cannot be converted at the resolved rate
            PersistenceError: Rate cache unavailable
        """
        parsed = parse_invoice_date(candidate.invoice_date)

        if parsed is not None:
            invoice_date = parsed.strftime("%Y-%m-%d")
            tax_year = compute_tax_year(
                parsed, self.tax_year_start_month, self.tax_year_start_day
            )
            rate, rate_source = self.resolve_rate(candidate.currency_code, invoice_date)
        elif self.strict_dates:
            raise SchemaValidationError(f"date: unparseable value {candidate.invoice_date!r}")
        else:
            logger.warning(
                "Keeping unparseable date %r for %s, tax year set to %s",
                candidate.invoice_date,
                source_path,
                UNKNOWN_TAX_YEAR,
            )
            invoice_date = candidate.invoice_date
            tax_year = UNKNOWN_TAX_YEAR
            if candidate.currency_code == self.base_currency:
                rate, rate_source = Decimal("1"), RateSource.IDENTITY
            else:
                # No date, no historical rate
                rate, rate_source = Decimal("1"), RateSource.FALLBACK

        try:
            amount_base = compute_base_amount(candidate.total_amount, rate)
        except ArithmeticError as e:
            raise SchemaValidationError(
                f"totalAmount: cannot convert {candidate.total_amount} at rate {rate}"
            ) from e

        return InvoiceRecord(
            content_fingerprint=fingerprint,
            source_path=str(source_path),
            vendor_name=candidate.vendor_name,
            invoice_number=candidate.invoice_number,
            invoice_date=invoice_date,
            tax_year=tax_year,
            category=category,
            currency_code=candidate.currency_code.upper(),
            amount_original=candidate.total_amount,
            exchange_rate=rate,
            rate_source=rate_source,
            amount_base=amount_base,
        )
