"""
Enrichment of validated candidates into ledger records.

Provides:
- Date normalization to YYYY-MM-DD
- UK tax year derivation (6 April boundary, configurable)
- Base-currency conversion with cached, looked-up or fallback rates
"""

from .enricher import (
    DATE_FORMATS,
    Enricher,
    RateLookup,
    compute_tax_year,
    normalize_date,
    parse_invoice_date,
)

__all__ = [
    "DATE_FORMATS",
    "Enricher",
    "RateLookup",
    "compute_tax_year",
    "normalize_date",
    "parse_invoice_date",
]
