"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .amounts import (
    CURRENCY_PRECISION,
    MAX_AMOUNT,
    AmountValidationError,
    compute_base_amount,
    round_currency,
    to_decimal,
    validate_amount,
)
from .dedupe import (
    FINGERPRINT_LENGTH,
    compute_file_hash,
    compute_path_fingerprint,
    is_valid_fingerprint,
)
from .invoice_record import (
    UNKNOWN_TAX_YEAR,
    CandidateRecord,
    Category,
    InvoiceRecord,
    RateSource,
)

__all__ = [
    # Amounts
    "CURRENCY_PRECISION",
    "MAX_AMOUNT",
    "AmountValidationError",
    "compute_base_amount",
    "round_currency",
    "to_decimal",
    "validate_amount",
    # Dedupe
    "FINGERPRINT_LENGTH",
    "compute_file_hash",
    "compute_path_fingerprint",
    "is_valid_fingerprint",
    # Records
    "UNKNOWN_TAX_YEAR",
    "CandidateRecord",
    "Category",
    "InvoiceRecord",
    "RateSource",
]
