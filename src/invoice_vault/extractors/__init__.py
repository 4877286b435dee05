"""
Invoice extraction.

Provides:
- TextExtractor: pluggable text layer extraction (pdfplumber by default)
- ExtractionAdapter: bytes → validated candidate record, as a result value
- Error types for unreadable documents and schema violations
"""

from .adapter import (
    ExtractionAdapter,
    ExtractionError,
    ExtractionErrorKind,
    ExtractionOutcome,
    validate_candidate,
)
from .base import TextExtractor
from .errors import ExtractionFailure, SchemaValidationError, UnreadableDocumentError
from .pdf_text import PdfPlumberTextExtractor

__all__ = [
    "ExtractionAdapter",
    "ExtractionError",
    "ExtractionErrorKind",
    "ExtractionFailure",
    "ExtractionOutcome",
    "PdfPlumberTextExtractor",
    "SchemaValidationError",
    "TextExtractor",
    "UnreadableDocumentError",
    "validate_candidate",
]
