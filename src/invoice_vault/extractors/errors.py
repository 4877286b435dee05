"""
Per-file extraction errors.

Both are raised by helpers inside the extraction/enrichment stages and
converted into outcome values at the stage boundary; they never abort a batch.
"""


class ExtractionFailure(Exception):
    """Base exception for per-file extraction failures."""

    pass


class UnreadableDocumentError(ExtractionFailure):
    """The document has no usable embedded text (likely an image-only scan)."""

    pass


class SchemaValidationError(ExtractionFailure):
    """Model output is missing, malformed or has wrongly typed required fields."""

    pass
