"""
PDF text layer extraction using pdfplumber.
"""

import io
import logging

import pdfplumber

from .base import TextExtractor
from .errors import UnreadableDocumentError

logger = logging.getLogger(__name__)


class PdfPlumberTextExtractor(TextExtractor):
    """Extract embedded text from every page of a PDF."""

    @property
    def name(self) -> str:
        return "pdfplumber"

    def extract_text(self, file_bytes: bytes) -> str:
        text_parts = []
        try:
            with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if page_text:
                        text_parts.append(page_text)
        except Exception as e:
            # pdfminer raises a wide range of parser errors for damaged files
            raise UnreadableDocumentError(f"Could not parse PDF: {e}") from e

        text = "\n".join(text_parts)
        logger.debug("pdfplumber extracted %d chars", len(text))
        return text
