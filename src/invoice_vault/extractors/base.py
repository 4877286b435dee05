"""
Base text extractor interface.
"""

from abc import ABC, abstractmethod


class TextExtractor(ABC):
    """
    Turns raw document bytes into plain text.

    Implementations raise UnreadableDocumentError when the bytes cannot be
    parsed at all; returning an empty string is allowed for documents that
    parse but carry no text layer.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor name for logging and provenance."""
        pass

    @abstractmethod
    def extract_text(self, file_bytes: bytes) -> str:
        """
        Extract the text layer of a document.

        Args:
            file_bytes: Original file bytes

        Returns:
            Extracted text, possibly empty
        """
        pass
