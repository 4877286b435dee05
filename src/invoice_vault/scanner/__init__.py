"""
Document scanner.

Walks an invoice root folder and annotates each document with the tax
category implied by its path.
"""

from .document_scanner import ScannedDocument, infer_category, scan

__all__ = [
    "ScannedDocument",
    "infer_category",
    "scan",
]
