"""
Recursive document discovery.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from ..schemas.invoice_record import Category

logger = logging.getLogger(__name__)

# Checked in order; the first marker found anywhere in the path wins
CATEGORY_MARKERS: list[tuple[str, Category]] = [
    ("income", Category.INCOME),
    ("expenditure", Category.EXPENDITURE),
]


@dataclass(frozen=True)
class ScannedDocument:
    """A candidate document found on disk."""

    path: Path
    category: Category


def infer_category(path: Path | str) -> Category:
    """Classify a document by a case-insensitive substring test on its full path."""
    lowered = str(path).lower()
    for marker, category in CATEGORY_MARKERS:
        if marker in lowered:
            return category
    return Category.OTHER


def scan(root_dir: Path | str, extension: str = ".pdf") -> list[ScannedDocument]:
    """
    Find every file below root_dir whose name ends with extension.

    A missing root is a normal "nothing to do" condition and yields an empty
    list. Entries are sorted within each directory so repeated runs over an
    unchanged tree see the same order.

    Args:
        root_dir: Folder to walk recursively
        extension: Target extension, matched case-insensitively

    Returns:
        Documents in traversal order
    """
    root = Path(root_dir)
    if not root.is_dir():
        logger.info("Invoice root %s does not exist, nothing to scan", root)
        return []

    suffix = extension.lower()
    results: list[ScannedDocument] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            if not name.lower().endswith(suffix):
                continue
            path = (Path(dirpath) / name).resolve()
            results.append(ScannedDocument(path=path, category=infer_category(path)))

    logger.debug("Scanned %s: %d document(s)", root, len(results))
    return results
