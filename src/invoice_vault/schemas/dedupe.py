"""
Content identity (CRITICAL).

This module defines THE deterministic fingerprint function.
This is the ONLY way to generate ledger dedup keys in the system.

The fingerprint must be:
- Stable: Same bytes always produce the same digest
- Path-independent: Renaming or moving a file does not change it
- Collision-resistant: SHA-256 over the raw file content
"""

import hashlib
from pathlib import Path

# Length of a SHA-256 hex digest
FINGERPRINT_LENGTH = 64

# Read size for hashing files from disk
_CHUNK_SIZE = 1024 * 1024


def compute_file_hash(file_bytes: bytes) -> str:
    """
    Compute SHA256 hash of file bytes.

    Args:
        file_bytes: Raw file content

    Returns:
        64-character lowercase hex string
    """
    return hashlib.sha256(file_bytes).hexdigest()


def compute_path_fingerprint(path: Path | str) -> str:
    """
    Compute the fingerprint of a file on disk, reading it in chunks.

    Produces exactly the same digest as compute_file_hash() over the full
    content. Read errors (OSError) propagate to the caller.

    Args:
        path: File to hash

    Returns:
        64-character lowercase hex string
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def is_valid_fingerprint(value: str | None) -> bool:
    """Check that a value looks like a fingerprint produced by this module."""
    if not value or len(value) != FINGERPRINT_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)
