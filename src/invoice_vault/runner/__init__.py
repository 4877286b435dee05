"""
Runner: batch driver and command line interface.
"""

from .batch import BatchDriver, BatchSummary, FileOutcome, FileState

__all__ = [
    "BatchDriver",
    "BatchSummary",
    "FileOutcome",
    "FileState",
]
