"""
Report export.

Provides:
- ReportExporter: full-ledger CSV summary, overwritten on each export
"""

from .csv_report import ReportExporter, report_header, report_row

__all__ = [
    "ReportExporter",
    "report_header",
    "report_row",
]
