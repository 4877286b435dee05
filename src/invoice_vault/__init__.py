"""
PDF invoices → LLM extraction → Enrichment → Append-only ledger → CSV report

An idempotent batch pipeline that ingests a folder tree of invoices exactly
once per unique file content, normalizes totals to a base currency and
classifies each record by category and UK tax year.
"""

__version__ = "0.1.0"
