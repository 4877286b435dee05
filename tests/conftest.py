"""Test fixtures and utilities."""

import io
import json
from decimal import Decimal
from pathlib import Path

import pytest

from invoice_vault.extractors import TextExtractor
from invoice_vault.schemas import (
    CandidateRecord,
    Category,
    InvoiceRecord,
    RateSource,
    compute_base_amount,
    compute_file_hash,
)

# Text layer of a typical UK supplier invoice
SAMPLE_INVOICE_TEXT = """
Acme Cloud Services Ltd
12 Market Street
Manchester M1 1AA

INVOICE
Invoice number: ACME-2023-0412
Invoice date: 5 April 2023

Description                          Qty      Unit        Total
Hosting (March 2023)                   1     40.00        40.00
Support plan                           1      8.00         8.00

                                     Subtotal:          48.00
                                     VAT 20%:            9.60
                                     Total due:     £57.60

Payment within 30 days. Sort code 00-00-00.
"""

SAMPLE_MODEL_OUTPUT = {
    "invoiceNumber": "ACME-2023-0412",
    "date": "2023-04-05",
    "vendorName": "Acme Cloud Services Ltd",
    "totalAmount": 57.60,
    "currency": "GBP",
}


class PlainTextExtractor(TextExtractor):
    """Treats the file bytes as UTF-8 text (stands in for a PDF text layer)."""

    @property
    def name(self) -> str:
        return "plain"

    def extract_text(self, file_bytes: bytes) -> str:
        return file_bytes.decode("utf-8", errors="replace")


class FakeLLMClient:
    """
    Scripted stand-in for OllamaClient.

    answers maps model name → raw content (None simulates an unreachable model).
    A callable answer receives the user message and returns the content.
    """

    def __init__(self, answers: dict, models: list[str] | None = None):
        self.answers = answers
        self._models = models or list(answers)
        self.calls: list[tuple[str, str]] = []

    @property
    def models(self) -> list[str]:
        return self._models

    def complete(self, model, system_prompt, user_message, schema=None):
        self.calls.append((model, user_message))
        answer = self.answers.get(model)
        if callable(answer):
            return answer(user_message)
        return answer


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_ledger.db"


@pytest.fixture
def sample_invoice_text() -> str:
    return SAMPLE_INVOICE_TEXT


@pytest.fixture
def sample_model_output() -> dict:
    """Parsed model answer for SAMPLE_INVOICE_TEXT."""
    return dict(SAMPLE_MODEL_OUTPUT)


@pytest.fixture
def sample_model_json() -> str:
    return json.dumps(SAMPLE_MODEL_OUTPUT)


@pytest.fixture
def sample_candidate() -> CandidateRecord:
    return CandidateRecord(
        vendor_name="Acme Cloud Services Ltd",
        invoice_number="ACME-2023-0412",
        invoice_date="2023-04-05",
        total_amount=Decimal("57.6"),
        currency_code="GBP",
    )


@pytest.fixture
def make_record():
    """Factory for ledger records with a consistent base amount."""

    def _make(
        content: bytes = b"invoice",
        amount: str = "100.00",
        currency: str = "GBP",
        rate: str = "1",
        rate_source: RateSource = RateSource.IDENTITY,
        category: Category = Category.EXPENDITURE,
        invoice_date: str = "2023-04-05",
        tax_year: str = "2022-2023",
        vendor: str = "Acme Cloud Services Ltd",
        invoice_number: str = "ACME-1",
    ) -> InvoiceRecord:
        amount_original = Decimal(amount)
        exchange_rate = Decimal(rate)
        return InvoiceRecord(
            content_fingerprint=compute_file_hash(content),
            source_path=f"/invoices/{invoice_number}.pdf",
            vendor_name=vendor,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            tax_year=tax_year,
            category=category,
            currency_code=currency,
            amount_original=amount_original,
            exchange_rate=exchange_rate,
            rate_source=rate_source,
            amount_base=compute_base_amount(amount_original, exchange_rate),
        )

    return _make


@pytest.fixture
def make_pdf():
    """Build a real single-page PDF with the given text lines (reportlab)."""
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas

    def _make(lines: list[str]) -> bytes:
        buffer = io.BytesIO()
        # invariant=1 keeps the output byte-identical between calls
        pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        y = 800
        for line in lines:
            pdf.drawString(72, y, line)
            y -= 16
        pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    return _make


@pytest.fixture
def plain_extractor() -> PlainTextExtractor:
    return PlainTextExtractor()


@pytest.fixture
def fake_llm():
    """Factory for scripted LLM clients."""
    return FakeLLMClient
