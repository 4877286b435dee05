"""
Extraction adapter: raw document bytes → validated CandidateRecord.

Wraps the two external calls (text extraction and the language model)
behind one function whose result is a value, never an exception:

    extract(file_bytes) -> ExtractionOutcome(candidate | error)
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..llm.prompts import REQUIRED_FIELDS, InvoiceExtractionPrompt
from ..llm.service import parse_json_response
from ..schemas.amounts import AmountValidationError, validate_amount
from ..schemas.invoice_record import CandidateRecord
from .errors import SchemaValidationError, UnreadableDocumentError

if TYPE_CHECKING:
    from ..llm.service import OllamaClient
    from .base import TextExtractor

logger = logging.getLogger(__name__)

_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")


class ExtractionErrorKind(str, Enum):
    """Why a document could not be turned into a candidate record."""

    UNREADABLE_DOCUMENT = "UNREADABLE_DOCUMENT"
    SCHEMA_VALIDATION = "SCHEMA_VALIDATION"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"


@dataclass(frozen=True)
class ExtractionError:
    """Tagged failure variant of an extraction outcome."""

    kind: ExtractionErrorKind
    message: str


@dataclass(frozen=True)
class ExtractionOutcome:
    """Result of one extraction: exactly one of candidate / error is set."""

    candidate: CandidateRecord | None = None
    error: ExtractionError | None = None
    model: str | None = None

    @property
    def ok(self) -> bool:
        return self.candidate is not None

    @classmethod
    def success(cls, candidate: CandidateRecord, model: str | None = None) -> ExtractionOutcome:
        return cls(candidate=candidate, model=model)

    @classmethod
    def failure(cls, kind: ExtractionErrorKind, message: str) -> ExtractionOutcome:
        return cls(error=ExtractionError(kind=kind, message=message))


def _require_string(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise SchemaValidationError(
            f"{key}: expected a string, got {type(value).__name__ if value is not None else 'nothing'}"
        )
    value = value.strip()
    if not value:
        raise SchemaValidationError(f"{key}: must not be empty")
    return value


def validate_candidate(data: dict[str, Any]) -> CandidateRecord:
    """
    Validate parsed model output against the invoice schema.

    Nothing is defaulted: a missing key, a wrong type or an empty string is
    a SchemaValidationError.

    Args:
        data: Parsed JSON object

    Returns:
        CandidateRecord with trimmed strings and an uppercased currency

    Raises:
        SchemaValidationError: On the first violation found
    """
    missing = [key for key in REQUIRED_FIELDS if key not in data]
    if missing:
        raise SchemaValidationError(f"Missing required field(s): {', '.join(missing)}")

    invoice_number = _require_string(data, "invoiceNumber")
    invoice_date = _require_string(data, "date")
    vendor_name = _require_string(data, "vendorName")
    currency = _require_string(data, "currency")

    if not _CURRENCY_RE.match(currency):
        raise SchemaValidationError(f"currency: expected a 3-letter code, got {currency!r}")

    raw_amount = data["totalAmount"]
    if isinstance(raw_amount, bool) or not isinstance(raw_amount, (int, float)):
        raise SchemaValidationError(
            f"totalAmount: expected a number, got {type(raw_amount).__name__}"
        )
    try:
        total = validate_amount(raw_amount, field_name="totalAmount")
    except AmountValidationError as e:
        raise SchemaValidationError(str(e)) from e

    return CandidateRecord(
        vendor_name=vendor_name,
        invoice_number=invoice_number,
        invoice_date=invoice_date,
        total_amount=total,
        currency_code=currency.upper(),
    )


class ExtractionAdapter:
    """
    Turns a document into a validated candidate record.

    Steps:
    1. Text layer via the TextExtractor; too little text fails fast
       (no model call for image-only scans)
    2. Truncate to the character budget
    3. Ask each model in cascade order; a transport failure or an invalid
       answer moves on to the next model
    """

    def __init__(
        self,
        text_extractor: TextExtractor,
        llm_client: OllamaClient,
        min_text_length: int = 50,
        text_char_budget: int = 5000,
        prompt: InvoiceExtractionPrompt | None = None,
    ) -> None:
        self.text_extractor = text_extractor
        self.llm_client = llm_client
        self.min_text_length = min_text_length
        self.text_char_budget = text_char_budget
        self.prompt = prompt or InvoiceExtractionPrompt()

    def read_text(self, file_bytes: bytes) -> str:
        """Extract and truncate document text.

        Raises:
            UnreadableDocumentError: If the document has no meaningful text
        """
        text = self.text_extractor.extract_text(file_bytes)
        meaningful = text.strip()
        if len(meaningful) < self.min_text_length:
            raise UnreadableDocumentError(
                f"Only {len(meaningful)} characters of text found "
                f"(minimum {self.min_text_length}); document is probably a scanned image"
            )
        if len(meaningful) > self.text_char_budget:
            logger.debug(
                "Truncating document text from %d to %d chars",
                len(meaningful),
                self.text_char_budget,
            )
        return meaningful[: self.text_char_budget]

    def extract(self, file_bytes: bytes) -> ExtractionOutcome:
        """Run text extraction, the model cascade and schema validation."""
        try:
            text = self.read_text(file_bytes)
        except UnreadableDocumentError as e:
            return ExtractionOutcome.failure(ExtractionErrorKind.UNREADABLE_DOCUMENT, str(e))

        user_message = self.prompt.format_user_message(text)
        last_validation_error: str | None = None

        for model in self.llm_client.models:
            content = self.llm_client.complete(
                model=model,
                system_prompt=self.prompt.system_prompt,
                user_message=user_message,
                schema=self.prompt.schema,
            )
            if content is None:
                logger.info("Model %s unavailable, trying next model", model)
                continue

            try:
                candidate = validate_candidate(parse_json_response(content))
            except json.JSONDecodeError as e:
                last_validation_error = f"Model {model} returned malformed JSON: {e.msg}"
            except SchemaValidationError as e:
                last_validation_error = f"Model {model} output failed validation: {e}"
            else:
                return ExtractionOutcome.success(candidate, model=model)

            logger.warning(last_validation_error)

        if last_validation_error is not None:
            return ExtractionOutcome.failure(
                ExtractionErrorKind.SCHEMA_VALIDATION, last_validation_error
            )
        return ExtractionOutcome.failure(
            ExtractionErrorKind.MODEL_UNAVAILABLE,
            f"No model answered ({', '.join(self.llm_client.models)})",
        )
