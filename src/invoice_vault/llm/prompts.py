"""Prompt templates for invoice extraction.

Prompts are versioned so extraction runs can be traced to the wording used.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# v1.0: Single-shot extraction with schema-constrained output
PROMPT_VERSION = "v1.0"

# Field names the model must emit (JSON keys)
REQUIRED_FIELDS = ("invoiceNumber", "date", "vendorName", "totalAmount", "currency")


def invoice_json_schema() -> dict:
    """JSON schema passed to Ollama's ``format`` parameter."""
    return {
        "type": "object",
        "properties": {
            "invoiceNumber": {
                "type": "string",
                "description": "The unique reference number of the invoice",
            },
            "date": {
                "type": "string",
                "description": "The date of the invoice in YYYY-MM-DD format",
            },
            "vendorName": {
                "type": "string",
                "description": "The name of the company issuing the invoice",
            },
            "totalAmount": {
                "type": "number",
                "description": "The final total amount due, as a number",
            },
            "currency": {
                "type": "string",
                "description": "ISO 4217 currency code of the total, e.g. GBP, EUR, USD",
            },
        },
        "required": list(REQUIRED_FIELDS),
    }


@dataclass
class InvoiceExtractionPrompt:
    """Prompt template for structured invoice extraction.

    Attributes:
        version: Prompt version for traceability.
        system_prompt: System message setting LLM behavior.
        user_template: Template for user message with placeholders.
    """

    version: str = PROMPT_VERSION

    system_prompt: str = """You are an invoice data extraction assistant.
Read the invoice text and return the requested fields.

Rules:
1. Use the invoice issue date, formatted as YYYY-MM-DD
2. totalAmount is the final total due, as a plain number without currency symbols
3. currency is the 3-letter ISO code of that total (a "£" total is GBP)
4. vendorName is the company that issued the invoice, not the customer
5. Respond with a single JSON object and nothing else"""

    user_template: str = """Extract data from this invoice:

{text}"""

    schema: dict = field(default_factory=invoice_json_schema)

    def format_user_message(self, text: str) -> str:
        """Format the user message with the (already truncated) document text."""
        return self.user_template.format(text=text)
