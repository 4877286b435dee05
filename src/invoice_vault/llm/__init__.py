"""LLM module for schema-constrained invoice extraction via Ollama."""

from invoice_vault.llm.prompts import (
    PROMPT_VERSION,
    REQUIRED_FIELDS,
    InvoiceExtractionPrompt,
    invoice_json_schema,
)
from invoice_vault.llm.service import OllamaClient, parse_json_response

__all__ = [
    "PROMPT_VERSION",
    "REQUIRED_FIELDS",
    "InvoiceExtractionPrompt",
    "OllamaClient",
    "invoice_json_schema",
    "parse_json_response",
]
