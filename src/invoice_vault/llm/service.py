"""Ollama client for schema-constrained invoice extraction.

Features:
- Ollama integration with configurable models (localhost, LAN, or remote)
- JSON-schema constrained output via the ``format`` parameter
- Robust cleanup of model output (code fences, surrounding prose)

Privacy Constraints (non-negotiable):
- Never log prompts or raw document content at INFO level
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from invoice_vault.config import LLMConfig

logger = logging.getLogger(__name__)


class OllamaClient:
    """Thin synchronous client for Ollama's ``/api/chat`` endpoint.

    Transport failures are logged and reported as ``None`` so callers can
    cascade to another model; they never raise.
    """

    def __init__(self, llm_config: LLMConfig) -> None:
        """Initialize the client.

        Args:
            llm_config: LLM section of the application configuration.
        """
        self.llm_config = llm_config

        # Support formats: "Bearer token" or "Custom-Header: value"
        headers = {}
        if llm_config.auth_header:
            if ":" in llm_config.auth_header:
                key, value = llm_config.auth_header.split(":", 1)
                headers[key.strip()] = value.strip()
            else:
                headers["Authorization"] = llm_config.auth_header

        self._client = httpx.Client(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(llm_config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=headers,
        )

    @property
    def models(self) -> list[str]:
        """Models in cascade order (fast first, fallback second)."""
        models = [self.llm_config.model_fast]
        fallback = self.llm_config.model_fallback
        if fallback and fallback != self.llm_config.model_fast:
            models.append(fallback)
        return models

    def complete(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        schema: dict | None = None,
    ) -> str | None:
        """Run one non-streaming chat completion.

        Args:
            model: Model name (e.g., "llama3.2").
            system_prompt: System message.
            user_message: User message.
            schema: JSON schema constraining the output; plain JSON mode if None.

        Returns:
            Raw message content, or None on transport/API failure.
        """
        url = f"{self.llm_config.ollama_url.rstrip('/')}/api/chat"
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "stream": False,
            "format": schema if schema is not None else "json",
            "options": {"temperature": 0},
        }

        logger.debug("Calling Ollama model %s at %s", model, self.llm_config.ollama_url)

        try:
            response = self._client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            logger.warning("Ollama request timed out after %ds", self.llm_config.timeout_seconds)
            return None
        except httpx.HTTPStatusError as e:
            logger.error(
                "Ollama API error %s for model '%s' at %s",
                e.response.status_code,
                model,
                self.llm_config.ollama_url,
            )
            return None
        except httpx.RequestError as e:
            logger.error("Ollama request failed: %s (URL: %s)", e, self.llm_config.ollama_url)
            return None
        except ValueError as e:
            logger.error("Ollama returned a non-JSON body: %s", e)
            return None

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            logger.error("Ollama response for model '%s' has no message content", model)
            return None

        logger.debug("Ollama %s returned %d chars", model, len(content))
        return content

    def close(self) -> None:
        """Close HTTP client."""
        self._client.close()

    def __enter__(self) -> OllamaClient:
        """Enter context manager."""
        return self

    def __exit__(self, *args) -> None:
        """Exit context manager."""
        self.close()


def parse_json_response(content: str) -> dict:
    """Parse a JSON object from model output.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Leading/trailing whitespace
    - A JSON object embedded in surrounding prose

    Unlike a lenient key scraper, this never invents fields: anything that is
    not a JSON object raises.

    Args:
        content: Raw LLM response content.

    Returns:
        Parsed JSON dict.

    Raises:
        json.JSONDecodeError: If no JSON object can be parsed.
    """
    if not content or not content.strip():
        raise json.JSONDecodeError("Empty response", content or "", 0)

    content = content.strip()

    # Remove markdown code blocks
    fence = re.match(r"^```(?:json|JSON)?\s*(.*?)\s*```$", content, re.DOTALL)
    if fence:
        content = fence.group(1).strip()

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        # Outermost {...} block inside prose
        start = content.find("{")
        end = content.rfind("}")
        if start == -1 or end <= start:
            raise
        parsed = json.loads(content[start : end + 1])

    if not isinstance(parsed, dict):
        raise json.JSONDecodeError(
            f"Expected a JSON object, got {type(parsed).__name__}", content, 0
        )
    return parsed
