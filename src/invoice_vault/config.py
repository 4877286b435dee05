"""
Configuration management (SSOT).

This module defines ALL configuration for the invoice vault pipeline.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- The invoice root directory is the only required setting
- Every tunable of the pipeline (base currency, throttle, text budget) is
  configurable from YAML and overridable from the environment
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigurationError(Exception):
    """Raised when required configuration is missing or inconsistent."""

    pass


def _env_bool(name: str, default: bool) -> bool:
    """Read a true/false environment flag, keeping the default otherwise."""
    value = os.environ.get(name, "").strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return default


@dataclass
class InvoicesConfig:
    """Where invoices come from and where the report goes."""

    # Root folder scanned recursively (required)
    root_dir: Path | None = None
    # File extension of documents to ingest
    extension: str = ".pdf"
    # CSV report, overwritten on every export
    report_path: Path = field(default_factory=lambda: Path("Numbers_Import.csv"))


@dataclass
class LLMConfig:
    """Local LLM (Ollama) configuration.

    - ollama_url: Can be localhost, LAN IP, or remote URL
    - auth_header: Optional auth header for proxied deployments
    - model_fallback: Tried when the fast model fails or returns garbage
    """

    ollama_url: str = "http://localhost:11434"
    auth_header: str | None = None
    model_fast: str = "llama3.2"
    model_fallback: str | None = None
    # Request timeout (seconds); local inference on small machines is slow
    timeout_seconds: int = 120


@dataclass
class RatesConfig:
    """Historical exchange rate service (Frankfurter API)."""

    base_url: str = "https://api.frankfurter.app"
    timeout_seconds: int = 15
    max_retries: int = 3


@dataclass
class PipelineConfig:
    """Per-file processing knobs."""

    # All amounts are normalized into this currency
    base_currency: str = "GBP"
    # Below this many characters the PDF is treated as an image-only scan
    min_text_length: int = 50
    # Only this many leading characters are sent to the model
    text_char_budget: int = 5000
    # Pause between files so local inference is not saturated
    throttle_seconds: float = 2.0
    # Strict: unparseable invoice dates fail the file. Lenient: tax year "Unknown"
    strict_dates: bool = True
    # UK tax year boundary (6 April)
    tax_year_start_month: int = 4
    tax_year_start_day: int = 6


@dataclass
class NotificationConfig:
    """Desktop notifications (best-effort side channel)."""

    enabled: bool = True


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    invoices: InvoicesConfig = field(default_factory=InvoicesConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    rates: RatesConfig = field(default_factory=RatesConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    ledger_db_path: Path = field(default_factory=lambda: Path("data/invoice_vault.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.invoices.root_dir is None or not str(self.invoices.root_dir).strip():
            errors.append("invoices.root_dir is required (or set INVOICE_ROOT_DIR)")

        currency = self.pipeline.base_currency
        if len(currency) != 3 or not currency.isalpha():
            errors.append(f"pipeline.base_currency must be a 3-letter code, got {currency!r}")

        if self.pipeline.min_text_length < 0:
            errors.append("pipeline.min_text_length must be >= 0")
        if self.pipeline.text_char_budget <= 0:
            errors.append("pipeline.text_char_budget must be > 0")
        if self.pipeline.throttle_seconds < 0:
            errors.append("pipeline.throttle_seconds must be >= 0")

        if not 1 <= self.pipeline.tax_year_start_month <= 12:
            errors.append("pipeline.tax_year_start_month must be 1-12")
        if not 1 <= self.pipeline.tax_year_start_day <= 28:
            errors.append("pipeline.tax_year_start_day must be 1-28")

        if not self.llm.ollama_url:
            errors.append("llm.ollama_url is required")
        if not self.llm.model_fast:
            errors.append("llm.model_fast is required")

        return errors

    def require_valid(self) -> None:
        """Raise ConfigurationError listing every problem found by validate()."""
        errors = self.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    A missing file is not an error: defaults and environment variables apply.

    Environment variables can override config values:
    - INVOICE_ROOT_DIR
    - INVOICE_BASE_CURRENCY
    - INVOICE_DB_PATH
    - INVOICE_REPORT_PATH
    - INVOICE_THROTTLE_SECONDS
    - INVOICE_NOTIFICATIONS (true/false)
    - OLLAMA_URL
    - OLLAMA_MODEL (fast model name)
    - OLLAMA_MODEL_FALLBACK (fallback model name)
    - OLLAMA_TIMEOUT (request timeout in seconds)
    - RATES_URL
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Invoices
    invoices_data = data.get("invoices", {})
    root_dir = os.environ.get("INVOICE_ROOT_DIR", invoices_data.get("root_dir"))
    invoices = InvoicesConfig(
        root_dir=Path(root_dir) if root_dir else None,
        extension=invoices_data.get("extension", ".pdf"),
        report_path=Path(
            os.environ.get(
                "INVOICE_REPORT_PATH", invoices_data.get("report_path", "Numbers_Import.csv")
            )
        ),
    )

    # LLM config
    llm_data = data.get("llm", {})
    llm = LLMConfig(
        ollama_url=os.environ.get(
            "OLLAMA_URL", llm_data.get("ollama_url", "http://localhost:11434")
        ),
        auth_header=os.environ.get("OLLAMA_AUTH_HEADER", llm_data.get("auth_header")),
        model_fast=os.environ.get("OLLAMA_MODEL", llm_data.get("model_fast", "llama3.2")),
        model_fallback=os.environ.get("OLLAMA_MODEL_FALLBACK", llm_data.get("model_fallback")),
        timeout_seconds=int(os.environ.get(
            "OLLAMA_TIMEOUT", llm_data.get("timeout_seconds", 120)
        )),
    )

    # Rates config
    rates_data = data.get("rates", {})
    rates = RatesConfig(
        base_url=os.environ.get(
            "RATES_URL", rates_data.get("base_url", "https://api.frankfurter.app")
        ),
        timeout_seconds=rates_data.get("timeout_seconds", 15),
        max_retries=rates_data.get("max_retries", 3),
    )

    # Pipeline config
    pipeline_data = data.get("pipeline", {})
    throttle = pipeline_data.get("throttle_seconds", 2.0)
    throttle_env = os.environ.get("INVOICE_THROTTLE_SECONDS", "")
    if throttle_env:
        try:
            throttle = float(throttle_env)
        except ValueError as e:
            raise ConfigurationError(
                f"INVOICE_THROTTLE_SECONDS must be a number, got {throttle_env!r}"
            ) from e

    pipeline = PipelineConfig(
        base_currency=os.environ.get(
            "INVOICE_BASE_CURRENCY", pipeline_data.get("base_currency", "GBP")
        ).upper(),
        min_text_length=pipeline_data.get("min_text_length", 50),
        text_char_budget=pipeline_data.get("text_char_budget", 5000),
        throttle_seconds=float(throttle),
        strict_dates=pipeline_data.get("strict_dates", True),
        tax_year_start_month=pipeline_data.get("tax_year_start_month", 4),
        tax_year_start_day=pipeline_data.get("tax_year_start_day", 6),
    )

    notifications_data = data.get("notifications", {})
    notifications = NotificationConfig(
        enabled=_env_bool("INVOICE_NOTIFICATIONS", notifications_data.get("enabled", True)),
    )

    ledger_db = os.environ.get(
        "INVOICE_DB_PATH", data.get("ledger_db_path", "data/invoice_vault.db")
    )

    return Config(
        invoices=invoices,
        llm=llm,
        rates=rates,
        pipeline=pipeline,
        notifications=notifications,
        ledger_db_path=Path(ledger_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Invoice Vault Configuration
#
# Every value can also be set through the environment, see load_config().

invoices:
  root_dir: "./Invoices"                   # Scanned recursively (required)
  extension: ".pdf"
  report_path: "Numbers_Import.csv"        # Rewritten after each run that adds records

# Local LLM settings (Ollama)
llm:
  ollama_url: "http://localhost:11434"     # localhost, LAN, or remote
  auth_header: null                        # Optional auth header for proxied deployments
  model_fast: "llama3.2"
  model_fallback: null                     # Tried when the fast model fails
  timeout_seconds: 120

# Historical exchange rates (Frankfurter / ECB reference rates)
rates:
  base_url: "https://api.frankfurter.app"
  timeout_seconds: 15
  max_retries: 3

pipeline:
  base_currency: "GBP"
  min_text_length: 50                      # Less text than this = scanned image, skipped
  text_char_budget: 5000                   # Characters of text sent to the model
  throttle_seconds: 2.0                    # Pause between files
  strict_dates: true                       # false: keep unparseable dates, tax year "Unknown"
  tax_year_start_month: 4
  tax_year_start_day: 6

notifications:
  enabled: true

# Ledger database path
ledger_db_path: "data/invoice_vault.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
