"""
CLI main entry point.
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from ..config import Config, ConfigurationError, create_default_config, load_config
from ..enrichment import Enricher
from ..export import ReportExporter
from ..extractors import ExtractionAdapter, PdfPlumberTextExtractor
from ..llm import OllamaClient
from ..notifications import DesktopNotifier, Notifier, NullNotifier
from ..rates_client import RatesClient
from ..scanner import scan
from ..state_store import LedgerStore, PersistenceError
from .batch import BatchDriver

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="invoice-vault",
        description="Ingest PDF invoices into a deduplicated ledger and export a tax summary",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # run command
    run_parser = subparsers.add_parser("run", help="Scan the invoice folder and ingest new files")
    run_parser.add_argument(
        "--root",
        type=Path,
        help="Invoice root folder (overrides invoices.root_dir)",
    )
    run_parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Disable desktop notifications",
    )
    run_parser.add_argument(
        "--throttle",
        type=float,
        help="Seconds to pause between files (overrides pipeline.throttle_seconds)",
    )

    # export command
    export_parser = subparsers.add_parser("export", help="Rewrite the CSV report from the ledger")
    export_parser.add_argument(
        "--output",
        type=Path,
        help="Report path (overrides invoices.report_path)",
    )

    # status command
    subparsers.add_parser("status", help="Show ledger statistics")

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    return parser


def build_notifier(config: Config) -> Notifier:
    if config.notifications.enabled:
        return DesktopNotifier()
    return NullNotifier()


def cmd_run(config: Config) -> int:
    """Run one ingestion batch over the invoice root folder."""
    config.require_valid()

    store = LedgerStore(config.ledger_db_path)
    pipeline = config.pipeline

    rates = RatesClient(
        base_url=config.rates.base_url,
        timeout=config.rates.timeout_seconds,
        max_retries=config.rates.max_retries,
    )
    enricher = Enricher(
        rate_lookup=rates.get_rate,
        base_currency=pipeline.base_currency,
        store=store,
        strict_dates=pipeline.strict_dates,
        tax_year_start_month=pipeline.tax_year_start_month,
        tax_year_start_day=pipeline.tax_year_start_day,
    )
    exporter = ReportExporter(store, config.invoices.report_path, pipeline.base_currency)

    documents = scan(config.invoices.root_dir, config.invoices.extension)
    if not documents:
        print(f"No documents found under {config.invoices.root_dir}")
        rates.close()
        return EXIT_OK

    with OllamaClient(config.llm) as llm:
        adapter = ExtractionAdapter(
            text_extractor=PdfPlumberTextExtractor(),
            llm_client=llm,
            min_text_length=pipeline.min_text_length,
            text_char_budget=pipeline.text_char_budget,
        )
        driver = BatchDriver(
            store=store,
            adapter=adapter,
            enricher=enricher,
            exporter=exporter,
            notifier=build_notifier(config),
            throttle_seconds=pipeline.throttle_seconds,
        )
        try:
            summary = driver.run(documents)
        finally:
            rates.close()

    print(f"\n✓ Scanned: {summary.scanned}")
    print(f"  Added:   {summary.added}")
    print(f"  Skipped: {summary.skipped}")
    print(f"  Failed:  {summary.failed}")
    if summary.exported:
        print(f"  Report:  {config.invoices.report_path}")
    return EXIT_OK


def cmd_export(config: Config) -> int:
    """Rewrite the report from the ledger."""
    store = LedgerStore(config.ledger_db_path)
    exporter = ReportExporter(store, config.invoices.report_path, config.pipeline.base_currency)
    rows = exporter.export()
    print(f"✓ Exported {rows} records to {config.invoices.report_path}")
    return EXIT_OK


def cmd_status(config: Config) -> int:
    """Show ledger status."""
    store = LedgerStore(config.ledger_db_path)
    stats = store.get_stats()

    print("\n📊 Ledger Status")
    print("=" * 40)
    print(f"  Invoices:               {stats['invoices_total']}")
    for category, count in stats["by_category"].items():
        print(f"    {category:<20} {count}")
    for tax_year, count in stats["by_tax_year"].items():
        print(f"    Tax year {tax_year:<11} {count}")
    print(f"  Fallback (1:1) rates:   {stats['fallback_rates']}")
    print(f"  Failures logged:        {stats['failures_logged']}")
    print()

    return EXIT_OK


def cmd_init_config(config_path: Path) -> int:
    """Write a default config file unless one exists."""
    if config_path.exists():
        print(f"Config already exists: {config_path}")
        return EXIT_FAILURE
    create_default_config(config_path)
    print(f"✓ Wrote {config_path}")
    return EXIT_OK


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return EXIT_FAILURE

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
    except (ConfigurationError, ValueError) as e:
        print(f"❌ Invalid configuration: {e}")
        return EXIT_CONFIG
    except (OSError, yaml.YAMLError) as e:
        print(f"❌ Failed to load config: {e}")
        return EXIT_FAILURE

    # Command-line overrides
    if parsed.command == "run":
        if parsed.root is not None:
            config.invoices.root_dir = parsed.root
        if parsed.no_notify:
            config.notifications.enabled = False
        if parsed.throttle is not None:
            config.pipeline.throttle_seconds = parsed.throttle
    elif parsed.command == "export" and parsed.output is not None:
        config.invoices.report_path = parsed.output

    # Route to command
    try:
        if parsed.command == "run":
            return cmd_run(config)
        elif parsed.command == "export":
            return cmd_export(config)
        elif parsed.command == "status":
            return cmd_status(config)
        else:
            parser.print_help()
            return EXIT_FAILURE
    except ConfigurationError as e:
        print(f"❌ Invalid configuration: {e}")
        return EXIT_CONFIG
    except PersistenceError as e:
        logger.error("Ledger unavailable, batch aborted: %s", e)
        print(f"❌ Ledger error: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
