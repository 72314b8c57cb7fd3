from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from stocksync.adapters.sqlalchemy.migrations import upgrade_head
from stocksync.app import import_duty_workbook, import_workbook, write_duty_template
from stocksync.config import (
    ConfigurationError,
    configure_logging,
    get_import_config,
    get_loader_credentials,
)
from stocksync.domain.batching import CancellationToken, ImportOutcome

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from stocksync.config import ImportConfig
    from stocksync.domain.batching import ImportReport
    from stocksync.domain.ingest import DutyImportResult

log = logging.getLogger(__name__)

EXIT_CODES: dict[ImportOutcome, int] = {
    ImportOutcome.SUCCESS: 0,
    ImportOutcome.PARTIAL_SUCCESS: 3,
    ImportOutcome.FAILURE: 1,
    ImportOutcome.CANCELLED: 130,
}


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import purchase lines into the inventory store")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    importer = subparsers.add_parser("import", help="Import a workbook")
    importer.add_argument("file", type=Path, help="Workbook to import (.xlsx)")
    importer.add_argument("--sheet", type=str, help="Sheet to read (defaults to the first)")
    importer.add_argument(
        "--batch-size",
        type=int,
        help="Rows per batch (defaults to config)",
    )
    importer.add_argument(
        "--max-retries",
        type=int,
        help="Attempts per batch before it is marked failed (defaults to config)",
    )
    importer.add_argument(
        "--timeout",
        type=float,
        help="Seconds allowed per batch attempt (defaults to config)",
    )
    importer.add_argument(
        "--parallel",
        action="store_true",
        help="Run batches concurrently; only safe when the loader isolates batches",
    )
    importer.add_argument(
        "--no-loader",
        action="store_true",
        help="Skip the legacy loader and only reconcile the store",
    )
    importer.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )

    duty_importer = subparsers.add_parser("duty-import", help="Import an after-hours duty roster")
    duty_importer.add_argument("file", type=Path, help="Roster workbook to import (.xlsx)")
    duty_importer.add_argument("--sheet", type=str, help="Sheet to read (defaults to the first)")
    duty_importer.add_argument("--json", action="store_true", help="Print the result as JSON")

    duty_template = subparsers.add_parser(
        "duty-template", help="Write an empty duty roster workbook to fill in"
    )
    duty_template.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=Path(),
        help="File or directory to write to (defaults to the current directory)",
    )

    subparsers.add_parser("migrate", help="Upgrade the database schema")

    return parser.parse_args(list(argv))


def _import_config(args: argparse.Namespace) -> ImportConfig:
    config = get_import_config()
    overrides: dict[str, object] = {}
    if args.batch_size is not None:
        overrides["batch_size"] = args.batch_size
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    if args.timeout is not None:
        overrides["batch_timeout_seconds"] = args.timeout
    if args.parallel:
        overrides["parallel_batches"] = True
    return replace(config, **overrides) if overrides else config


def _print_report(report: ImportReport | DutyImportResult, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report.to_dict(), indent=2))  # noqa: T201
        return
    print(report.message)  # noqa: T201
    for entry in report.visible_errors:
        print(f"  {entry.describe()}")  # noqa: T201
    if report.hidden_error_count:
        print(f"  ... and {report.hidden_error_count} more errors")  # noqa: T201


def duty_exit_code(result: DutyImportResult) -> int:
    """0 when every row was saved, 3 when some were, 1 when none were."""

    if result.saved_rows == 0:
        return EXIT_CODES[ImportOutcome.FAILURE]
    if result.errors:
        return EXIT_CODES[ImportOutcome.PARTIAL_SUCCESS]
    return EXIT_CODES[ImportOutcome.SUCCESS]


_TOKEN = CancellationToken()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        config = _import_config(parsed_args) if parsed_args.command == "import" else None
        credentials = None
        if parsed_args.command == "import" and not parsed_args.no_loader:
            credentials = get_loader_credentials()
    except ConfigurationError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "migrate":
            upgrade_head()
            log.info("Database schema is up to date")
            return
        if parsed_args.command == "duty-template":
            print(write_duty_template(parsed_args.path))  # noqa: T201
            return
        if parsed_args.command == "duty-import":
            result = import_duty_workbook(parsed_args.file, sheet_name=parsed_args.sheet)
            _print_report(result, as_json=parsed_args.json)
            sys.exit(duty_exit_code(result))
        report = import_workbook(
            parsed_args.file,
            sheet_name=parsed_args.sheet,
            config=config,
            credentials=credentials,
            token=_TOKEN,
        )
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)

    _print_report(report, as_json=parsed_args.json)
    sys.exit(EXIT_CODES[report.outcome])


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Cancel the running import on the first Ctrl+C, exit on the second."""
    if _TOKEN.cancel_requested:
        log.info("Closed by user (Ctrl+C)")
        sys.exit(130)
    log.warning("Cancelling import (Ctrl+C again to quit)")
    _TOKEN.cancel_soon("Import cancelled by user")


def run() -> None:
    _TOKEN.start_relay()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
