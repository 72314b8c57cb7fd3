"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from logging import getLogger
from typing import TYPE_CHECKING

from stocksync.adapters.loader import CommandLineLoader
from stocksync.adapters.spreadsheet import read_rows, write_rows
from stocksync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyDutyUnitOfWork,
    SqlAlchemyImportUnitOfWork,
    is_started,
    startup,
)
from stocksync.config import (
    get_import_config,
    get_loader_config,
    get_storage_config,
    get_upload_config,
)
from stocksync.domain.batching import BatchOrchestrator, ThreadedBatchProcessor, failed_report
from stocksync.domain.errors import (
    ErrorEntry,
    ErrorKind,
    InputFileError,
    PersistenceError,
    RowValidationError,
)
from stocksync.domain.ingest import (
    DUTY_SHEET_NAME,
    DUTY_TEMPLATE_FILENAME,
    DutyImportResult,
    duty_header,
    duty_template_rows,
    parse_duty_rows,
)
from stocksync.domain.ports.unit_of_work import DutyUnitOfWork, ImportUnitOfWork
from stocksync.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from datetime import date
    from pathlib import Path

    from stocksync.config import ImportConfig, LoaderConfig, LoaderCredentials, UploadConfig
    from stocksync.domain.batching import CancellationToken, ImportReport
    from stocksync.domain.model import AfterHoursDuty
    from stocksync.domain.ports import ExternalProcessingStep, TabularReader, TabularWriter

UnitOfWorkFactory = Callable[[], ImportUnitOfWork]
DutyUnitOfWorkFactory = Callable[[], DutyUnitOfWork]
ActivityLog = Callable[[str, str], None]

log = getLogger(__name__)


def validate_upload(path: Path, config: UploadConfig | None = None) -> None:
    """Reject files with the wrong extension or size before any work is done."""

    config = config or get_upload_config()
    if path.suffix.lower() not in config.allowed_extensions:
        allowed = ", ".join(config.allowed_extensions)
        raise InputFileError(f"Unsupported file type {path.suffix or '(none)'}; expected {allowed}")
    if not path.is_file():
        raise InputFileError(f"File not found: {path}")
    size = path.stat().st_size
    if size == 0:
        raise InputFileError(f"File {path.name} is empty")
    if size > config.max_file_size_bytes:
        raise InputFileError(
            f"File {path.name} exceeds the {config.max_file_size_mb} MB upload limit"
        )


def build_loader(
    credentials: LoaderCredentials,
    *,
    config: LoaderConfig | None = None,
    work_dir: Path | None = None,
) -> CommandLineLoader:
    return CommandLineLoader(
        config or get_loader_config(),
        credentials,
        work_dir=work_dir or get_storage_config().work_dir(),
    )


def import_workbook(
    path: Path,
    *,
    sheet_name: str | None = None,
    config: ImportConfig | None = None,
    upload_config: UploadConfig | None = None,
    credentials: LoaderCredentials | None = None,
    external_step: ExternalProcessingStep | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    reader: TabularReader = read_rows,
    token: CancellationToken | None = None,
    activity_log: ActivityLog | None = None,
) -> ImportReport:
    """Import one workbook and return its report.

    Without an explicit ``external_step``, the legacy loader runs only when
    ``credentials`` are given. File problems become a failed report.
    """

    config = config or get_import_config()
    log.info("Starting import of %s", path.name)
    try:
        validate_upload(path, upload_config)
        rows = reader(path, sheet_name=sheet_name)
    except InputFileError as exc:
        log.error("Rejected %s: %s", path.name, exc)
        report = failed_report(
            str(exc), errors=[ErrorEntry(kind=ErrorKind.VALIDATION, message=str(exc))]
        )
    else:
        if unit_of_work_factory is None:
            if not is_started():
                startup()
            unit_of_work_factory = SqlAlchemyImportUnitOfWork
        if external_step is None and credentials is not None:
            external_step = build_loader(credentials)

        engine = ReconciliationEngine(
            unit_of_work_factory, external_step=external_step, created_by=config.created_by
        )
        orchestrator = BatchOrchestrator(ThreadedBatchProcessor(engine), config)
        report = asyncio.run(orchestrator.run_import(rows, token=token))

    if activity_log is not None:
        activity_log(path.name, report.message)
    log.info("Finished import of %s: %s", path.name, report.message)
    return report


def import_duty_workbook(
    path: Path,
    *,
    sheet_name: str | None = None,
    upload_config: UploadConfig | None = None,
    unit_of_work_factory: DutyUnitOfWorkFactory | None = None,
    reader: TabularReader = read_rows,
    error_display_limit: int | None = None,
    activity_log: ActivityLog | None = None,
) -> DutyImportResult:
    """Import an after-hours duty roster; valid rows are saved in one transaction.

    File, header and persistence problems are reported in the result, never raised.
    """

    if error_display_limit is None:
        error_display_limit = get_import_config().error_display_limit
    log.info("Starting duty roster import of %s", path.name)
    try:
        validate_upload(path, upload_config)
        parsed = parse_duty_rows(reader(path, sheet_name=sheet_name))
    except InputFileError as exc:
        log.error("Rejected %s: %s", path.name, exc)
        result = DutyImportResult(
            total_rows=0,
            valid_rows=0,
            saved_rows=0,
            errors=(ErrorEntry(kind=exc.kind, message=str(exc)),),
            error_display_limit=error_display_limit,
        )
    except RowValidationError as exc:
        log.error("Rejected %s: %s", path.name, exc)
        result = DutyImportResult(
            total_rows=0,
            valid_rows=0,
            saved_rows=0,
            errors=tuple(exc.entries()),
            error_display_limit=error_display_limit,
        )
    else:
        errors = [entry for rejected in parsed.rejected for entry in rejected.entries()]
        saved_rows = 0
        if parsed.duties:
            try:
                _save_duties(parsed.duties, unit_of_work_factory)
            except PersistenceError as exc:
                log.error("Saving duty roster %s failed: %s", path.name, exc)
                errors.append(ErrorEntry(kind=exc.kind, message=str(exc)))
            else:
                saved_rows = parsed.valid_rows
        result = DutyImportResult(
            total_rows=parsed.total_rows,
            valid_rows=parsed.valid_rows,
            saved_rows=saved_rows,
            errors=tuple(errors),
            error_display_limit=error_display_limit,
        )

    if activity_log is not None:
        activity_log(path.name, result.message)
    log.info("Finished duty roster import of %s: %s", path.name, result.message)
    return result


def _save_duties(
    duties: list[AfterHoursDuty], unit_of_work_factory: DutyUnitOfWorkFactory | None
) -> None:
    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemyDutyUnitOfWork
    with unit_of_work_factory() as uow:
        uow.repositories.duties.add_all(duties)
        uow.commit()


def write_duty_template(
    path: Path,
    *,
    writer: TabularWriter = write_rows,
    today: date | None = None,
) -> Path:
    """Write the duty roster template; a directory gets the default file name."""

    target = path / DUTY_TEMPLATE_FILENAME if path.is_dir() else path
    today = today or datetime.now().astimezone().date()
    writer(target, duty_header(), duty_template_rows(today), sheet_name=DUTY_SHEET_NAME)
    log.info("Wrote duty roster template to %s", target)
    return target
