"""Command-line legacy loader as the external processing step.

Each call writes the batch to a temporary workbook, runs the loader on it and
reads the ``<stem>_err.xml`` file the loader leaves next to the workbook.
"""

from __future__ import annotations

import logging
import subprocess
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Final

from stocksync.adapters.spreadsheet import write_rows
from stocksync.domain.errors import ExternalProcessingError, InputFileError
from stocksync.domain.ingest import export_header, record_cells
from stocksync.domain.ports.processing import ProcessingError, ProcessingOutcome

if TYPE_CHECKING:
    from collections.abc import Callable

    from stocksync.config import LoaderConfig, LoaderCredentials
    from stocksync.domain.batching import Checkpoint
    from stocksync.domain.ingest import Batch
    from stocksync.domain.ports.tabular import TabularWriter

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT: Final[str] = "%Y%m%d%H%M%S"
HISTORY_DIRNAME: Final[str] = "History"
UNKNOWN: Final[str] = "Unknown"
_OUTPUT_TAIL_CHARS = 500


def error_file_path(workbook_path: Path) -> Path:
    return workbook_path.with_name(f"{workbook_path.stem}_err.xml")


def archive_error_file(workbook_path: Path) -> Path | None:
    """Move a leftover error file into ``History/``, stamped with its modification time."""

    error_path = error_file_path(workbook_path)
    if not error_path.exists():
        return None
    history = error_path.parent / HISTORY_DIRNAME
    history.mkdir(parents=True, exist_ok=True)
    stamp = datetime.fromtimestamp(error_path.stat().st_mtime).strftime(TIMESTAMP_FORMAT)
    target = history / f"{workbook_path.stem}_err_{stamp}.xml"
    error_path.replace(target)
    log.info("Archived previous loader error file to %s", target)
    return target


def read_error_file(path: Path) -> list[ProcessingError]:
    """Parse ``/GRLoader/ci/{name,class}`` entries; a missing file means no errors."""

    if not path.exists():
        return []
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as exc:
        log.warning("Unreadable loader error file %s: %s", path.name, exc)
        return [ProcessingError(f"Error parsing XML: {exc}", UNKNOWN)]
    if root.tag != "GRLoader":
        return []
    return [
        ProcessingError(
            entity_name=_text(node.find("name")),
            entity_class=_text(node.find("class")),
        )
        for node in root.findall("ci")
    ]


def _text(element: ET.Element | None) -> str:
    if element is None:
        return UNKNOWN
    return (element.text or "").strip()


class CommandLineLoader:
    """Run the legacy loader executable once per batch attempt."""

    def __init__(
        self,
        config: LoaderConfig,
        credentials: LoaderCredentials,
        *,
        work_dir: Path,
        writer: TabularWriter = write_rows,
        poll_interval: float = 0.5,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._config = config
        self._credentials = credentials
        self._work_dir = work_dir
        self._writer = writer
        self._poll_interval = poll_interval
        self._now = now

    def workbook_path(self, batch: Batch) -> Path:
        stamp = self._now().strftime(TIMESTAMP_FORMAT)
        return self._work_dir / f"{self._config.file_prefix}_Batch_{batch.number}_{stamp}.xlsx"

    def __call__(self, batch: Batch, *, checkpoint: Checkpoint) -> ProcessingOutcome:
        path = self.workbook_path(batch)
        error_path = error_file_path(path)
        archive_error_file(path)
        try:
            self._writer(
                path,
                export_header(),
                [record_cells(record) for record in batch.records],
                sheet_name=self._config.sheet_name,
            )
        except InputFileError as exc:
            raise ExternalProcessingError(str(exc)) from exc

        try:
            output = self._run(path, checkpoint)
            errors = read_error_file(error_path)
        finally:
            path.unlink(missing_ok=True)
            error_path.unlink(missing_ok=True)
        log.info("Loader finished batch %s with %s rejected entities", batch.number, len(errors))
        return ProcessingOutcome(output=output, errors=tuple(errors))

    def _command(self, path: Path) -> list[str]:
        return [
            str(self._config.executable),
            self._config.server_url,
            self._credentials.username,
            self._credentials.password,
            str(path),
            self._config.sheet_name,
        ]

    def _run(self, path: Path, checkpoint: Checkpoint) -> str:
        try:
            process = subprocess.Popen(  # noqa: S603
                self._command(path),
                cwd=path.parent,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as exc:
            raise ExternalProcessingError(f"Cannot start loader: {exc}") from exc

        try:
            while True:
                try:
                    output, _ = process.communicate(timeout=self._poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    checkpoint()
        except BaseException:
            process.kill()
            process.communicate()
            log.warning("Killed loader process for %s", path.name)
            raise

        if process.returncode != 0:
            tail = (output or "").strip()[-_OUTPUT_TAIL_CHARS:]
            raise ExternalProcessingError(f"Loader exited with code {process.returncode}: {tail}")
        return output or ""


if TYPE_CHECKING:
    from stocksync.domain.ports import ExternalProcessingStep

    def _loader_check(loader: CommandLineLoader) -> ExternalProcessingStep:
        return loader
