"""openpyxl-backed tabular reader and writer."""

from __future__ import annotations

import logging
import zipfile
from typing import TYPE_CHECKING

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from stocksync.domain.errors import InputFileError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from stocksync.domain.ports.tabular import RawRow

log = logging.getLogger(__name__)


def read_rows(path: Path, *, sheet_name: str | None = None) -> list[RawRow]:
    """Read a sheet (default: the first) as header-keyed rows.

    The first row is the header. Columns with a blank header are dropped; blank
    data rows are kept so row positions match the sheet.
    """

    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
        raise InputFileError(f"Cannot open workbook {path.name}: {exc}") from exc

    try:
        if sheet_name is None:
            worksheet = workbook.worksheets[0]
        elif sheet_name in workbook.sheetnames:
            worksheet = workbook[sheet_name]
        else:
            raise InputFileError(f"Workbook {path.name} has no sheet named {sheet_name!r}")

        values = worksheet.iter_rows(values_only=True)
        header_cells = next(values, None)
        if header_cells is None:
            return []
        columns = [
            (index, str(cell).strip())
            for index, cell in enumerate(header_cells)
            if cell is not None and str(cell).strip()
        ]
        rows: list[RawRow] = []
        for cells in values:
            rows.append(
                {name: cells[index] if index < len(cells) else None for index, name in columns}
            )
    finally:
        workbook.close()

    log.debug("Read %s rows from %s", len(rows), path.name)
    return rows


def write_rows(
    path: Path,
    header: Sequence[str],
    rows: Iterable[Sequence[object]],
    *,
    sheet_name: str,
) -> None:
    """Write ``header`` and ``rows`` to a new single-sheet workbook at ``path``."""

    workbook = Workbook()
    workbook.remove(workbook.worksheets[0])
    try:
        worksheet = workbook.create_sheet(sheet_name)
    except ValueError as exc:
        raise InputFileError(f"Invalid sheet name {sheet_name!r}: {exc}") from exc
    worksheet.append(list(header))
    for row in rows:
        worksheet.append(list(row))
    worksheet.freeze_panes = "A2"
    try:
        workbook.save(path)
    except OSError as exc:
        raise InputFileError(f"Cannot write workbook {path.name}: {exc}") from exc


if TYPE_CHECKING:
    from stocksync.domain.ports.tabular import TabularReader, TabularWriter

    _reader_check: TabularReader = read_rows
    _writer_check: TabularWriter = write_rows
