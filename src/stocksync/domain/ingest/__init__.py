"""Input parsing and batch partitioning."""

from __future__ import annotations

from .duty import (
    DUTY_COLUMNS,
    DUTY_SHEET_NAME,
    DUTY_TEMPLATE_FILENAME,
    DutyImportResult,
    ParsedDuties,
    coerce_date,
    coerce_time,
    duty_header,
    duty_template_rows,
    parse_duty_rows,
)
from .partition import Batch, group_quantities, group_records, partition
from .rows import (
    EXPORT_COLUMNS,
    ParsedRows,
    build_header_map,
    cell_text,
    export_header,
    normalize_header,
    parse_rows,
    record_cells,
)

__all__ = [
    "DUTY_COLUMNS",
    "DUTY_SHEET_NAME",
    "DUTY_TEMPLATE_FILENAME",
    "EXPORT_COLUMNS",
    "Batch",
    "DutyImportResult",
    "ParsedDuties",
    "ParsedRows",
    "build_header_map",
    "cell_text",
    "coerce_date",
    "coerce_time",
    "duty_header",
    "duty_template_rows",
    "export_header",
    "group_quantities",
    "group_records",
    "normalize_header",
    "parse_duty_rows",
    "parse_rows",
    "partition",
    "record_cells",
]
