"""Parse the after-hours duty roster into ``AfterHoursDuty`` values.

Headers are matched the same loose way as purchase lines, with English and
Vietnamese aliases. Dates accept ISO or day-first text and Excel serial
numbers; times accept ``HH:mm[:ss]`` text and Excel day fractions. A row is
kept when every field parses and its shift ends after it starts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Final, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from stocksync.domain.errors import ErrorEntry, RowValidationError
from stocksync.domain.model import AfterHoursDuty

from .rows import (
    FIRST_DATA_ROW_NUMBER,
    build_header_map,
    cell_text,
    check_required_headers,
    collect_headers,
    describe_error,
    is_blank_row,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from stocksync.domain.ports.tabular import RawRow

DUTY_SHEET_NAME: Final[str] = "AfterHoursDuty"
DUTY_TEMPLATE_FILENAME: Final[str] = "AfterHoursDuty_Template.xlsx"

DUTY_COLUMNS: Final[tuple[tuple[str, str], ...]] = (
    ("duty_date", "DutyDate"),
    ("staff_code", "StaffCode"),
    ("full_name", "FullName"),
    ("department", "Department"),
    ("start_time", "StartTime"),
    ("end_time", "EndTime"),
    ("duty_type", "DutyType"),
    ("notes", "Notes"),
)

DUTY_HEADER_ALIASES: Final[Mapping[str, tuple[str, ...]]] = {
    "duty_date": ("ngày", "date", "dutydate"),
    "staff_code": ("manv", "mãnv", "staffcode"),
    "full_name": ("họ tên", "họ và tên", "fullname"),
    "department": ("phòng ban", "department"),
    "start_time": ("bắt đầu", "start", "starttime"),
    "end_time": ("kết thúc", "end", "endtime"),
    "duty_type": ("loại trực", "dutytype"),
    "notes": ("ghi chú", "notes"),
}

_DUTY_LABELS: Final[dict[str, str]] = dict(DUTY_COLUMNS)
_REQUIRED_DUTY_FIELDS: Final[tuple[str, ...]] = tuple(name for name, _label in DUTY_COLUMNS)

# Excel's day zero; serial 1 is 1899-12-31 in the 1900 date system.
EXCEL_EPOCH: Final[datetime] = datetime(1899, 12, 30)
_MAX_EXCEL_SERIAL: Final[int] = 2_958_465
_SECONDS_PER_DAY: Final[int] = 86_400

DATE_FORMATS: Final[tuple[str, ...]] = ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%d-%m-%Y")
TIME_FORMATS: Final[tuple[str, ...]] = ("%H:%M", "%H:%M:%S")


def _number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    try:
        number = float(cell_text(value))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def excel_serial_date(serial: float) -> date:
    if not 0 < serial <= _MAX_EXCEL_SERIAL:
        raise ValueError(f"{serial:g} is not a valid Excel date serial")
    return (EXCEL_EPOCH + timedelta(days=serial)).date()


def day_fraction_time(fraction: float) -> time:
    if not 0 <= fraction < 1:
        raise ValueError(f"{fraction:g} is not a time of day")
    seconds = min(round(fraction * _SECONDS_PER_DAY), _SECONDS_PER_DAY - 1)
    return time(seconds // 3600, seconds % 3600 // 60, seconds % 60)


def coerce_date(value: object) -> date:
    """Read a duty date from a date cell, an Excel serial or text."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = cell_text(value)
    if not text:
        raise ValueError("is required")
    number = _number(value)
    if number is not None:
        return excel_serial_date(number)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"{text!r} is not a valid date (yyyy-MM-dd or dd/MM/yyyy)")


def coerce_time(value: object) -> time:
    """Read a time of day from a time cell, a duration, an Excel day fraction or text."""

    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    if isinstance(value, timedelta):
        return day_fraction_time(value / timedelta(days=1))
    text = cell_text(value)
    if not text:
        raise ValueError("is required")
    number = _number(value)
    if number is not None:
        return day_fraction_time(number)
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"{text!r} is not a valid time (HH:mm)")


class DutyRow(BaseModel):
    """Validation schema for one duty roster row after header mapping."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    duty_date: date
    staff_code: str = Field(min_length=1, max_length=50)
    full_name: str = Field(min_length=1, max_length=255)
    start_time: time
    end_time: time
    department: str = Field(default="", max_length=255)
    duty_type: str = Field(default="", max_length=100)
    notes: str = Field(default="", max_length=1000)

    @field_validator("staff_code", "full_name", "department", "duty_type", "notes", mode="before")
    @classmethod
    def _as_text(cls, value: object) -> str:
        return cell_text(value)

    @field_validator("duty_date", mode="before")
    @classmethod
    def _parse_date(cls, value: object) -> date:
        return coerce_date(value)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_time(cls, value: object) -> time:
        return coerce_time(value)

    @model_validator(mode="after")
    def _ends_after_start(self) -> Self:
        if self.end_time <= self.start_time:
            raise ValueError("EndTime must be after StartTime")
        return self

    def to_duty(self) -> AfterHoursDuty:
        return AfterHoursDuty(**self.model_dump())


@dataclass(slots=True)
class ParsedDuties:
    duties: list[AfterHoursDuty] = field(default_factory=list["AfterHoursDuty"])
    rejected: list[RowValidationError] = field(default_factory=list["RowValidationError"])
    total_rows: int = 0

    @property
    def valid_rows(self) -> int:
        return len(self.duties)


def parse_duty_rows(
    rows: Sequence[RawRow],
    *,
    first_row_number: int = FIRST_DATA_ROW_NUMBER,
) -> ParsedDuties:
    """Validate duty roster ``rows``; every column of ``DUTY_COLUMNS`` must be present.

    Raises ``RowValidationError`` for the header row when a column is missing.
    """

    parsed = ParsedDuties()
    if not rows:
        return parsed

    header_map = build_header_map(collect_headers(rows), aliases=DUTY_HEADER_ALIASES)
    check_required_headers(header_map, required=_REQUIRED_DUTY_FIELDS, labels=_DUTY_LABELS)

    for offset, row in enumerate(rows):
        if is_blank_row(row):
            continue
        row_number = first_row_number + offset
        parsed.total_rows += 1
        values = {field_name: row.get(header) for header, field_name in header_map.items()}
        try:
            parsed.duties.append(DutyRow.model_validate(values).to_duty())
        except ValidationError as exc:
            messages = [describe_error(error, _DUTY_LABELS) for error in exc.errors()]
            parsed.rejected.append(RowValidationError(row_number, messages))
    return parsed


@dataclass(frozen=True, slots=True, kw_only=True)
class DutyImportResult:
    """Counts for one duty roster import: rows read, rows valid, rows saved."""

    total_rows: int
    valid_rows: int
    saved_rows: int
    errors: tuple[ErrorEntry, ...] = ()
    error_display_limit: int | None = None

    @property
    def message(self) -> str:
        return f"Processed {self.saved_rows}/{self.valid_rows}/{self.total_rows} rows"

    @property
    def visible_errors(self) -> tuple[ErrorEntry, ...]:
        if self.error_display_limit is None:
            return self.errors
        return self.errors[: self.error_display_limit]

    @property
    def hidden_error_count(self) -> int:
        return len(self.errors) - len(self.visible_errors)

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "saved_rows": self.saved_rows,
            "error_count": len(self.errors),
            "errors": [entry.describe() for entry in self.visible_errors],
        }


def duty_header() -> list[str]:
    return [label for _field_name, label in DUTY_COLUMNS]


def duty_template_rows(today: date) -> list[list[object]]:
    """One example row for the downloadable roster template."""

    return [
        [
            today.isoformat(),
            "NV001",
            "Nguyen Van A",
            "IT",
            "18:00",
            "22:00",
            "Ngoai gio",
            "Example row, replace before importing",
        ]
    ]
