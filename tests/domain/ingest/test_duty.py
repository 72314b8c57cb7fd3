from __future__ import annotations

from datetime import date, datetime, time, timedelta

import pytest

from stocksync.domain.errors import ErrorEntry, ErrorKind, RowValidationError
from stocksync.domain.ingest import (
    DutyImportResult,
    build_header_map,
    coerce_date,
    coerce_time,
    duty_header,
    duty_template_rows,
    parse_duty_rows,
)
from stocksync.domain.ingest.duty import DUTY_HEADER_ALIASES


def _duty_row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "DutyDate": "2024-05-01",
        "StaffCode": "NV001",
        "FullName": "Nguyen Van A",
        "Department": "IT",
        "StartTime": "18:00",
        "EndTime": "22:00",
        "DutyType": "Ngoai gio",
        "Notes": None,
    }
    row.update(overrides)
    return row


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (datetime(2024, 5, 1, 8, 30), date(2024, 5, 1)),
        (date(2024, 5, 1), date(2024, 5, 1)),
        (45413, date(2024, 5, 1)),
        (45413.75, date(2024, 5, 1)),
        ("45413", date(2024, 5, 1)),
        ("2024-05-01", date(2024, 5, 1)),
        ("01/05/2024", date(2024, 5, 1)),
        ("5/13/2024", date(2024, 5, 13)),
        ("01-05-2024", date(2024, 5, 1)),
    ],
)
def test_coerce_date(value: object, expected: date) -> None:
    assert coerce_date(value) == expected


@pytest.mark.parametrize(
    ("value", "message"),
    [
        (None, "is required"),
        ("  ", "is required"),
        ("31/31/2024", r"'31/31/2024' is not a valid date \(yyyy-MM-dd or dd/MM/yyyy\)"),
        (0, "not a valid Excel date serial"),
        (True, "'true' is not a valid date"),
    ],
)
def test_coerce_date_rejects(value: object, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        coerce_date(value)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (time(18, 0), time(18, 0)),
        (datetime(1899, 12, 30, 18, 30), time(18, 30)),
        (timedelta(hours=22, minutes=15), time(22, 15)),
        (0.75, time(18, 0)),
        ("0.75", time(18, 0)),
        (0, time(0, 0)),
        (0.99999999, time(23, 59, 59)),
        ("18:00", time(18, 0)),
        ("7:05", time(7, 5)),
        ("22:15:30", time(22, 15, 30)),
    ],
)
def test_coerce_time(value: object, expected: time) -> None:
    assert coerce_time(value) == expected


@pytest.mark.parametrize(
    ("value", "message"),
    [
        ("", "is required"),
        ("25:00", r"'25:00' is not a valid time \(HH:mm\)"),
        ("evening", "is not a valid time"),
        (1.5, "not a time of day"),
        (timedelta(days=1), "not a time of day"),
    ],
)
def test_coerce_time_rejects(value: object, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        coerce_time(value)


def test_vietnamese_headers_are_recognised() -> None:
    headers = [
        "Ngày",
        "Mã NV",
        "Họ và tên",
        "Phòng ban",
        "Bắt đầu",
        "Kết thúc",
        "Loại trực",
        "Ghi chú",
    ]

    header_map = build_header_map(headers, aliases=DUTY_HEADER_ALIASES)

    assert list(header_map.values()) == [
        "duty_date",
        "staff_code",
        "full_name",
        "department",
        "start_time",
        "end_time",
        "duty_type",
        "notes",
    ]


def test_parse_duty_rows_coerces_cells() -> None:
    rows = [
        _duty_row(),
        _duty_row(
            DutyDate=45414,
            StaffCode=1002,
            StartTime=0.75,
            EndTime=time(23, 30),
            Department=None,
            Notes=" covering ",
        ),
    ]

    parsed = parse_duty_rows(rows)

    assert parsed.rejected == []
    assert parsed.total_rows == 2
    first, second = parsed.duties
    assert first.duty_date == date(2024, 5, 1)
    assert (first.start_time, first.end_time) == (time(18, 0), time(22, 0))
    assert first.duty_type == "Ngoai gio"
    assert first.notes == ""
    assert second.duty_date == date(2024, 5, 2)
    assert second.staff_code == "1002"
    assert second.start_time == time(18, 0)
    assert second.department == ""
    assert second.notes == "covering"


@pytest.mark.parametrize("end_time", ["17:00", "18:00"])
def test_shift_must_end_after_it_starts(end_time: str) -> None:
    parsed = parse_duty_rows([_duty_row(StartTime="18:00", EndTime=end_time)])

    assert parsed.valid_rows == 0
    (rejected,) = parsed.rejected
    assert rejected.row_number == 2
    assert rejected.messages == ("EndTime must be after StartTime",)


def test_field_errors_suppress_the_shift_order_rule() -> None:
    rows = [_duty_row(DutyDate="someday", StartTime="18:00", EndTime="17:00")]

    (rejected,) = parse_duty_rows(rows).rejected

    assert rejected.messages == (
        "DutyDate 'someday' is not a valid date (yyyy-MM-dd or dd/MM/yyyy)",
    )


def test_missing_required_fields_are_listed_per_row() -> None:
    rows = [_duty_row(), _duty_row(StaffCode=" ", FullName=None, EndTime="late")]

    parsed = parse_duty_rows(rows)

    assert parsed.valid_rows == 1
    (rejected,) = parsed.rejected
    assert rejected.row_number == 3
    assert rejected.messages == (
        "StaffCode is required",
        "FullName is required",
        "EndTime 'late' is not a valid time (HH:mm)",
    )


def test_blank_rows_are_skipped() -> None:
    blank = {key: None for key in _duty_row()}

    parsed = parse_duty_rows([_duty_row(), blank, _duty_row(StaffCode="NV002")])

    assert parsed.total_rows == 2
    assert parsed.valid_rows == 2


def test_missing_columns_reject_the_header_row() -> None:
    row = _duty_row()
    del row["Notes"]
    del row["DutyType"]

    with pytest.raises(RowValidationError) as excinfo:
        parse_duty_rows([row])

    assert excinfo.value.row_number == 1
    assert excinfo.value.messages == (
        "Missing required column: DutyType",
        "Missing required column: Notes",
    )


def test_no_rows_parses_to_nothing() -> None:
    parsed = parse_duty_rows([])

    assert parsed.total_rows == 0
    assert parsed.duties == []


def test_duty_import_result_message_and_error_limit() -> None:
    errors = tuple(
        ErrorEntry(kind=ErrorKind.VALIDATION, message="bad", row_number=number)
        for number in range(2, 5)
    )
    result = DutyImportResult(
        total_rows=10, valid_rows=7, saved_rows=7, errors=errors, error_display_limit=2
    )

    assert result.message == "Processed 7/7/10 rows"
    assert len(result.visible_errors) == 2
    assert result.hidden_error_count == 1
    assert result.to_dict()["errors"] == ["Row 2: bad", "Row 3: bad"]
    assert result.to_dict()["error_count"] == 3


def test_template_rows_parse_back_as_valid() -> None:
    header = duty_header()
    rows = [dict(zip(header, cells, strict=True)) for cells in duty_template_rows(date(2024, 5, 1))]

    parsed = parse_duty_rows(rows)

    assert header == [
        "DutyDate",
        "StaffCode",
        "FullName",
        "Department",
        "StartTime",
        "EndTime",
        "DutyType",
        "Notes",
    ]
    assert parsed.rejected == []
    assert parsed.duties[0].duty_date == date(2024, 5, 1)
    assert parsed.duties[0].staff_code == "NV001"
