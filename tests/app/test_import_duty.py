from __future__ import annotations

from datetime import date, time
from typing import TYPE_CHECKING

from openpyxl import load_workbook
from sqlalchemy import select

from stocksync.adapters.spreadsheet import write_rows
from stocksync.adapters.sqlalchemy.unit_of_work import SqlAlchemyDutyUnitOfWork
from stocksync.app import import_duty_workbook, write_duty_template
from stocksync.domain.errors import ErrorKind, PersistenceError
from stocksync.domain.ingest import duty_header
from stocksync.domain.model import AfterHoursDuty
from tests.helpers.imports import FakeDutyUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from sqlalchemy.engine import Engine


def _roster(path: Path, rows: list[list[object]]) -> Path:
    write_rows(path, duty_header(), rows, sheet_name="AfterHoursDuty")
    return path


def _factory(
    saved: list[AfterHoursDuty], *, fail_commit: Exception | None = None
) -> Callable[[], FakeDutyUnitOfWork]:
    def factory() -> FakeDutyUnitOfWork:
        return FakeDutyUnitOfWork(saved, fail_commit=fail_commit)

    return factory


def test_valid_rows_are_saved_and_invalid_rows_reported(tmp_path: Path) -> None:
    path = _roster(
        tmp_path / "roster.xlsx",
        [
            [date(2024, 5, 1), "NV001", "Nguyen Van A", "IT", time(18, 0), time(22, 0), "", ""],
            ["02/05/2024", "NV002", "Tran Thi B", "HR", 0.75, 0.875, "Ngoai gio", "cover"],
            ["2024-05-03", "NV003", "Le Van C", "IT", "22:00", "21:00", "", ""],
        ],
    )
    saved: list[AfterHoursDuty] = []
    logged: list[tuple[str, str]] = []

    result = import_duty_workbook(
        path,
        unit_of_work_factory=_factory(saved),
        activity_log=lambda name, message: logged.append((name, message)),
    )

    assert (result.total_rows, result.valid_rows, result.saved_rows) == (3, 2, 2)
    assert result.message == "Processed 2/2/3 rows"
    assert [entry.describe() for entry in result.errors] == [
        "Row 4: EndTime must be after StartTime"
    ]
    assert [duty.staff_code for duty in saved] == ["NV001", "NV002"]
    assert saved[0].duty_date == date(2024, 5, 1)
    assert saved[1].duty_date == date(2024, 5, 2)
    assert (saved[1].start_time, saved[1].end_time) == (time(18, 0), time(21, 0))
    assert logged == [("roster.xlsx", "Processed 2/2/3 rows")]


def test_missing_columns_save_nothing(tmp_path: Path) -> None:
    path = tmp_path / "roster.xlsx"
    write_rows(path, ["DutyDate", "StaffCode"], [["2024-05-01", "NV001"]], sheet_name="Roster")
    saved: list[AfterHoursDuty] = []

    result = import_duty_workbook(path, unit_of_work_factory=_factory(saved))

    assert result.saved_rows == 0
    assert saved == []
    assert result.errors[0].row_number == 1
    assert result.errors[0].message == "Missing required column: FullName"


def test_commit_failure_is_reported(tmp_path: Path) -> None:
    path = _roster(
        tmp_path / "roster.xlsx",
        [["2024-05-01", "NV001", "Nguyen Van A", "", "18:00", "20:00", "", ""]],
    )
    saved: list[AfterHoursDuty] = []

    result = import_duty_workbook(
        path, unit_of_work_factory=_factory(saved, fail_commit=PersistenceError("disk full"))
    )

    assert (result.valid_rows, result.saved_rows) == (1, 0)
    assert result.errors[-1].kind is ErrorKind.PERSISTENCE
    assert result.errors[-1].message == "disk full"


def test_rejected_file_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "roster.csv"
    path.write_text("DutyDate\n")

    result = import_duty_workbook(path, unit_of_work_factory=_factory([]))

    assert result.total_rows == 0
    assert result.errors[0].kind is ErrorKind.VALIDATION
    assert result.errors[0].message.startswith("Unsupported file type .csv")


def test_error_display_limit(tmp_path: Path) -> None:
    bad = ["someday", "NV001", "Nguyen Van A", "", "18:00", "20:00", "", ""]
    path = _roster(tmp_path / "roster.xlsx", [bad] * 4)

    result = import_duty_workbook(
        path, unit_of_work_factory=_factory([]), error_display_limit=3
    )

    assert len(result.errors) == 4
    assert len(result.visible_errors) == 3
    assert result.hidden_error_count == 1


def test_template_is_written_to_a_directory(tmp_path: Path) -> None:
    target = write_duty_template(tmp_path, today=date(2024, 5, 1))

    assert target == tmp_path / "AfterHoursDuty_Template.xlsx"
    workbook = load_workbook(target)
    assert workbook.sheetnames == ["AfterHoursDuty"]
    worksheet = workbook["AfterHoursDuty"]
    assert [cell.value for cell in worksheet[1]] == duty_header()
    assert [cell.value for cell in worksheet[2]][:6] == [
        "2024-05-01",
        "NV001",
        "Nguyen Van A",
        "IT",
        "18:00",
        "22:00",
    ]


def test_filled_template_imports_cleanly(tmp_path: Path) -> None:
    target = write_duty_template(tmp_path / "mine.xlsx", today=date(2024, 5, 1))
    saved: list[AfterHoursDuty] = []

    result = import_duty_workbook(target, unit_of_work_factory=_factory(saved))

    assert target.name == "mine.xlsx"
    assert (result.total_rows, result.valid_rows, result.saved_rows) == (1, 1, 1)
    assert result.errors == ()
    assert saved[0].duty_date == date(2024, 5, 1)


def test_end_to_end_against_sqlite(tmp_path: Path, sqlite_engine: Engine) -> None:
    _ = sqlite_engine
    path = _roster(
        tmp_path / "roster.xlsx",
        [
            ["2024-05-01", "NV001", "Nguyen Van A", "IT", "18:00", "22:00", "", ""],
            ["2024-05-02", "NV001", "Nguyen Van A", "IT", "19:00", "23:00", "", ""],
        ],
    )

    result = import_duty_workbook(path)

    assert result.saved_rows == 2
    with SqlAlchemyDutyUnitOfWork() as uow:
        assert isinstance(uow, SqlAlchemyDutyUnitOfWork)
        duties = list(uow.session.execute(select(AfterHoursDuty)).scalars())
    assert sorted(duty.duty_date for duty in duties) == [date(2024, 5, 1), date(2024, 5, 2)]
