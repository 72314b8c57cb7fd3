"""Turn raw spreadsheet rows into validated ``InputRecord`` values.

Headers are matched loosely (case, spaces, underscores and dashes are ignored)
against an alias table. Cells are coerced to trimmed text before validation so
blank or missing cells never raise; only the row-level rules below reject a row.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stocksync.domain.errors import RowValidationError
from stocksync.domain.model import InputRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from pydantic_core import ErrorDetails

    from stocksync.domain.ports.tabular import RawRow

HEADER_ROW_NUMBER: Final[int] = 1
FIRST_DATA_ROW_NUMBER: Final[int] = 2

HEADER_ALIASES: Final[Mapping[str, tuple[str, ...]]] = {
    "order_code": ("pocode", "po", "ponumber", "poname", "order", "ordercode"),
    "contract_code": ("contractno", "contract", "contractcode", "sellcontract"),
    "project_code": ("projectcode", "project"),
    "producer_name": ("producername", "producer", "manufacturer", "manufactor"),
    "sub_department_name": ("subdepartmentname", "subdepartment", "subdep"),
    "bill_code": ("allpicode", "picode", "billcode", "billnum", "billnumber", "invoicecode"),
    "item_name": ("itemname", "item", "productname", "proname"),
    "part_number": ("partno", "partnumber", "fru"),
    "quantity": ("quantity", "qty"),
    "warranty_term": ("guarantee", "warranty", "warrantyterm"),
    "account_manager": ("amaccount", "am", "accountmanager"),
    "buyer_account": ("poman", "bpaccount", "buyeraccount", "buyer"),
    "line_item_id": ("poitemid", "lineitemid", "lineitem", "itemid"),
}

REQUIRED_FIELDS: Final[tuple[str, ...]] = (
    "order_code",
    "bill_code",
    "line_item_id",
    "item_name",
    "quantity",
)

# Column labels used when records are written back out for the external loader.
EXPORT_COLUMNS: Final[tuple[tuple[str, str], ...]] = (
    ("order_code", "PoCode"),
    ("contract_code", "ContractNo"),
    ("project_code", "ProjectCode"),
    ("producer_name", "ProducerName"),
    ("sub_department_name", "SubDepartmentName"),
    ("bill_code", "AllPiCode"),
    ("item_name", "ItemName"),
    ("part_number", "PartNo"),
    ("quantity", "Quantity"),
    ("warranty_term", "Guarantee"),
    ("account_manager", "AmAccount"),
    ("buyer_account", "PoMan"),
    ("line_item_id", "PoItemId"),
)

_FIELD_LABELS: Final[dict[str, str]] = dict(EXPORT_COLUMNS)
_HEADER_NOISE = re.compile(r"[\s_\-]+")
_LINE_BREAKS = re.compile(r"[\r\n]+")


def normalize_header(header: str) -> str:
    return _HEADER_NOISE.sub("", unicodedata.normalize("NFC", header.strip().casefold()))


def build_header_map(
    headers: Iterable[str], *, aliases: Mapping[str, Sequence[str]] = HEADER_ALIASES
) -> dict[str, str]:
    """Map raw header -> record field. Unknown headers are ignored; first match wins."""

    field_by_alias = {
        normalize_header(alias): field_name
        for field_name, names in aliases.items()
        for alias in names
    }
    header_map: dict[str, str] = {}
    claimed: set[str] = set()
    for header in headers:
        field_name = field_by_alias.get(normalize_header(header))
        if field_name is None or field_name in claimed:
            continue
        claimed.add(field_name)
        header_map[header] = field_name
    return header_map


def cell_text(value: object) -> str:
    """Render a raw cell value as trimmed text."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        if value.time() == time(0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date | time):
        return value.isoformat()
    return str(value).strip()


def is_blank_row(row: RawRow) -> bool:
    return all(not cell_text(value) for value in row.values())


class InputRow(BaseModel):
    """Validation schema for one import line after header mapping."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)

    order_code: str = Field(min_length=1)
    bill_code: str = Field(min_length=1)
    line_item_id: str = Field(min_length=1)
    item_name: str = Field(min_length=1)
    quantity: int = Field(ge=0)
    contract_code: str = ""
    project_code: str = ""
    producer_name: str = ""
    sub_department_name: str = ""
    part_number: str = ""
    warranty_term: str = ""
    account_manager: str = ""
    buyer_account: str = ""

    @field_validator("item_name", mode="before")
    @classmethod
    def _strip_line_breaks(cls, value: object) -> object:
        if isinstance(value, str):
            return _LINE_BREAKS.sub("", value).strip()
        return value

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if not text:
            raise ValueError("is required")
        try:
            number = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"{text!r} is not a number") from None
        if not number.is_finite() or number != number.to_integral_value():
            raise ValueError(f"{text!r} is not a whole number")
        return int(number)

    def to_record(self, row_number: int) -> InputRecord:
        return InputRecord(row_number=row_number, **self.model_dump())


@dataclass(slots=True)
class ParsedRows:
    """Validated records plus the rows rejected on the way."""

    records: list[InputRecord] = field(default_factory=list["InputRecord"])
    rejected: list[RowValidationError] = field(default_factory=list["RowValidationError"])
    total_rows: int = 0

    @property
    def valid_rows(self) -> int:
        return len(self.records)


def check_required_headers(
    header_map: Mapping[str, str],
    *,
    required: Sequence[str] = REQUIRED_FIELDS,
    labels: Mapping[str, str] = _FIELD_LABELS,
) -> None:
    present = set(header_map.values())
    missing = [labels[name] for name in required if name not in present]
    if missing:
        raise RowValidationError(
            HEADER_ROW_NUMBER,
            [f"Missing required column: {label}" for label in missing],
        )


def parse_rows(
    rows: Sequence[RawRow],
    *,
    first_row_number: int = FIRST_DATA_ROW_NUMBER,
) -> ParsedRows:
    """Validate ``rows`` in order, keeping sheet row numbers.

    Raises ``RowValidationError`` for the header row when a required column is
    absent; every other problem is collected per row.
    """

    parsed = ParsedRows()
    if not rows:
        return parsed

    header_map = build_header_map(collect_headers(rows))
    check_required_headers(header_map)

    for offset, row in enumerate(rows):
        if is_blank_row(row):
            continue
        row_number = first_row_number + offset
        parsed.total_rows += 1
        values = {
            field_name: cell_text(row.get(header)) for header, field_name in header_map.items()
        }
        try:
            parsed.records.append(InputRow.model_validate(values).to_record(row_number))
        except ValidationError as exc:
            messages = [describe_error(error, _FIELD_LABELS) for error in exc.errors()]
            parsed.rejected.append(RowValidationError(row_number, messages))
    return parsed


def record_cells(record: InputRecord) -> list[object]:
    """Cells for ``record`` in ``EXPORT_COLUMNS`` order."""

    return [getattr(record, field_name) for field_name, _label in EXPORT_COLUMNS]


def export_header() -> list[str]:
    return [label for _field_name, label in EXPORT_COLUMNS]


def collect_headers(rows: Sequence[RawRow]) -> list[str]:
    seen: dict[str, None] = {}
    for row in rows:
        for header in row:
            seen.setdefault(str(header), None)
    return list(seen)


def describe_error(error: ErrorDetails, labels: Mapping[str, str]) -> str:
    """One readable message for a pydantic error, named by column label."""

    location = error["loc"][0] if error["loc"] else ""
    if not location:
        return str((error.get("ctx") or {}).get("error", error["msg"]))
    label = labels.get(str(location), str(location))
    if error["type"] == "string_too_short":
        return f"{label} is required"
    if error["type"] == "value_error":
        context = error.get("ctx") or {}
        return f"{label} {context.get('error', error['msg'])}"
    return f"{label}: {error['msg']}"
