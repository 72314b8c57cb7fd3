"""Batch partitioning and purchase-line grouping."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from stocksync.domain.model import GroupKey, InputRecord


@dataclass(frozen=True, slots=True)
class Batch:
    """An ordered, size-bounded slice of input records; the unit of retry.

    ``group_totals`` carries the desired quantity of every purchase line across
    the whole import, so a line split over two batches is reconciled to the
    same total by both.
    """

    number: int
    records: tuple[InputRecord, ...]
    group_totals: Mapping[GroupKey, int] = field(default_factory=dict["GroupKey", int])

    def __len__(self) -> int:
        return len(self.records)

    @property
    def row_numbers(self) -> tuple[int, ...]:
        return tuple(record.row_number for record in self.records)

    def desired_quantity(self, group: GroupKey) -> int:
        if group in self.group_totals:
            return self.group_totals[group]
        return sum(record.quantity for record in self.records if record.group_key == group)


def partition(
    records: Sequence[InputRecord],
    batch_size: int,
    *,
    group_totals: Mapping[GroupKey, int] | None = None,
) -> list[Batch]:
    """Split ``records`` into consecutive batches of at most ``batch_size`` records.

    Batches are numbered from 1. Concatenating their records yields ``records``.
    """

    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    totals = dict(group_totals) if group_totals is not None else {}
    return [
        Batch(
            number=index + 1,
            records=tuple(records[start : start + batch_size]),
            group_totals=totals,
        )
        for index, start in enumerate(range(0, len(records), batch_size))
    ]


def group_records(records: Iterable[InputRecord]) -> dict[GroupKey, list[InputRecord]]:
    """Group records by purchase line, keeping first-seen order."""

    groups: dict[GroupKey, list[InputRecord]] = {}
    for record in records:
        groups.setdefault(record.group_key, []).append(record)
    return groups


def group_quantities(records: Iterable[InputRecord]) -> dict[GroupKey, int]:
    """Desired quantity per purchase line: the sum over every record in the group."""

    totals: dict[GroupKey, int] = {}
    for record in records:
        totals[record.group_key] = totals.get(record.group_key, 0) + record.quantity
    return totals
