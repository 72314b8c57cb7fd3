"""Ports for reading and writing tabular files (spreadsheets)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

type RawRow = Mapping[str, object]


@runtime_checkable
class TabularReader(Protocol):
    """Turn a file into ordered rows of ``column name -> raw cell value``."""

    def __call__(self, path: Path, *, sheet_name: str | None = None) -> list[RawRow]: ...


@runtime_checkable
class TabularWriter(Protocol):
    """Write a header row and data rows to ``path``."""

    def __call__(
        self,
        path: Path,
        header: Sequence[str],
        rows: Sequence[Sequence[object]],
        *,
        sheet_name: str,
    ) -> None: ...
