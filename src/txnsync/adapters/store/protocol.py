from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Protocol, runtime_checkable

Scalar = str | int | float | bool | date | datetime
SheetRow = list[Scalar]


@runtime_checkable
class TransactionStore(Protocol):
    """Row-oriented table with a single header row and no native upsert.

    Row indices are 0-based over data rows (the header is not counted);
    column indices are 0-based positions in the header.
    """

    def get_header_row(self) -> list[str] | None: ...

    def write_header_row(self, headers: Sequence[str]) -> None: ...

    def append_rows(self, rows: Sequence[SheetRow]) -> None: ...

    def scan_all_rows(self) -> list[SheetRow]: ...

    def update_row(self, index: int, row: SheetRow) -> None: ...

    def set_cell(self, row: int, col: int, value: Scalar) -> None: ...

    def row_count(self) -> int: ...


@runtime_checkable
class FormattableStore(Protocol):
    """Store that can record a display format per column."""

    def set_column_format(self, col: int, fmt: str) -> None: ...


def pad_row(row: Sequence[Scalar], width: int) -> SheetRow:
    """Return ``row`` padded with empty strings up to ``width`` cells."""
    padded = list(row)
    if len(padded) < width:
        padded.extend([""] * (width - len(padded)))
    return padded
