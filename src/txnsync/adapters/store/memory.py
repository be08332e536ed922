from __future__ import annotations

from collections.abc import Sequence

from txnsync.adapters.store.protocol import Scalar, SheetRow, pad_row


class InMemoryTransactionStore:
    """List-backed store. Counts scans and writes so callers can assert on them."""

    def __init__(
        self,
        headers: Sequence[str] | None = None,
        rows: Sequence[SheetRow] | None = None,
    ) -> None:
        self.headers: list[str] | None = list(headers) if headers is not None else None
        self.rows: list[SheetRow] = [list(r) for r in rows or []]
        self.formats: dict[int, str] = {}
        self.scan_calls = 0
        self.write_calls = 0

    def get_header_row(self) -> list[str] | None:
        return list(self.headers) if self.headers is not None else None

    def write_header_row(self, headers: Sequence[str]) -> None:
        self.write_calls += 1
        self.headers = list(headers)

    def append_rows(self, rows: Sequence[SheetRow]) -> None:
        if not rows:
            return
        self.write_calls += 1
        self.rows.extend(list(r) for r in rows)

    def scan_all_rows(self) -> list[SheetRow]:
        self.scan_calls += 1
        width = len(self.headers or [])
        return [pad_row(r, width) for r in self.rows]

    def update_row(self, index: int, row: SheetRow) -> None:
        self._check_index(index)
        self.write_calls += 1
        self.rows[index] = list(row)

    def set_cell(self, row: int, col: int, value: Scalar) -> None:
        self._check_index(row)
        self.write_calls += 1
        cells = pad_row(self.rows[row], col + 1)
        cells[col] = value
        self.rows[row] = cells

    def row_count(self) -> int:
        return len(self.rows)

    def set_column_format(self, col: int, fmt: str) -> None:
        self.formats[col] = fmt

    def column_formats(self) -> dict[int, str]:
        return dict(self.formats)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.rows):
            raise IndexError(f"row {index} out of range (0..{len(self.rows) - 1})")
