"""CSV-file transaction store.

One CSV file per sheet: the first line is the header row, every following
line is a data row. Column format hints live in a ``<name>.formats.json``
sidecar. Cells come back as strings; dates are written as ISO-8601.
"""

from __future__ import annotations

from collections.abc import Sequence
import csv
from datetime import date, datetime
import json
from pathlib import Path

from txnsync.adapters.atomic import atomic_writer
from txnsync.adapters.store.protocol import Scalar, SheetRow, pad_row


def _render(value: Scalar) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


class CsvTransactionStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._formats_path = self.path.with_suffix(".formats.json")

    @classmethod
    def for_sheet(cls, directory: str | Path, sheet: str) -> CsvTransactionStore:
        return cls(Path(directory) / f"{sheet}.csv")

    def get_header_row(self) -> list[str] | None:
        header, _ = self._read()
        return header

    def write_header_row(self, headers: Sequence[str]) -> None:
        _, rows = self._read()
        self._write(list(headers), rows)

    def append_rows(self, rows: Sequence[SheetRow]) -> None:
        if not rows:
            return
        header, existing = self._read()
        existing.extend([_render(c) for c in row] for row in rows)
        self._write(header or [], existing)

    def scan_all_rows(self) -> list[SheetRow]:
        header, rows = self._read()
        width = len(header or [])
        return [pad_row(r, width) for r in rows]

    def update_row(self, index: int, row: SheetRow) -> None:
        header, rows = self._read()
        self._check_index(index, rows)
        rows[index] = [_render(c) for c in row]
        self._write(header or [], rows)

    def set_cell(self, row: int, col: int, value: Scalar) -> None:
        header, rows = self._read()
        self._check_index(row, rows)
        cells = pad_row(rows[row], col + 1)
        cells[col] = _render(value)
        rows[row] = cells
        self._write(header or [], rows)

    def row_count(self) -> int:
        _, rows = self._read()
        return len(rows)

    def set_column_format(self, col: int, fmt: str) -> None:
        formats = self.column_formats()
        formats[col] = fmt
        payload = {str(k): v for k, v in sorted(formats.items())}
        with atomic_writer(self._formats_path) as f:
            json.dump(payload, f, indent=2)

    def column_formats(self) -> dict[int, str]:
        if not self._formats_path.exists():
            return {}
        with self._formats_path.open(encoding="utf-8") as f:
            return {int(k): v for k, v in json.load(f).items()}

    def _read(self) -> tuple[list[str] | None, list[SheetRow]]:
        if not self.path.exists():
            return None, []
        with self.path.open(encoding="utf-8", newline="") as f:
            lines = list(csv.reader(f))
        if not lines:
            return None, []
        header, *rows = lines
        return header, [list(r) for r in rows]

    def _write(self, header: list[str], rows: list[SheetRow]) -> None:
        with atomic_writer(self.path, newline="") as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows([_render(c) for c in row] for row in rows)

    @staticmethod
    def _check_index(index: int, rows: list[SheetRow]) -> None:
        if not 0 <= index < len(rows):
            raise IndexError(f"row {index} out of range (0..{len(rows) - 1})")
