from __future__ import annotations

from collections.abc import Sequence
import json

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from txnsync.adapters.db.facade import DB
from txnsync.adapters.db.models import SheetColumnFormat, SheetHeader, SheetRowEntry
from txnsync.adapters.store.protocol import Scalar, SheetRow, pad_row


def _dump(cells: Sequence[Scalar]) -> str:
    # dates and datetimes fall back to str() -> ISO-8601
    return json.dumps(list(cells), default=str)


class SqlTransactionStore:
    """Sheet-shaped store persisted in ``sheet_headers`` / ``sheet_rows``.

    Several named sheets can share one database; each store instance is bound
    to a single ``sheet`` name.
    """

    def __init__(self, db: DB, sheet: str) -> None:
        self._db = db
        self._sheet = sheet
        self._db.create_schema()

    @property
    def sheet(self) -> str:
        return self._sheet

    def get_header_row(self) -> list[str] | None:
        with self._db.session() as session:
            header = session.get(SheetHeader, self._sheet)
            return json.loads(header.columns) if header is not None else None

    def write_header_row(self, headers: Sequence[str]) -> None:
        with self._db.session() as session:
            header = session.get(SheetHeader, self._sheet)
            if header is None:
                session.add(SheetHeader(sheet=self._sheet, columns=_dump(headers)))
            else:
                header.columns = _dump(headers)

    def append_rows(self, rows: Sequence[SheetRow]) -> None:
        if not rows:
            return
        with self._db.session() as session:
            start = self._count(session)
            session.add_all(
                SheetRowEntry(
                    sheet=self._sheet, position=start + offset, cells=_dump(row)
                )
                for offset, row in enumerate(rows)
            )

    def scan_all_rows(self) -> list[SheetRow]:
        with self._db.session() as session:
            header = session.get(SheetHeader, self._sheet)
            width = len(json.loads(header.columns)) if header is not None else 0
            stmt = (
                select(SheetRowEntry.cells)
                .where(SheetRowEntry.sheet == self._sheet)
                .order_by(SheetRowEntry.position)
            )
            return [
                pad_row(json.loads(cells), width) for cells in session.scalars(stmt)
            ]

    def update_row(self, index: int, row: SheetRow) -> None:
        with self._db.session() as session:
            record = self._row(session, index)
            record.cells = _dump(row)

    def set_cell(self, row: int, col: int, value: Scalar) -> None:
        with self._db.session() as session:
            record = self._row(session, row)
            cells = pad_row(json.loads(record.cells), col + 1)
            cells[col] = value
            record.cells = _dump(cells)

    def row_count(self) -> int:
        with self._db.session() as session:
            return self._count(session)

    def set_column_format(self, col: int, fmt: str) -> None:
        with self._db.session() as session:
            existing = session.get(SheetColumnFormat, (self._sheet, col))
            if existing is None:
                session.add(
                    SheetColumnFormat(sheet=self._sheet, column=col, format=fmt)
                )
            else:
                existing.format = fmt

    def column_formats(self) -> dict[int, str]:
        with self._db.session() as session:
            stmt = select(SheetColumnFormat).where(
                SheetColumnFormat.sheet == self._sheet
            )
            return {f.column: f.format for f in session.scalars(stmt)}

    def _count(self, session: Session) -> int:
        stmt = (
            select(func.count())
            .select_from(SheetRowEntry)
            .where(SheetRowEntry.sheet == self._sheet)
        )
        return int(session.scalar(stmt) or 0)

    def _row(self, session: Session, index: int) -> SheetRowEntry:
        stmt = select(SheetRowEntry).where(
            SheetRowEntry.sheet == self._sheet, SheetRowEntry.position == index
        )
        record = session.scalars(stmt).first()
        if record is None:
            raise IndexError(f"row {index} out of range for sheet {self._sheet!r}")
        return record
