from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
import re

from txnsync.adapters.store.protocol import FormattableStore, Scalar, SheetRow

CURRENCY_FORMAT = "#,##0.00"
DATE_FORMAT = "yyyy-mm-dd"
DATETIME_FORMAT = "yyyy-mm-dd hh:mm:ss"

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_TIME = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")


def is_date_header(header: str) -> bool:
    leaf = header.rsplit(".", 1)[-1].lower()
    return leaf in ("date", "datetime") or leaf.endswith(("_date", "_on", "_at"))


def is_money_header(header: str) -> bool:
    leaf = header.rsplit(".", 1)[-1].lower()
    return "amount" in leaf or "balance" in leaf


def coerce_date(value: Scalar) -> Scalar:
    """Turn an ISO-8601 string into ``date``/``datetime``; leave others as-is."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    try:
        if _DATE_ONLY.match(text):
            return date.fromisoformat(text)
        if _DATE_TIME.match(text):
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return value
    return value


class ColumnFormatter:
    """Post-projection typing and display hints for known column kinds."""

    def coerce_row(self, headers: Sequence[str], row: SheetRow) -> SheetRow:
        return [
            coerce_date(cell) if is_date_header(header) else cell
            for header, cell in zip(headers, row, strict=True)
        ]

    def apply_formats(self, store: object, headers: Sequence[str]) -> int:
        """Set column format hints; returns how many were set.

        No-op for stores that do not implement ``FormattableStore``.
        """
        if not isinstance(store, FormattableStore):
            return 0
        applied = 0
        for col, header in enumerate(headers):
            if is_money_header(header):
                store.set_column_format(col, CURRENCY_FORMAT)
            elif header.rsplit(".", 1)[-1].lower().endswith("_at"):
                store.set_column_format(col, DATETIME_FORMAT)
            elif is_date_header(header):
                store.set_column_format(col, DATE_FORMAT)
            else:
                continue
            applied += 1
        return applied
