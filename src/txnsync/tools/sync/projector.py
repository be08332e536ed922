"""Project heterogeneous nested transaction JSON onto flat sheet rows."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
import json
from typing import Any

from txnsync.adapters.store.protocol import Scalar, SheetRow

DELETED_COLUMN = "deleted"


def _list_item(value: Any) -> str:
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, default=str, sort_keys=True)
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def flatten(obj: Mapping[str, Any], prefix: str = "") -> dict[str, Scalar]:
    """Flatten nested mappings into dot-joined keys.

    >>> flatten({"id": "x", "location": {"city": "A"}, "tags": ["a", "b"]})
    {'id': 'x', 'location.city': 'A', 'tags': 'a, b'}

    Lists are joined with ``", "`` (nested containers inside them are JSON
    encoded), ``None`` becomes ``""``, everything else passes through.
    Keys keep the insertion order of the source object.
    """
    flat: dict[str, Scalar] = {}
    for key, value in obj.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten(value, name))
        elif isinstance(value, (list, tuple)):
            flat[name] = ", ".join(_list_item(v) for v in value)
        elif value is None:
            flat[name] = ""
        else:
            flat[name] = value
    return flat


def derive_headers(record: Mapping[str, Any], leading: Iterable[str] = ()) -> list[str]:
    """Header row for a fresh store: metadata, record fields, ``deleted``."""
    lead = list(leading)
    fields = [k for k in flatten(record) if k not in lead and k != DELETED_COLUMN]
    return [*lead, *fields, DELETED_COLUMN]


def project_row(
    headers: Sequence[str], flat: Mapping[str, Scalar], *, deleted: bool = False
) -> SheetRow:
    """Align a flattened record to ``headers``.

    Missing fields become ``""``; fields absent from the header are dropped.
    """
    return [
        deleted if header == DELETED_COLUMN else flat.get(header, "")
        for header in headers
    ]


def unknown_fields(headers: Sequence[str], flat: Mapping[str, Scalar]) -> list[str]:
    known = set(headers)
    return [k for k in flat if k not in known]
