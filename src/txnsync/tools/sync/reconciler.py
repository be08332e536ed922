from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import loguru
from loguru import logger

from txnsync.adapters.store.protocol import Scalar, SheetRow, TransactionStore
from txnsync.core.config import AddedPolicy, SchemaPolicy
from txnsync.core.errors import ConfigurationError, DataShapeError
from txnsync.tools.sync.changeset import ChangeSet, TransactionRecord
from txnsync.tools.sync.formatting import ColumnFormatter
from txnsync.tools.sync.projector import (
    DELETED_COLUMN,
    derive_headers,
    flatten,
    project_row,
    unknown_fields,
)


@dataclass
class ReconcileResult:
    """What one reconciliation pass did to the store."""

    appended: int = 0
    updated: int = 0
    flagged: int = 0
    missing_modified: list[str] = field(default_factory=list)
    missing_removed: list[str] = field(default_factory=list)
    dropped_fields: list[str] = field(default_factory=list)
    added_columns: list[str] = field(default_factory=list)
    header_created: bool = False


class ReconcilerLogger:
    """Handles all logging for ChangeSetReconciler."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def noop(self) -> None:
        self._logger.debug("Empty change set, store left untouched")

    def header_created(self, headers: Sequence[str]) -> None:
        self._logger.bind(columns=len(headers)).info(
            "Created header row with {} columns", len(headers)
        )

    def fields_dropped(self, fields: Sequence[str]) -> None:
        self._logger.bind(fields=list(fields)).warning(
            "Dropping {} field(s) not present in header: {}",
            len(fields),
            ", ".join(fields),
        )

    def columns_added(self, fields: Sequence[str]) -> None:
        self._logger.bind(fields=list(fields)).info(
            "Extended header with {} new column(s): {}", len(fields), ", ".join(fields)
        )

    def ids_missing(self, kind: str, ids: Sequence[str]) -> None:
        self._logger.bind(kind=kind, count=len(ids)).warning(
            "{} {} id(s) have no stored row: {}", len(ids), kind, ", ".join(ids[:20])
        )

    def deleted_column_missing(self, count: int) -> None:
        self._logger.bind(count=count).warning(
            "Header has no '{}' column; {} removal(s) not flagged",
            DELETED_COLUMN,
            count,
        )

    def summary(self, result: ReconcileResult) -> None:
        self._logger.bind(
            appended=result.appended, updated=result.updated, flagged=result.flagged
        ).info(
            "Reconciled: {} appended, {} updated, {} flagged deleted",
            result.appended,
            result.updated,
            result.flagged,
        )


class ChangeSetReconciler:
    """Merge a ChangeSet into a row store that has no native upsert.

    Removed records are only flagged via the ``deleted`` column, never
    physically deleted. The stored header is authoritative once written.
    """

    def __init__(
        self,
        store: TransactionStore,
        *,
        id_column: str,
        formatter: ColumnFormatter | None = None,
        added_policy: AddedPolicy = "append",
        schema_policy: SchemaPolicy = "drop",
        reconciler_logger: ReconcilerLogger | None = None,
    ) -> None:
        self._store = store
        self._id_column = id_column
        self._formatter = formatter
        self._added_policy = added_policy
        self._schema_policy = schema_policy
        self._logger = reconciler_logger or ReconcilerLogger()

    @property
    def store(self) -> TransactionStore:
        return self._store

    def reconcile(
        self, change_set: ChangeSet, *, metadata: Mapping[str, Scalar] | None = None
    ) -> ReconcileResult:
        result = ReconcileResult()
        if change_set.is_empty:
            self._logger.noop()
            return result

        meta = dict(metadata or {})
        headers = self._resolve_headers(change_set, meta, result)
        id_col = headers.index(self._id_column)

        index = self._index_rows(self._store.scan_all_rows(), id_col)
        base = self._store.row_count()
        pending: list[SheetRow] = []

        def write(row_index: int, row: SheetRow) -> None:
            if row_index >= base:
                pending[row_index - base] = row
            else:
                self._store.update_row(row_index, row)

        for record in change_set.added:
            row = self._project(headers, record, meta, deleted=False)
            rid = self._record_id(row, id_col)
            if self._added_policy == "upsert" and rid and index.get(rid):
                for row_index in index[rid]:
                    write(row_index, row)
                    result.updated += 1
                continue
            pending.append(row)
            if rid:
                index[rid].append(base + len(pending) - 1)

        for record in change_set.modified:
            row = self._project(headers, record, meta, deleted=False)
            rid = self._record_id(row, id_col)
            if not rid or not index.get(rid):
                result.missing_modified.append(rid)
                continue
            for row_index in index[rid]:
                write(row_index, row)
                result.updated += 1

        self._flag_removed(change_set, headers, index, base, pending, result)

        if pending:
            self._store.append_rows(pending)
            result.appended = len(pending)

        if self._formatter is not None:
            self._formatter.apply_formats(self._store, headers)

        if result.missing_modified:
            self._logger.ids_missing("modified", result.missing_modified)
        if result.missing_removed:
            self._logger.ids_missing("removed", result.missing_removed)
        self._logger.summary(result)
        return result

    # -------- Internal helpers --------

    def _resolve_headers(
        self, change_set: ChangeSet, meta: dict[str, Scalar], result: ReconcileResult
    ) -> list[str]:
        stored = self._store.get_header_row()
        if stored:
            headers = list(stored)
        else:
            source = next(iter(change_set.added + change_set.modified), None)
            if source is None:
                raise DataShapeError(
                    "Cannot derive a header row: the store is empty and the change "
                    "set holds no added or modified record",
                    removed=len(change_set.removed),
                )
            headers = derive_headers(source, leading=meta.keys())

        if self._id_column not in headers:
            raise ConfigurationError(
                f"Header has no '{self._id_column}' column; refusing to write",
                id_column=self._id_column,
                headers=headers,
            )

        drift = self._drift(headers, change_set, meta)
        if drift and self._schema_policy == "extend":
            headers = [*headers, *drift]
            result.added_columns = drift
            self._logger.columns_added(drift)
        elif drift:
            result.dropped_fields = drift
            self._logger.fields_dropped(drift)

        if not stored:
            self._store.write_header_row(headers)
            result.header_created = True
            self._logger.header_created(headers)
        elif result.added_columns:
            self._store.write_header_row(headers)
        return headers

    @staticmethod
    def _drift(
        headers: Sequence[str], change_set: ChangeSet, meta: Mapping[str, Scalar]
    ) -> list[str]:
        seen: dict[str, None] = {}
        for record in change_set.added + change_set.modified:
            flat = {**flatten(record), **meta}
            for name in unknown_fields(headers, flat):
                seen.setdefault(name, None)
        return list(seen)

    def _project(
        self,
        headers: Sequence[str],
        record: TransactionRecord,
        meta: Mapping[str, Scalar],
        *,
        deleted: bool,
    ) -> SheetRow:
        flat = {**flatten(record), **meta}
        row = project_row(headers, flat, deleted=deleted)
        if self._formatter is not None:
            row = self._formatter.coerce_row(headers, row)
        return row

    @staticmethod
    def _record_id(row: SheetRow, id_col: int) -> str:
        value = row[id_col]
        return "" if value is None else str(value)

    @staticmethod
    def _index_rows(
        rows: Sequence[SheetRow], id_col: int
    ) -> defaultdict[str, list[int]]:
        index: defaultdict[str, list[int]] = defaultdict(list)
        for row_index, row in enumerate(rows):
            if id_col < len(row) and row[id_col] not in ("", None):
                index[str(row[id_col])].append(row_index)
        return index

    def _flag_removed(
        self,
        change_set: ChangeSet,
        headers: Sequence[str],
        index: Mapping[str, list[int]],
        base: int,
        pending: list[SheetRow],
        result: ReconcileResult,
    ) -> None:
        if not change_set.removed:
            return
        if DELETED_COLUMN not in headers:
            self._logger.deleted_column_missing(len(change_set.removed))
            return
        deleted_col = headers.index(DELETED_COLUMN)
        for rid in change_set.removed_ids(self._id_column):
            rows = index.get(rid)
            if not rows:
                result.missing_removed.append(rid)
                continue
            for row_index in rows:
                if row_index >= base:
                    pending[row_index - base][deleted_col] = True
                else:
                    self._store.set_cell(row_index, deleted_col, True)
                result.flagged += 1
