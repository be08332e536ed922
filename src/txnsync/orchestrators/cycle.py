from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import loguru
from loguru import logger

from txnsync.adapters.store.protocol import Scalar
from txnsync.state.cursors import SyncCursorStore
from txnsync.tools.sync.fetcher import PaginatedFetcher
from txnsync.tools.sync.reconciler import ChangeSetReconciler

Notifier = Callable[[Exception, dict[str, Any]], None]


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DRAINED = "drained"
    RECONCILING = "reconciling"
    CURSOR_COMMIT = "cursor_commit"


@dataclass
class SyncReport:
    """Outcome of one completed sync cycle."""

    scope: tuple[str, ...]
    pages: int
    added: int
    modified: int
    removed: int
    appended: int
    updated: int
    flagged: int
    cursor: str | None
    cursor_committed: bool


class OrchestratorLogger:
    """Handles all logging for SyncOrchestrator."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def cycle_start(self, label: str, scope: Sequence[str], cursor: str | None) -> None:
        self._logger.bind(label=label, scope=list(scope)).info(
            "Starting {} sync for {} ({})",
            label,
            "/".join(scope),
            "incremental" if cursor else "full history",
        )

    def cursor_committed(self, label: str, scope: Sequence[str]) -> None:
        self._logger.bind(label=label, scope=list(scope)).debug(
            "Committed new cursor for {}", "/".join(scope)
        )

    def cursor_unchanged(self, label: str, scope: Sequence[str]) -> None:
        self._logger.bind(label=label, scope=list(scope)).debug(
            "Cursor unchanged for {}", "/".join(scope)
        )

    def cycle_complete(self, label: str, report: SyncReport) -> None:
        self._logger.bind(label=label, scope=list(report.scope)).info(
            "{} sync complete for {}: {} pages, {} appended, {} updated, {} flagged",
            label,
            "/".join(report.scope),
            report.pages,
            report.appended,
            report.updated,
            report.flagged,
        )

    def cycle_failed(
        self, label: str, state: SyncState, error: Exception, context: dict[str, Any]
    ) -> None:
        self._logger.bind(label=label, state=state.value, **context).error(
            "{} sync failed during {}: {}", label, state.value, error
        )


class SyncOrchestrator:
    """Run one fetch -> reconcile -> cursor-commit cycle for one scope.

    The cursor is written only after reconciliation succeeded. A failure at
    any step leaves the stored cursor as it was, so the next run resumes
    from the last known-good point.
    """

    def __init__(
        self,
        fetcher: PaginatedFetcher,
        reconciler: ChangeSetReconciler,
        cursors: SyncCursorStore,
        scope: Sequence[str],
        *,
        label: str,
        metadata: Mapping[str, Scalar] | None = None,
        notifier: Notifier | None = None,
        orchestrator_logger: OrchestratorLogger | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._reconciler = reconciler
        self._cursors = cursors
        self._scope = tuple(scope)
        self._label = label
        self._metadata = dict(metadata or {})
        self._notifier = notifier
        self._logger = orchestrator_logger or OrchestratorLogger()
        self.transitions: list[SyncState] = [SyncState.IDLE]

    @property
    def state(self) -> SyncState:
        return self.transitions[-1]

    def _enter(self, state: SyncState) -> None:
        self.transitions.append(state)

    def run_cycle(self) -> SyncReport:
        self.transitions = [SyncState.IDLE]
        stored = self._cursors.get(*self._scope)
        self._logger.cycle_start(self._label, self._scope, stored)

        try:
            self._enter(SyncState.FETCHING)
            fetched = self._fetcher.fetch_all(stored)
            self._enter(SyncState.DRAINED)

            self._enter(SyncState.RECONCILING)
            result = self._reconciler.reconcile(
                fetched.change_set, metadata=self._metadata
            )

            self._enter(SyncState.CURSOR_COMMIT)
            committed = bool(fetched.cursor) and fetched.cursor != stored
            if committed and fetched.cursor:
                self._cursors.set(*self._scope, fetched.cursor)
                self._logger.cursor_committed(self._label, self._scope)
            else:
                self._logger.cursor_unchanged(self._label, self._scope)
        except Exception as e:
            self._fail(e)
            raise

        self._enter(SyncState.IDLE)
        added, modified, removed = fetched.change_set.counts
        report = SyncReport(
            scope=self._scope,
            pages=fetched.pages,
            added=added,
            modified=modified,
            removed=removed,
            appended=result.appended,
            updated=result.updated,
            flagged=result.flagged,
            cursor=fetched.cursor if committed else stored,
            cursor_committed=committed,
        )
        self._logger.cycle_complete(self._label, report)
        return report

    def reset_and_run(self) -> SyncReport:
        """Forget the stored cursor and resync the full history."""
        self._cursors.delete(*self._scope)
        return self.run_cycle()

    def _fail(self, error: Exception) -> None:
        failed_in = self.state
        context: dict[str, Any] = {"scope": "/".join(self._scope)}
        context.update(getattr(error, "context", {}))
        self._logger.cycle_failed(self._label, failed_in, error, context)
        self._enter(SyncState.IDLE)
        if self._notifier is not None:
            self._notifier(
                error, {"label": self._label, "state": failed_in.value, **context}
            )
