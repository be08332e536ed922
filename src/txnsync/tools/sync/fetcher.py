from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import loguru
from loguru import logger

from txnsync.infra.clients.plaid import PlaidClient
from txnsync.infra.clients.saltedge import SaltEdgeClient
from txnsync.tools.sync.changeset import ChangeSet

CHANGEFEED_PAGE_SIZE = 500
LISTING_PAGE_SIZE = 250


@dataclass
class FetchResult:
    """Everything drained from the remote in one cycle."""

    change_set: ChangeSet
    cursor: str | None
    pages: int


class PaginatedFetcher(Protocol):
    def fetch_all(self, cursor: str | None) -> FetchResult: ...


class FetcherLogger:
    """Handles all logging for the paginated fetchers."""

    def __init__(self, source: str, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance.bind(source=source)
        self._source = source

    def fetch_start(self, cursor: str | None) -> None:
        cursor_label = cursor or "initial"
        self._logger.bind(cursor=cursor_label).info(
            "Fetching {} transactions (cursor: {})", self._source, cursor_label
        )

    def page_complete(
        self, page_num: int, added: int, modified: int, removed: int, has_more: bool
    ) -> None:
        self._logger.bind(
            page=page_num, added=added, modified=modified, removed=removed
        ).debug(
            "Page {}: {} added, {} modified, {} removed (has_more={})",
            page_num,
            added,
            modified,
            removed,
            has_more,
        )

    def fetch_summary(self, change_set: ChangeSet, pages: int) -> None:
        added, modified, removed = change_set.counts
        self._logger.bind(
            total_added=added,
            total_modified=modified,
            total_removed=removed,
            pages=pages,
        ).info(
            "Total fetched: {} added, {} modified, {} removed across {} pages",
            added,
            modified,
            removed,
            pages,
        )


class ChangefeedFetcher:
    """Drain Plaid's ``/transactions/sync`` changefeed for one item.

    Requests are issued strictly in sequence, each carrying the previous
    page's ``next_cursor``, until ``has_more`` is false. Any transport error
    propagates and the partially accumulated pages are discarded.
    """

    def __init__(
        self,
        client: PlaidClient,
        access_token: str,
        *,
        sync_logger: FetcherLogger | None = None,
    ) -> None:
        self._client = client
        self._access_token = access_token
        self._logger = sync_logger or FetcherLogger("plaid")

    def fetch_all(self, cursor: str | None) -> FetchResult:
        change_set = ChangeSet()
        current = cursor
        pages = 0
        self._logger.fetch_start(cursor)

        while True:
            page = self._client.sync_transactions(
                self._access_token, cursor=current, count=CHANGEFEED_PAGE_SIZE
            )
            pages += 1
            change_set.extend(ChangeSet(page.added, page.modified, page.removed))
            self._logger.page_complete(
                pages,
                len(page.added),
                len(page.modified),
                len(page.removed),
                page.has_more,
            )
            if page.next_cursor:
                current = page.next_cursor
            if not page.has_more:
                break

        self._logger.fetch_summary(change_set, pages)
        return FetchResult(change_set=change_set, cursor=current, pages=pages)


class ListingFetcher:
    """Drain SaltEdge ``/transactions`` for one account.

    The listing has no modified/removed feed: every record is ``added``. The
    terminal cursor is the id of the last record received, so the next cycle
    resumes from there; that boundary record comes back first and is skipped.
    """

    def __init__(
        self,
        client: SaltEdgeClient,
        connection_id: str,
        account_id: str,
        *,
        sync_logger: FetcherLogger | None = None,
    ) -> None:
        self._client = client
        self._connection_id = connection_id
        self._account_id = account_id
        self._logger = sync_logger or FetcherLogger("saltedge")

    def fetch_all(self, cursor: str | None) -> FetchResult:
        change_set = ChangeSet()
        from_id = cursor
        last_id = cursor
        pages = 0
        self._logger.fetch_start(cursor)

        while True:
            page = self._client.list_transactions(
                self._connection_id,
                self._account_id,
                from_id=from_id,
                per_page=LISTING_PAGE_SIZE,
            )
            pages += 1
            fresh = [r for r in page.data if str(r.get("id")) != cursor]
            change_set.added.extend(fresh)
            if page.data:
                last_id = str(page.data[-1]["id"])
            self._logger.page_complete(pages, len(fresh), 0, 0, page.has_more)
            if not page.has_more:
                break
            from_id = page.meta.next_id

        self._logger.fetch_summary(change_set, pages)
        return FetchResult(change_set=change_set, cursor=last_id, pages=pages)
