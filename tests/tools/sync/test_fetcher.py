from __future__ import annotations

from typing import Any

import pytest

from txnsync.core.errors import TransportError
from txnsync.infra.clients.plaid import TransactionsSyncPage
from txnsync.infra.clients.saltedge import ListResponse
from txnsync.tools.sync.fetcher import (
    CHANGEFEED_PAGE_SIZE,
    LISTING_PAGE_SIZE,
    ChangefeedFetcher,
    ListingFetcher,
)


class MockPlaidClient:
    """Replays /transactions/sync pages and records the cursors it was given."""

    def __init__(self, pages: list[TransactionsSyncPage | Exception]) -> None:
        self._pages = list(pages)
        self.cursors: list[str | None] = []
        self.counts: list[int] = []

    def sync_transactions(
        self, access_token: str, *, cursor: str | None = None, count: int = 0
    ) -> TransactionsSyncPage:
        self.cursors.append(cursor)
        self.counts.append(count)
        page = self._pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


class MockSaltEdgeClient:
    def __init__(self, pages: list[ListResponse]) -> None:
        self._pages = list(pages)
        self.from_ids: list[str | None] = []
        self.per_pages: list[int] = []

    def list_transactions(
        self,
        connection_id: str,
        account_id: str,
        *,
        from_id: str | None = None,
        per_page: int = 0,
    ) -> ListResponse:
        self.from_ids.append(from_id)
        self.per_pages.append(per_page)
        return self._pages.pop(0)


def _txns(prefix: str, n: int) -> list[dict[str, Any]]:
    return [{"transaction_id": f"{prefix}{i}"} for i in range(n)]


def _plaid_page(
    added: int, *, cursor: str, has_more: bool, prefix: str = "t"
) -> TransactionsSyncPage:
    return TransactionsSyncPage(
        added=_txns(prefix, added), next_cursor=cursor, has_more=has_more
    )


def _listing(ids: list[int], next_id: str | None) -> ListResponse:
    return ListResponse.model_validate(
        {"data": [{"id": i} for i in ids], "meta": {"next_id": next_id}}
    )


class TestChangefeedFetcher:
    def test_drains_every_page(self) -> None:
        # input
        client = MockPlaidClient(
            [
                _plaid_page(500, cursor="c1", has_more=True, prefix="a"),
                _plaid_page(500, cursor="c2", has_more=True, prefix="b"),
                _plaid_page(123, cursor="c3", has_more=False, prefix="c"),
            ]
        )
        fetcher = ChangefeedFetcher(client, "access-1")  # type: ignore[arg-type]

        # act
        result = fetcher.fetch_all(None)

        # assert
        assert client.cursors == [None, "c1", "c2"]
        assert client.counts == [CHANGEFEED_PAGE_SIZE] * 3
        assert len(result.change_set.added) == 1123
        assert result.cursor == "c3"
        assert result.pages == 3

    def test_resumes_from_stored_cursor(self) -> None:
        client = MockPlaidClient([_plaid_page(0, cursor="c9", has_more=False)])
        fetcher = ChangefeedFetcher(client, "access-1")  # type: ignore[arg-type]

        result = fetcher.fetch_all("c8")

        assert client.cursors == ["c8"]
        assert result.cursor == "c9"
        assert result.change_set.is_empty

    def test_empty_next_cursor_keeps_last_value(self) -> None:
        client = MockPlaidClient(
            [
                _plaid_page(1, cursor="c1", has_more=True),
                TransactionsSyncPage(next_cursor="", has_more=False),
            ]
        )

        result = ChangefeedFetcher(client, "a").fetch_all(None)  # type: ignore[arg-type]

        assert result.cursor == "c1"

    def test_transport_error_discards_partial_pages(self) -> None:
        client = MockPlaidClient(
            [
                _plaid_page(500, cursor="c1", has_more=True),
                TransportError("HTTP 500", endpoint="/transactions/sync"),
            ]
        )
        fetcher = ChangefeedFetcher(client, "access-1")  # type: ignore[arg-type]

        with pytest.raises(TransportError):
            fetcher.fetch_all("c0")

    def test_modified_and_removed_are_accumulated(self) -> None:
        page = TransactionsSyncPage(
            modified=[{"transaction_id": "m"}],
            removed=[{"transaction_id": "r"}],
            next_cursor="c1",
        )

        result = ChangefeedFetcher(
            MockPlaidClient([page]), "a"  # type: ignore[arg-type]
        ).fetch_all(None)

        assert result.change_set.counts == (0, 1, 1)


class TestListingFetcher:
    def test_follows_next_id_and_returns_last_record_id(self) -> None:
        # input
        client = MockSaltEdgeClient(
            [_listing([1, 2, 3], next_id="4"), _listing([4, 5], next_id=None)]
        )
        fetcher = ListingFetcher(client, "c1", "a1")  # type: ignore[arg-type]

        # act
        result = fetcher.fetch_all(None)

        # assert
        assert client.from_ids == [None, "4"]
        assert client.per_pages == [LISTING_PAGE_SIZE] * 2
        assert [r["id"] for r in result.change_set.added] == [1, 2, 3, 4, 5]
        assert result.cursor == "5"
        assert result.pages == 2

    def test_resume_skips_boundary_record(self) -> None:
        client = MockSaltEdgeClient([_listing([5, 6, 7], next_id=None)])

        result = ListingFetcher(client, "c1", "a1").fetch_all("5")  # type: ignore[arg-type]

        assert client.from_ids == ["5"]
        assert [r["id"] for r in result.change_set.added] == [6, 7]
        assert result.cursor == "7"

    def test_nothing_new_keeps_incoming_cursor(self) -> None:
        client = MockSaltEdgeClient([_listing([], next_id=None)])

        result = ListingFetcher(client, "c1", "a1").fetch_all("5")  # type: ignore[arg-type]

        assert result.cursor == "5"
        assert result.change_set.is_empty


def test_page_sizes_are_the_api_maximums() -> None:
    assert CHANGEFEED_PAGE_SIZE == 500
    assert LISTING_PAGE_SIZE == 250
