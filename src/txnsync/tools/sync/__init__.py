"""Sync engine: pagination, projection and reconciliation."""

from txnsync.tools.sync.changeset import ChangeSet
from txnsync.tools.sync.fetcher import (
    CHANGEFEED_PAGE_SIZE,
    LISTING_PAGE_SIZE,
    ChangefeedFetcher,
    FetchResult,
    ListingFetcher,
    PaginatedFetcher,
)
from txnsync.tools.sync.formatting import ColumnFormatter
from txnsync.tools.sync.reconciler import ChangeSetReconciler, ReconcileResult

__all__ = [
    "ChangeSet",
    "ChangefeedFetcher",
    "ListingFetcher",
    "PaginatedFetcher",
    "FetchResult",
    "CHANGEFEED_PAGE_SIZE",
    "LISTING_PAGE_SIZE",
    "ColumnFormatter",
    "ChangeSetReconciler",
    "ReconcileResult",
]
