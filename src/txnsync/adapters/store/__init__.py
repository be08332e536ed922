"""Tabular transaction stores."""

from txnsync.adapters.store.csv_store import CsvTransactionStore
from txnsync.adapters.store.memory import InMemoryTransactionStore
from txnsync.adapters.store.protocol import (
    FormattableStore,
    Scalar,
    SheetRow,
    TransactionStore,
)
from txnsync.adapters.store.sql import SqlTransactionStore

__all__ = [
    "TransactionStore",
    "FormattableStore",
    "Scalar",
    "SheetRow",
    "InMemoryTransactionStore",
    "CsvTransactionStore",
    "SqlTransactionStore",
]
