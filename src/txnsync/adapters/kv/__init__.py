"""Key-value property stores."""

from txnsync.adapters.kv.file import JsonFileKeyValueStore
from txnsync.adapters.kv.memory import InMemoryKeyValueStore
from txnsync.adapters.kv.protocol import KeyValueStore
from txnsync.adapters.kv.sql import SqlKeyValueStore

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "SqlKeyValueStore",
]
