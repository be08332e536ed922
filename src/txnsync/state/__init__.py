"""Namespaced persistent state: credentials, cursors, connections."""

from txnsync.state.connections import ConnectionRegistry
from txnsync.state.credentials import CredentialSet, CredentialStore
from txnsync.state.cursors import SyncCursorStore
from txnsync.state.keys import scope_key

__all__ = [
    "ConnectionRegistry",
    "CredentialSet",
    "CredentialStore",
    "SyncCursorStore",
    "scope_key",
]
