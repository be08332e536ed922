from __future__ import annotations

from txnsync.adapters.kv.protocol import KeyValueStore
from txnsync.state.keys import scope_key

_CURSOR_NAME = "sync_cursor"


class SyncCursorStore:
    """Opaque pagination cursors, one per (prefix, environment, scope).

    ``None`` means "no cursor yet, fetch full history". A stored cursor can
    only move to another non-empty value or be removed via ``delete``.
    """

    def __init__(self, kv: KeyValueStore, prefix: str, environment: str) -> None:
        self._kv = kv
        self._prefix = prefix
        self._environment = environment

    def key(self, *scope: str) -> str:
        return scope_key(self._prefix, self._environment, _CURSOR_NAME, *scope)

    def get(self, *scope: str) -> str | None:
        return self._kv.get_property(self.key(*scope)) or None

    def set(self, *args: str) -> None:
        """Store a cursor: ``set(*scope, value)``."""
        *scope, value = args
        if not value:
            raise ValueError("cursor value must be non-empty; use delete() to reset")
        self._kv.set_property(self.key(*scope), value)

    def delete(self, *scope: str) -> None:
        self._kv.delete_property(self.key(*scope))

    def delete_prefix(self, *scope: str) -> list[str]:
        """Delete every cursor whose scope starts with ``scope``.

        Returns the deleted keys.
        """
        base = self.key(*scope)
        doomed = [
            k for k in self._kv.get_keys() if k == base or k.startswith(base + "_")
        ]
        for key in doomed:
            self._kv.delete_property(key)
        return doomed

    def scopes(self) -> list[tuple[str, ...]]:
        """Scopes that currently hold a cursor, split on ``_``."""
        base = scope_key(self._prefix, self._environment, _CURSOR_NAME) + "_"
        return [
            tuple(k[len(base) :].split("_"))
            for k in self._kv.get_keys()
            if k.startswith(base)
        ]
