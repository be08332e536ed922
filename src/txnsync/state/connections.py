from __future__ import annotations

import json
from typing import Any

from txnsync.adapters.kv.protocol import KeyValueStore
from txnsync.core.errors import ConfigurationError
from txnsync.state.keys import scope_key

_PREFIX = "saltedge"


class ConnectionRegistry:
    """Locally known SaltEdge connections and their accounts.

    Connection and account payloads are stored as JSON documents next to an
    index of connection ids.
    """

    def __init__(self, kv: KeyValueStore, environment: str) -> None:
        self._kv = kv
        self._environment = environment

    def _key(self, name: str, *parts: str) -> str:
        return scope_key(_PREFIX, self._environment, name, *parts)

    def connection_ids(self) -> list[str]:
        raw = self._kv.get_property(self._key("connections"))
        if not raw:
            return []
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                "Connection index is not valid JSON", key=self._key("connections")
            ) from e
        return [str(i) for i in ids]

    def store_connection(self, connection_id: str, metadata: dict[str, Any]) -> None:
        self._kv.set_property(
            self._key("connection", connection_id), json.dumps(metadata, default=str)
        )
        ids = self.connection_ids()
        if connection_id not in ids:
            ids.append(connection_id)
            self._kv.set_property(self._key("connections"), json.dumps(ids))

    def get_connection(self, connection_id: str) -> dict[str, Any] | None:
        raw = self._kv.get_property(self._key("connection", connection_id))
        return json.loads(raw) if raw else None

    def store_account(
        self, connection_id: str, account_id: str, metadata: dict[str, Any]
    ) -> None:
        self._kv.set_property(
            self._key("account", connection_id, account_id),
            json.dumps(metadata, default=str),
        )

    def accounts(self, connection_id: str) -> list[dict[str, Any]]:
        base = self._key("account", connection_id) + "_"
        return [
            json.loads(raw)
            for key in self._kv.get_keys()
            if key.startswith(base) and (raw := self._kv.get_property(key))
        ]

    def remove_connection(self, connection_id: str) -> list[str]:
        """Forget a connection and its accounts. Returns the deleted keys."""
        account_base = self._key("account", connection_id) + "_"
        doomed = [k for k in self._kv.get_keys() if k.startswith(account_base)]
        doomed.append(self._key("connection", connection_id))
        for key in doomed:
            self._kv.delete_property(key)

        remaining = [i for i in self.connection_ids() if i != connection_id]
        self._kv.set_property(self._key("connections"), json.dumps(remaining))
        return doomed
