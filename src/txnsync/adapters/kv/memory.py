from __future__ import annotations

from collections.abc import Mapping


class InMemoryKeyValueStore:
    """Dict-backed ``KeyValueStore`` for tests and dry runs."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_property(self, key: str) -> str | None:
        return self._data.get(key)

    def set_property(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete_property(self, key: str) -> None:
        self._data.pop(key, None)

    def get_keys(self) -> list[str]:
        return sorted(self._data)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)
