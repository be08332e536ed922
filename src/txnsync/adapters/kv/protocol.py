from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Flat string-to-string property store.

    Every persisted credential, token, cursor and connection record goes
    through this interface; keys are built by ``txnsync.state.keys``.
    """

    def get_property(self, key: str) -> str | None: ...

    def set_property(self, key: str, value: str) -> None: ...

    def delete_property(self, key: str) -> None: ...

    def get_keys(self) -> list[str]: ...
