from __future__ import annotations

import json
from pathlib import Path

from txnsync.adapters.atomic import atomic_writer
from txnsync.core.errors import ConfigurationError

__all__ = ["JsonFileKeyValueStore"]


class JsonFileKeyValueStore:
    """
    ``KeyValueStore`` persisted as a single JSON object on disk.

    - The whole property map is rewritten on every mutation.
    - Writes are atomic via write-to-temp + os.replace(), so a crash never
      leaves a half-written cursor or token behind.
    - A file that exists but is not a JSON object of strings is reported,
      never silently reset.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser().resolve()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    # -------- Public API --------

    def get_property(self, key: str) -> str | None:
        return self._load().get(key)

    def set_property(self, key: str, value: str) -> None:
        self._validate_key(key)
        data = self._load()
        data[key] = value
        self._write(data)

    def delete_property(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._write(data)

    def get_keys(self) -> list[str]:
        return sorted(self._load())

    # -------- Internal helpers --------

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"State file {self.path} is not valid JSON: {e}", path=str(self.path)
            ) from e
        if not isinstance(raw, dict) or not all(
            isinstance(v, str) for v in raw.values()
        ):
            raise ConfigurationError(
                f"State file {self.path} must hold a JSON object of strings",
                path=str(self.path),
            )
        return raw

    def _write(self, data: dict[str, str]) -> None:
        serialized = json.dumps(data, ensure_ascii=True, sort_keys=True, indent=2)
        with atomic_writer(self.path) as tmp_file:
            tmp_file.write(serialized)

    @staticmethod
    def _validate_key(key: str) -> None:
        if not isinstance(key, str) or not key.strip():
            raise ValueError("key must be a non-empty string")
