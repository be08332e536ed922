from __future__ import annotations

from pathlib import Path

import pytest

from txnsync.adapters.db.facade import DB
from txnsync.adapters.kv import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    SqlKeyValueStore,
)
from txnsync.core.errors import ConfigurationError


@pytest.fixture(params=["memory", "file", "sql"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> KeyValueStore:
    if request.param == "memory":
        return InMemoryKeyValueStore()
    if request.param == "file":
        return JsonFileKeyValueStore(tmp_path / "state.json")
    return SqlKeyValueStore(DB("sqlite:///:memory:"))


def test_set_get_round_trip(store: KeyValueStore) -> None:
    store.set_property("PLAID_SANDBOX_SECRET", "s3cret")

    assert store.get_property("PLAID_SANDBOX_SECRET") == "s3cret"
    assert store.get_property("MISSING") is None


def test_overwrite_replaces_value(store: KeyValueStore) -> None:
    store.set_property("K", "one")
    store.set_property("K", "two")

    assert store.get_property("K") == "two"
    assert store.get_keys() == ["K"]


def test_delete_is_idempotent(store: KeyValueStore) -> None:
    store.set_property("K", "v")

    store.delete_property("K")
    store.delete_property("K")

    assert store.get_property("K") is None
    assert store.get_keys() == []


def test_get_keys_is_sorted(store: KeyValueStore) -> None:
    for key in ("B", "A", "C"):
        store.set_property(key, key.lower())

    assert store.get_keys() == ["A", "B", "C"]


def test_stores_satisfy_protocol(store: KeyValueStore) -> None:
    assert isinstance(store, KeyValueStore)


class TestJsonFileKeyValueStore:
    def test_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "state.json"
        JsonFileKeyValueStore(path).set_property("K", "v")

        reopened = JsonFileKeyValueStore(path)

        assert reopened.get_property("K") == "v"

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        store = JsonFileKeyValueStore(tmp_path / "state.json")
        store.set_property("A", "1")
        store.set_property("B", "2")

        leftovers = [p.name for p in tmp_path.iterdir() if p.name.startswith(".tmp")]

        assert leftovers == []

    def test_corrupt_file_is_reported(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileKeyValueStore(path)

        with pytest.raises(ConfigurationError):
            store.get_property("K")

    def test_non_string_values_are_reported(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text('{"K": 1}', encoding="utf-8")

        with pytest.raises(ConfigurationError):
            JsonFileKeyValueStore(path).get_keys()

    def test_rejects_blank_key(self, tmp_path: Path) -> None:
        store = JsonFileKeyValueStore(tmp_path / "state.json")

        with pytest.raises(ValueError):
            store.set_property("  ", "v")
