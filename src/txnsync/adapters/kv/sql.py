from __future__ import annotations

from datetime import datetime

from txnsync.adapters.db.facade import DB
from txnsync.adapters.db.models import Property


class SqlKeyValueStore:
    """``KeyValueStore`` backed by the ``properties`` table."""

    def __init__(self, db: DB) -> None:
        self._db = db
        self._db.create_schema()

    def get_property(self, key: str) -> str | None:
        with self._db.session() as session:
            prop = session.get(Property, key)
            return prop.value if prop is not None else None

    def set_property(self, key: str, value: str) -> None:
        if not key.strip():
            raise ValueError("key must be a non-empty string")
        with self._db.session() as session:
            prop = session.get(Property, key)
            if prop is None:
                session.add(Property(key=key, value=value))
            else:
                prop.value = value
                prop.updated_at = datetime.now()

    def delete_property(self, key: str) -> None:
        with self._db.session() as session:
            prop = session.get(Property, key)
            if prop is not None:
                session.delete(prop)

    def get_keys(self) -> list[str]:
        with self._db.session() as session:
            rows = session.query(Property.key).order_by(Property.key)
            return [key for (key,) in rows]
