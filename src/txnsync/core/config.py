from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Literal, cast

from txnsync.core.errors import ConfigurationError

Environment = Literal["sandbox", "development", "production"]
StateBackend = Literal["file", "sql"]
StoreBackend = Literal["sql", "csv"]
AddedPolicy = Literal["append", "upsert"]
SchemaPolicy = Literal["drop", "extend"]

ENVIRONMENTS: tuple[Environment, ...] = ("sandbox", "development", "production")
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True, slots=True)
class SyncSettings:
    """Process-wide settings loaded once at startup."""

    environment: Environment = "sandbox"
    state_backend: StateBackend = "file"
    state_path: Path = Path(".txnsync/state.json")
    store_backend: StoreBackend = "sql"
    database_url: str = "sqlite:///txnsync.db"
    csv_dir: Path = Path("sheets")
    added_policy: AddedPolicy = "append"
    schema_policy: SchemaPolicy = "drop"
    log_level: str = "INFO"

    def with_environment(self, environment: str) -> SyncSettings:
        """Return a copy pointed at another aggregator environment."""
        env = _choice("environment", environment, ENVIRONMENTS)
        return replace(self, environment=cast(Environment, env))


def _choice(name: str, value: str, allowed: tuple[str, ...]) -> str:
    normalized = value.strip().lower()
    if normalized not in allowed:
        raise ConfigurationError(
            f"{name} must be one of: {', '.join(allowed)} (got {value!r})",
            setting=name,
        )
    return normalized


def _env(name: str, default: str) -> str:
    value = os.environ.get(name, "").strip()
    return value or default


def load_settings_from_env() -> SyncSettings:
    """Load settings from ``TXNSYNC_*`` environment variables.

    Raises:
        ConfigurationError: If a value is outside its allowed set.
    """
    environment = _choice(
        "TXNSYNC_ENVIRONMENT", _env("TXNSYNC_ENVIRONMENT", "sandbox"), ENVIRONMENTS
    )
    state_backend = _choice(
        "TXNSYNC_STATE_BACKEND", _env("TXNSYNC_STATE_BACKEND", "file"), ("file", "sql")
    )
    store_backend = _choice(
        "TXNSYNC_STORE_BACKEND", _env("TXNSYNC_STORE_BACKEND", "sql"), ("sql", "csv")
    )
    added_policy = _choice(
        "TXNSYNC_ADDED_POLICY",
        _env("TXNSYNC_ADDED_POLICY", "append"),
        ("append", "upsert"),
    )
    schema_policy = _choice(
        "TXNSYNC_SCHEMA_POLICY",
        _env("TXNSYNC_SCHEMA_POLICY", "drop"),
        ("drop", "extend"),
    )
    log_level = _env("TXNSYNC_LOG_LEVEL", "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(
            f"TXNSYNC_LOG_LEVEL must be one of: {', '.join(LOG_LEVELS)}",
            setting="TXNSYNC_LOG_LEVEL",
        )

    return SyncSettings(
        environment=cast(Environment, environment),
        state_backend=cast(StateBackend, state_backend),
        state_path=Path(_env("TXNSYNC_STATE_PATH", ".txnsync/state.json")),
        store_backend=cast(StoreBackend, store_backend),
        database_url=_env("TXNSYNC_DATABASE_URL", "sqlite:///txnsync.db"),
        csv_dir=Path(_env("TXNSYNC_CSV_DIR", "sheets")),
        added_policy=cast(AddedPolicy, added_policy),
        schema_policy=cast(SchemaPolicy, schema_policy),
        log_level=log_level,
    )
