"""Wire settings, stores, clients and workflows together."""

from __future__ import annotations

from txnsync.adapters.db.facade import DB
from txnsync.adapters.kv.file import JsonFileKeyValueStore
from txnsync.adapters.kv.protocol import KeyValueStore
from txnsync.adapters.kv.sql import SqlKeyValueStore
from txnsync.adapters.store.csv_store import CsvTransactionStore
from txnsync.adapters.store.protocol import TransactionStore
from txnsync.adapters.store.sql import SqlTransactionStore
from txnsync.core.config import SyncSettings
from txnsync.infra.clients.plaid import PlaidClient
from txnsync.infra.clients.saltedge import SaltEdgeClient
from txnsync.orchestrators.plaid_sync import PlaidSyncWorkflow
from txnsync.orchestrators.saltedge_import import SaltEdgeImportWorkflow
from txnsync.state.connections import ConnectionRegistry
from txnsync.state.credentials import CredentialStore
from txnsync.state.cursors import SyncCursorStore

PLAID_SHEET = "plaid_transactions"
SALTEDGE_SHEET = "saltedge_transactions"


def create_kv_store(settings: SyncSettings) -> KeyValueStore:
    if settings.state_backend == "sql":
        return SqlKeyValueStore(DB(settings.database_url))
    if settings.state_backend == "file":
        return JsonFileKeyValueStore(settings.state_path)
    raise ValueError(f"Unknown state backend: {settings.state_backend}")


def create_transaction_store(settings: SyncSettings, sheet: str) -> TransactionStore:
    if settings.store_backend == "sql":
        return SqlTransactionStore(DB(settings.database_url), sheet)
    if settings.store_backend == "csv":
        return CsvTransactionStore.for_sheet(settings.csv_dir, sheet)
    raise ValueError(f"Unknown store backend: {settings.store_backend}")


def create_plaid_workflow(
    settings: SyncSettings, kv: KeyValueStore | None = None
) -> PlaidSyncWorkflow:
    """Build the Plaid workflow.

    Credentials are read from the state store when the client is first
    needed; missing ones raise ``ConfigurationError`` at that point.
    """
    kv = kv or create_kv_store(settings)
    credentials = CredentialStore(kv, settings.environment)
    store = create_transaction_store(settings, PLAID_SHEET)
    return PlaidSyncWorkflow(
        lambda: PlaidClient.from_credentials(
            credentials.get("plaid"), env=settings.environment
        ),
        credentials,
        SyncCursorStore(kv, "plaid", settings.environment),
        lambda _item_id: store,
        added_policy=settings.added_policy,
        schema_policy=settings.schema_policy,
    )


def create_saltedge_workflow(
    settings: SyncSettings, kv: KeyValueStore | None = None
) -> SaltEdgeImportWorkflow:
    """Build the SaltEdge workflow.

    The client is created on first use; a missing App-id, secret or private
    key raises ``ConfigurationError`` then.
    """
    kv = kv or create_kv_store(settings)
    credentials = CredentialStore(kv, settings.environment)
    return SaltEdgeImportWorkflow(
        lambda: SaltEdgeClient.from_credentials(credentials.get("saltedge")),
        ConnectionRegistry(kv, settings.environment),
        SyncCursorStore(kv, "saltedge", settings.environment),
        credentials,
        create_transaction_store(settings, SALTEDGE_SHEET),
        added_policy=settings.added_policy,
        schema_policy=settings.schema_policy,
    )
