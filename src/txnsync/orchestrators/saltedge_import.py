from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from functools import cached_property
from typing import Any

from txnsync.adapters.store.protocol import TransactionStore
from txnsync.core.config import AddedPolicy, SchemaPolicy
from txnsync.core.errors import ConfigurationError, TransportError
from txnsync.infra.clients.saltedge import (
    DEFAULT_CUSTOMER_IDENTIFIER,
    ConnectSession,
    SaltEdgeClient,
)
from txnsync.orchestrators.cycle import Notifier, SyncOrchestrator, SyncReport
from txnsync.orchestrators.logger import WorkflowLogger
from txnsync.state.connections import ConnectionRegistry
from txnsync.state.credentials import CredentialStore
from txnsync.state.cursors import SyncCursorStore
from txnsync.tools.sync.fetcher import ListingFetcher
from txnsync.tools.sync.formatting import ColumnFormatter
from txnsync.tools.sync.reconciler import ChangeSetReconciler

SALTEDGE_ID_COLUMN = "id"

ClientFactory = Callable[[], SaltEdgeClient]


class SaltEdgeImportWorkflow:
    """Import posted transactions from every SaltEdge connection.

    Each (connection, account) pair is its own sync scope with its own
    cursor. All accounts share one store, distinguished by the
    ``connection_id`` / ``provider_name`` / ``account_name`` columns. The
    client is built on first use so that disconnecting can forget a
    connection locally even when API credentials are missing.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        registry: ConnectionRegistry,
        cursors: SyncCursorStore,
        credentials: CredentialStore,
        store: TransactionStore,
        *,
        added_policy: AddedPolicy = "append",
        schema_policy: SchemaPolicy = "drop",
        notifier: Notifier | None = None,
        workflow_logger: WorkflowLogger | None = None,
    ) -> None:
        self._client_factory = client_factory
        self._registry = registry
        self._cursors = cursors
        self._credentials = credentials
        self._store = store
        self._added_policy = added_policy
        self._schema_policy = schema_policy
        self._notifier = notifier
        self._logger = workflow_logger or WorkflowLogger("saltedge")

    @cached_property
    def _client(self) -> SaltEdgeClient:
        return self._client_factory()

    # -------- Customer and widget --------

    def get_or_create_customer(
        self, identifier: str = DEFAULT_CUSTOMER_IDENTIFIER
    ) -> str:
        existing = self._credentials.customer_id()
        if existing:
            self._logger.customer(existing, created=False)
            return existing
        customer_id = self._client.create_customer(identifier)
        self._credentials.set_customer_id(customer_id)
        self._logger.customer(customer_id, created=True)
        return customer_id

    def create_connect_url(
        self,
        *,
        return_to: str | None = None,
        from_date: date | None = None,
        period_days: int = 90,
    ) -> ConnectSession:
        customer_id = self.get_or_create_customer()
        return self._client.create_connect_session(
            customer_id,
            return_to=return_to,
            from_date=from_date,
            period_days=period_days,
        )

    # -------- Import --------

    def _customer_or_fail(self) -> str:
        customer_id = self._credentials.customer_id()
        if not customer_id:
            raise ConfigurationError(
                "No SaltEdge customer found. Connect a bank account first.",
                environment=self._credentials.environment,
            )
        return customer_id

    def orchestrator(
        self, connection: dict[str, Any], account: dict[str, Any]
    ) -> SyncOrchestrator:
        connection_id = str(connection["id"])
        account_id = str(account["id"])
        reconciler = ChangeSetReconciler(
            self._store,
            id_column=SALTEDGE_ID_COLUMN,
            formatter=ColumnFormatter(),
            added_policy=self._added_policy,
            schema_policy=self._schema_policy,
        )
        return SyncOrchestrator(
            ListingFetcher(self._client, connection_id, account_id),
            reconciler,
            self._cursors,
            (connection_id, account_id),
            label="saltedge",
            metadata={
                "connection_id": connection_id,
                "provider_name": connection.get("provider_name") or "",
                "account_name": account.get("name") or "",
            },
            notifier=self._notifier,
        )

    def import_all(self, *, reset: bool = False) -> list[SyncReport]:
        customer_id = self._customer_or_fail()
        connections = self._client.list_connections(customer_id)
        self._logger.batch_start(len(connections), "connection")

        reports: list[SyncReport] = []
        for connection in connections:
            connection_id = str(connection["id"])
            self._registry.store_connection(
                connection_id,
                {
                    "connection_id": connection_id,
                    "customer_id": connection.get("customer_id"),
                    "provider_name": connection.get("provider_name"),
                    "provider_code": connection.get("provider_code"),
                    "status": connection.get("status"),
                    "created_at": connection.get("created_at"),
                    "last_synced_at": datetime.now().isoformat(),
                },
            )
            accounts = self._client.list_accounts(connection_id, customer_id)
            self._logger.connection(
                connection_id, str(connection.get("provider_name")), len(accounts)
            )
            for account in accounts:
                self._registry.store_account(
                    connection_id,
                    str(account["id"]),
                    {
                        "account_id": str(account["id"]),
                        "name": account.get("name"),
                        "nature": account.get("nature"),
                        "currency_code": account.get("currency_code"),
                    },
                )
                orchestrator = self.orchestrator(connection, account)
                reports.append(
                    orchestrator.reset_and_run() if reset else orchestrator.run_cycle()
                )
        return reports

    # -------- Disconnect --------

    def disconnect(self, connection_id: str) -> None:
        """Revoke the connection remotely if possible; always forget it locally."""
        try:
            self._client.remove_connection(connection_id)
        except (TransportError, ConfigurationError) as e:
            self._logger.remote_cleanup_failed(f"connection {connection_id}", e)

        removed = self._registry.remove_connection(connection_id)
        removed += self._cursors.delete_prefix(connection_id)
        self._logger.local_cleanup(f"connection {connection_id}", len(removed))
