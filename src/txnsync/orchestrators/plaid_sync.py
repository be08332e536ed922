from __future__ import annotations

from collections.abc import Callable
from functools import cached_property

from txnsync.adapters.store.protocol import TransactionStore
from txnsync.core.config import AddedPolicy, SchemaPolicy
from txnsync.core.errors import ConfigurationError, TransportError
from txnsync.infra.clients.plaid import PlaidClient
from txnsync.orchestrators.cycle import Notifier, SyncOrchestrator, SyncReport
from txnsync.orchestrators.logger import WorkflowLogger
from txnsync.state.credentials import CredentialStore
from txnsync.state.cursors import SyncCursorStore
from txnsync.tools.sync.fetcher import ChangefeedFetcher
from txnsync.tools.sync.formatting import ColumnFormatter
from txnsync.tools.sync.reconciler import ChangeSetReconciler

PLAID_ID_COLUMN = "transaction_id"

StoreFactory = Callable[[str], TransactionStore]
ClientFactory = Callable[[], PlaidClient]


class PlaidSyncWorkflow:
    """Link, sync and unlink Plaid items.

    Access tokens and cursors are kept per item id; ``store_factory`` maps an
    item id to the store its transactions land in. The client is built on
    first use so that local bookkeeping works without API credentials.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        credentials: CredentialStore,
        cursors: SyncCursorStore,
        store_factory: StoreFactory,
        *,
        added_policy: AddedPolicy = "append",
        schema_policy: SchemaPolicy = "drop",
        notifier: Notifier | None = None,
        workflow_logger: WorkflowLogger | None = None,
    ) -> None:
        self._client_factory = client_factory
        self._credentials = credentials
        self._cursors = cursors
        self._store_factory = store_factory
        self._added_policy = added_policy
        self._schema_policy = schema_policy
        self._notifier = notifier
        self._logger = workflow_logger or WorkflowLogger("plaid")

    @cached_property
    def _client(self) -> PlaidClient:
        return self._client_factory()

    # -------- Linking --------

    def create_link_token(self, user_id: str) -> str:
        return self._client.create_link_token(user_id=user_id)

    def exchange_public_token(self, public_token: str) -> str:
        """Exchange a Link public token and store the access token.

        Returns the item id.
        """
        exchanged = self._client.exchange_public_token(public_token)
        self._credentials.set_access_token(exchanged.item_id, exchanged.access_token)
        self._logger.linked(exchanged.item_id)
        return exchanged.item_id

    def item_ids(self) -> list[str]:
        return self._credentials.item_ids()

    # -------- Sync --------

    def orchestrator(self, item_id: str) -> SyncOrchestrator:
        access_token = self._credentials.access_token(item_id)
        fetcher = ChangefeedFetcher(self._client, access_token)
        reconciler = ChangeSetReconciler(
            self._store_factory(item_id),
            id_column=PLAID_ID_COLUMN,
            formatter=ColumnFormatter(),
            added_policy=self._added_policy,
            schema_policy=self._schema_policy,
        )
        return SyncOrchestrator(
            fetcher,
            reconciler,
            self._cursors,
            (item_id,),
            label="plaid",
            notifier=self._notifier,
        )

    def sync_item(self, item_id: str, *, reset: bool = False) -> SyncReport:
        orchestrator = self.orchestrator(item_id)
        return orchestrator.reset_and_run() if reset else orchestrator.run_cycle()

    def sync_all(self, *, reset: bool = False) -> list[SyncReport]:
        item_ids = self.item_ids()
        if not item_ids:
            raise ConfigurationError(
                "No Plaid items connected; exchange a public token first",
                environment=self._credentials.environment,
            )
        self._logger.batch_start(len(item_ids), "item")
        return [self.sync_item(item_id, reset=reset) for item_id in item_ids]

    # -------- Unlinking --------

    def remove_item(self, item_id: str) -> None:
        """Revoke the item remotely if possible; always forget it locally."""
        try:
            self._client.remove_item(self._credentials.access_token(item_id))
        except (TransportError, ConfigurationError) as e:
            self._logger.remote_cleanup_failed(f"item {item_id}", e)

        self._credentials.delete_access_token(item_id)
        removed = self._cursors.delete_prefix(item_id)
        self._logger.local_cleanup(f"item {item_id}", len(removed) + 1)
