from __future__ import annotations

from datetime import date
import http.client
from typing import Any
from unittest.mock import patch

import pytest

from txnsync.adapters.kv.memory import InMemoryKeyValueStore
from txnsync.adapters.store.memory import InMemoryTransactionStore
from txnsync.core.errors import ConfigurationError, TransportError
from txnsync.infra.clients.http import HttpTransport
from txnsync.infra.clients.saltedge import (
    ConnectSession,
    ListResponse,
    SaltEdgeClient,
)
from txnsync.infra.clients.signing import RsaRequestSigner
from txnsync.orchestrators.saltedge_import import SaltEdgeImportWorkflow
from txnsync.state.connections import ConnectionRegistry
from txnsync.state.credentials import CredentialStore
from txnsync.state.cursors import SyncCursorStore

CONNECTIONS = [
    {"id": "c1", "provider_name": "Fake Bank", "status": "active"},
]
ACCOUNTS = {
    "c1": [
        {"id": "a1", "name": "Checking", "currency_code": "EUR"},
        {"id": "a2", "name": "Savings", "currency_code": "EUR"},
    ]
}


class MockSaltEdgeClient:
    def __init__(self, transactions: dict[tuple[str, str], list[list[int]]]) -> None:
        self._transactions = transactions
        self.from_ids: list[tuple[str, str, str | None]] = []
        self.created_customers: list[str] = []
        self.removed: list[str] = []
        self.remove_error: Exception | None = None
        self.connect_calls: list[dict[str, Any]] = []

    def list_connections(self, customer_id: str) -> list[dict[str, Any]]:
        return CONNECTIONS

    def list_accounts(
        self, connection_id: str, customer_id: str
    ) -> list[dict[str, Any]]:
        return ACCOUNTS[connection_id]

    def list_transactions(
        self,
        connection_id: str,
        account_id: str,
        *,
        from_id: str | None = None,
        per_page: int = 250,
    ) -> ListResponse:
        self.from_ids.append((connection_id, account_id, from_id))
        ids = self._transactions[(connection_id, account_id)].pop(0)
        return ListResponse.model_validate(
            {"data": [{"id": i, "amount": -1.5, "made_on": "2024-01-02"} for i in ids]}
        )

    def create_customer(self, identifier: str) -> str:
        self.created_customers.append(identifier)
        return "cust-1"

    def create_connect_session(self, customer_id: str, **kwargs: Any) -> ConnectSession:
        self.connect_calls.append({"customer_id": customer_id, **kwargs})
        return ConnectSession(connect_url="https://widget.test/c")

    def remove_connection(self, connection_id: str) -> None:
        if self.remove_error is not None:
            raise self.remove_error
        self.removed.append(connection_id)


def _workflow(
    client: MockSaltEdgeClient, kv: InMemoryKeyValueStore
) -> tuple[SaltEdgeImportWorkflow, InMemoryTransactionStore]:
    store = InMemoryTransactionStore()
    workflow = SaltEdgeImportWorkflow(
        lambda: client,  # type: ignore[arg-type,return-value]
        ConnectionRegistry(kv, "sandbox"),
        SyncCursorStore(kv, "saltedge", "sandbox"),
        CredentialStore(kv, "sandbox"),
        store,
    )
    return workflow, store


def test_import_without_customer_fails(kv: InMemoryKeyValueStore) -> None:
    workflow, _ = _workflow(MockSaltEdgeClient({}), kv)

    with pytest.raises(ConfigurationError, match="Connect a bank account first"):
        workflow.import_all()


def test_import_all_tags_rows_and_stores_cursors(kv: InMemoryKeyValueStore) -> None:
    # setup
    client = MockSaltEdgeClient({("c1", "a1"): [[101, 102]], ("c1", "a2"): [[201]]})
    CredentialStore(kv, "sandbox").set_customer_id("cust-1")
    workflow, store = _workflow(client, kv)

    # act
    reports = workflow.import_all()

    # assert
    assert [r.scope for r in reports] == [("c1", "a1"), ("c1", "a2")]
    assert store.headers == [
        "connection_id",
        "provider_name",
        "account_name",
        "id",
        "amount",
        "made_on",
        "deleted",
    ]
    assert [(r[0], r[2], r[3]) for r in store.rows] == [
        ("c1", "Checking", 101),
        ("c1", "Checking", 102),
        ("c1", "Savings", 201),
    ]
    assert store.rows[0][5] == date(2024, 1, 2)

    cursors = SyncCursorStore(kv, "saltedge", "sandbox")
    assert cursors.get("c1", "a1") == "102"
    assert cursors.get("c1", "a2") == "201"

    registry = ConnectionRegistry(kv, "sandbox")
    assert registry.connection_ids() == ["c1"]
    assert [a["name"] for a in registry.accounts("c1")] == ["Checking", "Savings"]


def test_second_import_resumes_after_last_id(kv: InMemoryKeyValueStore) -> None:
    # setup
    client = MockSaltEdgeClient(
        {("c1", "a1"): [[101], [101, 102]], ("c1", "a2"): [[], []]}
    )
    CredentialStore(kv, "sandbox").set_customer_id("cust-1")
    workflow, store = _workflow(client, kv)

    # act
    workflow.import_all()
    workflow.import_all()

    # assert
    assert ("c1", "a1", "101") in client.from_ids
    assert [r[3] for r in store.rows] == [101, 102]


def test_connect_url_creates_customer_once(kv: InMemoryKeyValueStore) -> None:
    client = MockSaltEdgeClient({})
    workflow, _ = _workflow(client, kv)

    workflow.create_connect_url(return_to="https://app.test/done")
    session = workflow.create_connect_url()

    assert client.created_customers == ["financial_planner_user"]
    assert session.connect_url == "https://widget.test/c"
    assert client.connect_calls[0]["return_to"] == "https://app.test/done"
    assert CredentialStore(kv, "sandbox").customer_id() == "cust-1"


def test_disconnect_forgets_connection_even_if_remote_fails(
    kv: InMemoryKeyValueStore,
) -> None:
    # setup
    client = MockSaltEdgeClient({("c1", "a1"): [[101]], ("c1", "a2"): [[]]})
    CredentialStore(kv, "sandbox").set_customer_id("cust-1")
    workflow, _ = _workflow(client, kv)
    workflow.import_all()
    client.remove_error = TransportError("HTTP 404", endpoint="/connections/c1")

    # act
    workflow.disconnect("c1")

    # assert
    assert ConnectionRegistry(kv, "sandbox").connection_ids() == []
    assert SyncCursorStore(kv, "saltedge", "sandbox").scopes() == []
    assert kv.get_keys() == [
        "SALTEDGE_SANDBOX_CONNECTIONS",
        "SALTEDGE_SANDBOX_CUSTOMER_ID",
    ]


def _seed_connection(kv: InMemoryKeyValueStore) -> None:
    registry = ConnectionRegistry(kv, "sandbox")
    registry.store_connection("c1", {"provider_name": "Fake Bank"})
    registry.store_account("c1", "a1", {"name": "Checking"})
    SyncCursorStore(kv, "saltedge", "sandbox").set("c1", "a1", "101")


def test_disconnect_forgets_connection_when_server_hangs_up(
    kv: InMemoryKeyValueStore, rsa_pem: str
) -> None:
    # setup
    _seed_connection(kv)
    client = SaltEdgeClient(
        RsaRequestSigner("app-1", "secret-1", rsa_pem), transport=HttpTransport()
    )
    workflow = SaltEdgeImportWorkflow(
        lambda: client,
        ConnectionRegistry(kv, "sandbox"),
        SyncCursorStore(kv, "saltedge", "sandbox"),
        CredentialStore(kv, "sandbox"),
        InMemoryTransactionStore(),
    )
    hangup = http.client.RemoteDisconnected("Remote end closed connection")

    # act
    with patch("urllib.request.urlopen", side_effect=hangup) as urlopen:
        workflow.disconnect("c1")

    # assert
    assert urlopen.call_args.args[0].get_method() == "DELETE"
    assert ConnectionRegistry(kv, "sandbox").connection_ids() == []
    assert SyncCursorStore(kv, "saltedge", "sandbox").scopes() == []


def test_disconnect_without_api_credentials_still_forgets_connection(
    kv: InMemoryKeyValueStore,
) -> None:
    def missing_credentials() -> SaltEdgeClient:
        raise ConfigurationError("saltedge credentials not configured")

    _seed_connection(kv)
    workflow = SaltEdgeImportWorkflow(
        missing_credentials,
        ConnectionRegistry(kv, "sandbox"),
        SyncCursorStore(kv, "saltedge", "sandbox"),
        CredentialStore(kv, "sandbox"),
        InMemoryTransactionStore(),
    )

    workflow.disconnect("c1")

    assert kv.get_keys() == ["SALTEDGE_SANDBOX_CONNECTIONS"]
    assert ConnectionRegistry(kv, "sandbox").connection_ids() == []
