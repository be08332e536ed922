from __future__ import annotations

import json
from typing import Any
from unittest.mock import patch

import pytest

from txnsync.core.errors import ConfigurationError, TransportError
from txnsync.infra.clients.plaid import PlaidClient
from txnsync.infra.clients.signing import StaticSecretSigner
from txnsync.state.credentials import CredentialSet


def _client(**kwargs: Any) -> PlaidClient:
    return PlaidClient(StaticSecretSigner("client-1", "secret-1"), **kwargs)


def test_sync_transactions_parses_page() -> None:
    # input
    response = {
        "added": [{"transaction_id": "t1", "amount": 12.5}],
        "modified": [],
        "removed": [{"transaction_id": "t0"}],
        "next_cursor": "cursor-2",
        "has_more": True,
        "request_id": "req-1",
    }
    client = _client()

    # act
    with patch.object(client, "_post", return_value=response) as mock_post:
        page = client.sync_transactions("access-1", cursor="cursor-1", count=100)

    # assert
    mock_post.assert_called_once_with(
        "/transactions/sync",
        {"access_token": "access-1", "count": 100, "cursor": "cursor-1"},
    )
    assert page.added == [{"transaction_id": "t1", "amount": 12.5}]
    assert page.removed == [{"transaction_id": "t0"}]
    assert page.next_cursor == "cursor-2"
    assert page.has_more is True


def test_first_sync_omits_cursor() -> None:
    client = _client()

    with patch.object(client, "_post", return_value={}) as mock_post:
        page = client.sync_transactions("access-1")

    payload = mock_post.call_args.args[1]
    assert "cursor" not in payload
    assert page.added == []
    assert page.has_more is False


def test_post_sends_credentials_to_env_base_url(
    fake_transport_factory: Any,
) -> None:
    # setup
    transport = fake_transport_factory([{"link_token": "link-sandbox-1"}])
    client = _client(env="production", transport=transport)

    # act
    token = client.create_link_token(user_id="user-1")

    # assert
    request = transport.requests[0]
    body = json.loads(request.body)
    assert token == "link-sandbox-1"
    assert request.url == "https://production.plaid.com/link/token/create"
    assert body["client_id"] == "client-1"
    assert body["secret"] == "secret-1"
    assert body["user"] == {"client_user_id": "user-1"}
    assert body["products"] == ["transactions"]


def test_exchange_public_token(fake_transport_factory: Any) -> None:
    transport = fake_transport_factory(
        [{"access_token": "access-sandbox-1", "item_id": "item-1"}]
    )
    client = _client(transport=transport)

    result = client.exchange_public_token("public-sandbox-1")

    assert result.access_token == "access-sandbox-1"
    assert result.item_id == "item-1"


def test_malformed_response_is_transport_error() -> None:
    client = _client()

    with patch.object(client, "_post", return_value={"item_id": "item-1"}):
        with pytest.raises(TransportError):
            client.exchange_public_token("public-sandbox-1")


def test_invalid_environment() -> None:
    with pytest.raises(ConfigurationError):
        _client(env="staging")


def test_from_credentials() -> None:
    client = PlaidClient.from_credentials(
        CredentialSet("client-1", "secret-1"), env="development"
    )

    assert client.env == "development"
