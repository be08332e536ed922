from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from txnsync.core.errors import ConfigurationError
from txnsync.infra.clients.http import HttpTransport, ResponseModel
from txnsync.infra.clients.signing import RequestSigner, StaticSecretSigner
from txnsync.state.credentials import CredentialSet

PlaidEnv = Literal["sandbox", "development", "production"]

PLAID_ENV_MAP: dict[PlaidEnv, str] = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


class LinkTokenCreateResponse(ResponseModel):
    link_token: str
    expiration: str | None = None


class PublicTokenExchangeResponse(ResponseModel):
    access_token: str
    item_id: str


class TransactionsSyncPage(ResponseModel):
    """One page of ``/transactions/sync``.

    Transactions stay as raw dicts: their nested shape varies by
    institution and is flattened downstream.
    """

    added: list[dict[str, Any]] = Field(default_factory=list)
    modified: list[dict[str, Any]] = Field(default_factory=list)
    removed: list[dict[str, Any]] = Field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False


class PlaidClient:
    def __init__(
        self,
        signer: RequestSigner,
        *,
        env: PlaidEnv = "sandbox",
        transport: HttpTransport | None = None,
        client_name: str = "txnsync",
        products: list[str] | None = None,
    ) -> None:
        if env not in PLAID_ENV_MAP:
            raise ConfigurationError(
                f"Invalid Plaid environment {env!r}. "
                "Expected one of: sandbox, development, production."
            )
        self._signer = signer
        self._env = env
        self._transport = transport or HttpTransport()
        self._client_name = client_name
        self._products = products or ["transactions"]

    @classmethod
    def from_credentials(
        cls, credentials: CredentialSet, *, env: PlaidEnv, **kwargs: Any
    ) -> PlaidClient:
        signer = StaticSecretSigner(credentials.client_id, credentials.secret)
        return cls(signer, env=env, **kwargs)

    @property
    def env(self) -> PlaidEnv:
        return self._env

    def _base_url(self) -> str:
        return PLAID_ENV_MAP[self._env]

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = self._base_url().rstrip("/") + path
        request = self._signer.prepare("POST", url, payload)
        return self._transport.send(request)

    # High-level APIs -----------------------------------------------------

    def sync_transactions(
        self,
        access_token: str,
        *,
        cursor: str | None = None,
        count: int = 500,
    ) -> TransactionsSyncPage:
        """Thin wrapper around Plaid's /transactions/sync endpoint."""
        payload: dict[str, Any] = {"access_token": access_token, "count": count}
        if cursor:
            payload["cursor"] = cursor
        data = self._post("/transactions/sync", payload)
        return TransactionsSyncPage.parse(data, endpoint="/transactions/sync")

    def create_link_token(
        self,
        *,
        user_id: str,
        redirect_uri: str | None = None,
        country_codes: list[str] | None = None,
        language: str = "en",
    ) -> str:
        """Create a Plaid Link token and return it."""
        payload: dict[str, Any] = {
            "client_name": self._client_name,
            "language": language,
            "country_codes": country_codes or ["US"],
            "user": {"client_user_id": user_id},
            "products": self._products,
        }
        if redirect_uri is not None:
            payload["redirect_uri"] = redirect_uri
        data = self._post("/link/token/create", payload)
        resp = LinkTokenCreateResponse.parse(data, endpoint="/link/token/create")
        return resp.link_token

    def exchange_public_token(self, public_token: str) -> PublicTokenExchangeResponse:
        """Exchange a Link public_token for an access_token."""
        data = self._post("/item/public_token/exchange", {"public_token": public_token})
        return PublicTokenExchangeResponse.parse(
            data, endpoint="/item/public_token/exchange"
        )

    def remove_item(self, access_token: str) -> None:
        self._post("/item/remove", {"access_token": access_token})
