from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from pydantic import Field

from txnsync.core.errors import TransportError
from txnsync.infra.clients.http import HttpTransport, ResponseModel
from txnsync.infra.clients.signing import RequestSigner, RsaRequestSigner
from txnsync.state.credentials import CredentialSet

API_URL = "https://www.saltedge.com/api/v6"
CONSENT_SCOPES = ["accounts", "transactions"]
FETCH_SCOPES = ["accounts", "balance", "transactions"]
DEFAULT_CUSTOMER_IDENTIFIER = "financial_planner_user"
DEFAULT_CONSENT_DAYS = 90


class PageMeta(ResponseModel):
    next_id: str | None = None
    next_page: str | None = None


class ListResponse(ResponseModel):
    """Paged ``{"data": [...], "meta": {"next_id": ...}}`` envelope."""

    data: list[dict[str, Any]] = Field(default_factory=list)
    meta: PageMeta = Field(default_factory=PageMeta)

    @property
    def has_more(self) -> bool:
        return bool(self.meta.next_id) and bool(self.data)


class ObjectResponse(ResponseModel):
    data: dict[str, Any]


class ConnectSession(ResponseModel):
    connect_url: str
    expires_at: str | None = None
    customer_id: str | None = None


class SaltEdgeClient:
    """Signed client for the SaltEdge Account Information API v6."""

    def __init__(
        self,
        signer: RequestSigner,
        *,
        transport: HttpTransport | None = None,
        base_url: str = API_URL,
    ) -> None:
        self._signer = signer
        self._transport = transport or HttpTransport()
        self._base_url = base_url.rstrip("/")

    @classmethod
    def from_credentials(
        cls, credentials: CredentialSet, **kwargs: Any
    ) -> SaltEdgeClient:
        signer = RsaRequestSigner(
            credentials.client_id, credentials.secret, credentials.private_key or ""
        )
        return cls(signer, **kwargs)

    def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        request = self._signer.prepare(method, self._base_url + path, payload)
        return self._transport.send(request)

    def _list(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        from_id: str | None = None
        while True:
            query = dict(params)
            if from_id:
                query["from_id"] = from_id
            page = ListResponse.parse(self._request("GET", path, query), endpoint=path)
            items.extend(page.data)
            if not page.has_more:
                return items
            from_id = page.meta.next_id

    # High-level APIs -----------------------------------------------------

    def list_transactions(
        self,
        connection_id: str,
        account_id: str,
        *,
        from_id: str | None = None,
        per_page: int = 250,
    ) -> ListResponse:
        """Fetch one page of posted, non-duplicated transactions."""
        params: dict[str, Any] = {
            "connection_id": connection_id,
            "account_id": account_id,
            "pending": False,
            "duplicated": False,
            "per_page": per_page,
        }
        if from_id:
            params["from_id"] = from_id
        data = self._request("GET", "/transactions", params)
        return ListResponse.parse(data, endpoint="/transactions")

    def list_connections(self, customer_id: str) -> list[dict[str, Any]]:
        return self._list("/connections", {"customer_id": customer_id})

    def list_accounts(
        self, connection_id: str, customer_id: str
    ) -> list[dict[str, Any]]:
        return self._list(
            "/accounts", {"connection_id": connection_id, "customer_id": customer_id}
        )

    def create_customer(self, identifier: str = DEFAULT_CUSTOMER_IDENTIFIER) -> str:
        """Create a customer and return its id."""
        data = self._request("POST", "/customers", {"data": {"identifier": identifier}})
        customer = ObjectResponse.parse(data, endpoint="/customers").data
        customer_id = customer.get("customer_id") or customer.get("id")
        if not customer_id:
            raise TransportError(
                "Customer response carries no id", endpoint="/customers", body=str(data)
            )
        return str(customer_id)

    def create_connect_session(
        self,
        customer_id: str,
        *,
        return_to: str | None = None,
        from_date: date | None = None,
        period_days: int = DEFAULT_CONSENT_DAYS,
        consent_scopes: list[str] | None = None,
        fetch_scopes: list[str] | None = None,
    ) -> ConnectSession:
        """Start a widget session for linking a new bank connection."""
        start = from_date or date.today() - timedelta(days=DEFAULT_CONSENT_DAYS)
        attempt: dict[str, Any] = {"fetch_scopes": fetch_scopes or FETCH_SCOPES}
        if return_to:
            attempt["return_to"] = return_to
        payload = {
            "data": {
                "customer_id": customer_id,
                "consent": {
                    "scopes": consent_scopes or CONSENT_SCOPES,
                    "from_date": start.isoformat(),
                    "period_days": period_days,
                },
                "attempt": attempt,
                "widget": {
                    "show_consent_confirmation": True,
                    "skip_provider_selection": False,
                    "theme": "default",
                },
            }
        }
        data = self._request("POST", "/connections/connect", payload)
        session = ObjectResponse.parse(data, endpoint="/connections/connect").data
        return ConnectSession.parse(session, endpoint="/connections/connect")

    def remove_connection(self, connection_id: str) -> None:
        self._request("DELETE", f"/connections/{connection_id}")
