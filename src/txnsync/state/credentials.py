from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from txnsync.adapters.kv.protocol import KeyValueStore
from txnsync.core.errors import ConfigurationError
from txnsync.state.keys import scope_key

Integration = Literal["plaid", "saltedge"]

# Property name of the client identifier per integration.
_CLIENT_ID_NAME: dict[Integration, str] = {"plaid": "client_id", "saltedge": "app_id"}


@dataclass(frozen=True, slots=True)
class CredentialSet:
    """API credentials for one integration in one environment.

    ``client_id`` is the Plaid client id or the SaltEdge App-id.
    """

    client_id: str
    secret: str
    private_key: str | None = None

    def __repr__(self) -> str:
        key = "set" if self.private_key else "unset"
        return (
            f"CredentialSet(client_id={self.client_id!r}, secret=***, "
            f"private_key={key})"
        )


def has_pem_markers(pem: str) -> bool:
    return "BEGIN" in pem and "END" in pem


class CredentialStore:
    """Credentials, access tokens and customer ids, scoped per environment."""

    def __init__(self, kv: KeyValueStore, environment: str) -> None:
        self._kv = kv
        self._environment = environment

    @property
    def environment(self) -> str:
        return self._environment

    def _key(self, integration: str, name: str, *parts: str) -> str:
        return scope_key(integration, self._environment, name, *parts)

    # -------- API credentials --------

    def get(self, integration: Integration) -> CredentialSet:
        """Load credentials for ``integration``.

        Raises:
            ConfigurationError: If the client id or secret is missing, or a
                SaltEdge private key is missing.
        """
        client_id = self._kv.get_property(
            self._key(integration, _CLIENT_ID_NAME[integration])
        )
        secret = self._kv.get_property(self._key(integration, "secret"))
        private_key = self._kv.get_property(self._key(integration, "private_key"))

        if not client_id or not secret:
            raise ConfigurationError(
                f"{integration} credentials not configured for {self._environment}",
                integration=integration,
                environment=self._environment,
            )
        if integration == "saltedge" and not private_key:
            raise ConfigurationError(
                f"saltedge private key not configured for {self._environment}",
                integration=integration,
                environment=self._environment,
            )
        return CredentialSet(
            client_id=client_id, secret=secret, private_key=private_key
        )

    def set(self, integration: Integration, credentials: CredentialSet) -> None:
        if not credentials.client_id or not credentials.secret:
            raise ConfigurationError(
                "client id and secret are required", integration=integration
            )
        if integration == "saltedge":
            if not credentials.private_key or not has_pem_markers(
                credentials.private_key
            ):
                raise ConfigurationError(
                    "saltedge private key must be a PEM block with BEGIN/END markers",
                    integration=integration,
                )
        self._kv.set_property(
            self._key(integration, _CLIENT_ID_NAME[integration]), credentials.client_id
        )
        self._kv.set_property(self._key(integration, "secret"), credentials.secret)
        if credentials.private_key:
            self._kv.set_property(
                self._key(integration, "private_key"), credentials.private_key
            )

    # -------- Plaid access tokens --------

    def access_token(self, item_id: str) -> str:
        token = self._kv.get_property(self._key("plaid", "access_token", item_id))
        if not token:
            raise ConfigurationError(
                f"No access token stored for item {item_id}",
                item_id=item_id,
                environment=self._environment,
            )
        return token

    def set_access_token(self, item_id: str, token: str) -> None:
        self._kv.set_property(self._key("plaid", "access_token", item_id), token)

    def delete_access_token(self, item_id: str) -> None:
        self._kv.delete_property(self._key("plaid", "access_token", item_id))

    def item_ids(self) -> list[str]:
        base = self._key("plaid", "access_token") + "_"
        return [k[len(base) :] for k in self._kv.get_keys() if k.startswith(base)]

    # -------- SaltEdge customer --------

    def customer_id(self) -> str | None:
        return self._kv.get_property(self._key("saltedge", "customer_id")) or None

    def set_customer_id(self, customer_id: str) -> None:
        self._kv.set_property(self._key("saltedge", "customer_id"), customer_id)
