from __future__ import annotations

import http.client
import json
from typing import Any, Self, cast
import urllib.error
import urllib.parse
import urllib.request

from pydantic import BaseModel, ConfigDict, ValidationError

from txnsync.core.errors import TransportError
from txnsync.infra.clients.signing import PreparedRequest


def error_detail(body: str) -> str:
    """Best-effort human message from an aggregator error body.

    Understands SaltEdge ``{"error": {"message": ...}}`` and Plaid
    ``{"error_message": ...}`` envelopes; falls back to the raw body.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body.strip()
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("error_message"):
            return str(data["error_message"])
    return body.strip()


class HttpTransport:
    """Send prepared requests with ``urllib`` and decode JSON responses.

    Every failure mode surfaces as ``TransportError``: non-2xx status,
    network errors (including a peer that hangs up mid-response) and bodies
    that are not a UTF-8 JSON object.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout

    def send(self, request: PreparedRequest) -> dict[str, Any]:
        endpoint = urllib.parse.urlsplit(request.url).path
        data = request.body.encode("utf-8") if request.body else None
        req = urllib.request.Request(  # noqa: S310
            request.url,
            data=data,
            headers=dict(request.headers),
            method=request.method,
        )

        try:
            with urllib.request.urlopen(  # noqa: S310 - external HTTPS
                req, timeout=self._timeout
            ) as resp:
                status = resp.status
                raw = resp.read()
        except urllib.error.HTTPError as e:
            err_body = e.read().decode("utf-8", "ignore")
            raise TransportError(
                f"HTTP {e.code} from {endpoint}: {error_detail(err_body)}",
                endpoint=endpoint,
                status_code=e.code,
                body=err_body,
            ) from e
        except urllib.error.URLError as e:
            raise TransportError(
                f"Network error calling {endpoint}: {e.reason}", endpoint=endpoint
            ) from e
        except (OSError, http.client.HTTPException) as e:
            # RemoteDisconnected, IncompleteRead, socket timeouts and resets
            raise TransportError(
                f"Network error calling {endpoint}: {e!r}", endpoint=endpoint
            ) from e

        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TransportError(
                f"Response from {endpoint} is not valid UTF-8",
                endpoint=endpoint,
                status_code=status,
                body=raw.decode("utf-8", "replace"),
            ) from e

        if not 200 <= status < 300:
            raise TransportError(
                f"HTTP {status} from {endpoint}: {error_detail(body)}",
                endpoint=endpoint,
                status_code=status,
                body=body,
            )
        return self._parse_json_response(body, endpoint=endpoint, status=status)

    @staticmethod
    def _parse_json_response(
        body: str, *, endpoint: str, status: int
    ) -> dict[str, Any]:
        try:
            parsed = json.loads(body) if body.strip() else {}
        except json.JSONDecodeError as e:
            raise TransportError(
                f"Failed to parse response from {endpoint} as JSON: {e}",
                endpoint=endpoint,
                status_code=status,
                body=body,
            ) from e
        if not isinstance(parsed, dict):
            raise TransportError(
                f"Expected a JSON object from {endpoint}",
                endpoint=endpoint,
                status_code=status,
                body=body,
            )
        return cast(dict[str, Any], parsed)


class ResponseModel(BaseModel):
    """Base for response envelopes; unknown fields are kept, numeric ids become str."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    @classmethod
    def parse(cls, data: Any, *, endpoint: str) -> Self:
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise TransportError(
                f"Unexpected response shape from {endpoint}: {e}",
                endpoint=endpoint,
                body=json.dumps(data, default=str),
            ) from e
