"""Error taxonomy shared by every sync component."""

from __future__ import annotations

from typing import Any

_BODY_PREVIEW_CHARS = 500


class SyncError(Exception):
    """Base error for txnsync failures.

    Carries a free-form ``context`` dict that the orchestrator logs at the
    error boundary.
    """

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = context


class ConfigurationError(SyncError):
    """Missing or malformed credentials, keys, settings or id column.

    Fatal: retrying without operator action cannot succeed.
    """


class TransportError(SyncError):
    """Non-2xx response, network failure or unparsable response body.

    Aborts the current cycle only. The stored cursor is left untouched so the
    next invocation resumes from the last known-good point.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        status_code: int | None = None,
        body: str = "",
        **context: Any,
    ) -> None:
        super().__init__(
            message,
            endpoint=endpoint,
            status_code=status_code,
            body=body[:_BODY_PREVIEW_CHARS],
            **context,
        )
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body


class DataShapeError(SyncError):
    """No record is available to derive a header row from."""
