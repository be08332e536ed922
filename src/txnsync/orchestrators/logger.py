from __future__ import annotations

import loguru
from loguru import logger


class WorkflowLogger:
    """Handles logging for the integration workflows."""

    def __init__(
        self, integration: str, logger_instance: loguru.Logger = logger
    ) -> None:
        self._logger = logger_instance.bind(integration=integration)

    def linked(self, item_id: str) -> None:
        self._logger.bind(item_id=item_id).info(
            "Stored access token for item {}", item_id
        )

    def customer(self, customer_id: str, created: bool) -> None:
        self._logger.bind(customer_id=customer_id).info(
            "{} customer {}", "Created" if created else "Using existing", customer_id
        )

    def batch_start(self, count: int, noun: str) -> None:
        self._logger.bind(count=count).info("Syncing {} {}(s)", count, noun)

    def connection(self, connection_id: str, provider: str, accounts: int) -> None:
        self._logger.bind(connection_id=connection_id, accounts=accounts).info(
            "Connection {} ({}): {} account(s)", connection_id, provider, accounts
        )

    def remote_cleanup_failed(self, target: str, error: Exception) -> None:
        self._logger.bind(target=target).warning(
            "Remote removal of {} failed, continuing with local cleanup: {}",
            target,
            error,
        )

    def local_cleanup(self, target: str, keys: int) -> None:
        self._logger.bind(target=target, keys=keys).info(
            "Removed {} and {} stored key(s)", target, keys
        )
