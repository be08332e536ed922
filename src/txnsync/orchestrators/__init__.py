"""Sync cycle orchestration and per-integration workflows."""

from txnsync.orchestrators.cycle import SyncOrchestrator, SyncReport, SyncState
from txnsync.orchestrators.plaid_sync import PlaidSyncWorkflow
from txnsync.orchestrators.saltedge_import import SaltEdgeImportWorkflow

__all__ = [
    "SyncOrchestrator",
    "SyncReport",
    "SyncState",
    "PlaidSyncWorkflow",
    "SaltEdgeImportWorkflow",
]
