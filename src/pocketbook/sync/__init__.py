"""Synchronization between the local store and a remote store."""

from pocketbook.sync.engine import (
    SyncEngine,
    SyncOverview,
    SyncResult,
    SyncState,
    SyncStatus,
)

__all__ = ["SyncEngine", "SyncOverview", "SyncResult", "SyncState", "SyncStatus"]
