"""
Offline-first client storage and sync.

The local store is the source of truth for records created without
connectivity; the sync coordinator flushes them once the backend is
reachable again.
"""

# Re-export the primary building blocks for easy access.
from .store import LocalStore, RecordAlreadySynced, StorageFailure  # noqa: F401
from .sync_coordinator import SYNC_MESSAGES_TAG, SYNC_TRIPS_TAG, SyncCoordinator  # noqa: F401
