"""
Data Cleanup Background Job - local retention enforcement.

Deletes synced offline trips and messages older than the retention window
(OFFLINE_RETENTION_DAYS). Unsynced records are never touched, whatever
their age.

Design:
- Never raises (errors are collected into the result)
- Logs the deletion counts
- Skips if a previous run is still in progress

Usage:
    job = DataCleanupJob(store, max_age_ms=settings.retention_max_age_ms())
    result = await job.run_cleanup()
"""

from datetime import UTC, datetime

from wassel.config import settings
from wassel.infrastructure.observability.logging import get_logger
from wassel.offline.store import LocalStore, OfflineStoreError

logger = get_logger(__name__)


class DataCleanupJob:
    def __init__(self, store: LocalStore, max_age_ms: int | None = None):
        self.store = store
        self.max_age_ms = max_age_ms if max_age_ms is not None else settings.retention_max_age_ms()
        self.is_running = False

    async def run_cleanup(self) -> dict:
        """
        Returns:
            dict: {
                "success": bool,
                "deleted_trips": int,
                "deleted_messages": int,
                "errors": list,
            }
        """
        if self.is_running:
            logger.warning("Cleanup job already running, skipping")
            return {"success": False, "error": "Already running"}

        self.is_running = True
        start_time = datetime.now(UTC)
        logger.info("Starting data cleanup job", max_age_ms=self.max_age_ms)

        result = {"success": True, "deleted_trips": 0, "deleted_messages": 0, "errors": []}

        try:
            deleted = await self.store.clear_old_data(max_age_ms=self.max_age_ms)
            result.update(deleted)
        except OfflineStoreError as e:
            error_msg = f"Failed to delete old synced records: {e}"
            logger.error(error_msg)
            result["success"] = False
            result["errors"].append(error_msg)
        finally:
            self.is_running = False

        duration = (datetime.now(UTC) - start_time).total_seconds()
        logger.info("Data cleanup job completed", duration_seconds=duration, result=result)
        return result


async def run_data_cleanup() -> None:
    """Worker entry: one retention sweep over the configured local store."""
    store = LocalStore(settings.OFFLINE_DB_PATH)
    await store.initialize()
    await DataCleanupJob(store).run_cleanup()
