# wassel/offline/sync_coordinator.py
"""
Sync coordinator - drains the offline backlog when connectivity returns.

Protocol (per record type):
1. Fetch every unsynced record in scope from the local store
2. Submit records one at a time (one in flight per type)
3. On success mark the record synced
4. On failure log, count the attempt, leave the record for the next pass

Delivery is at-least-once. No dedup token is sent; the sync endpoints upsert
on the record id so resubmitting an already-stored record is harmless.

Retries are unbounded unless `max_attempts` is set, in which case records
that used up their attempts are skipped ("stalled") but never deleted.

Triggers: background-sync tags ("sync-trips", "sync-messages") delivered on
reconnect, or an explicit retry. Nothing here is time-scheduled.
"""

from wassel.infrastructure.observability.logging import get_logger, log_sync_result
from wassel.models.domain.offline_domain import PendingMessage, PendingTrip, SyncReport
from wassel.offline.store import LocalStore
from wassel.services.backend_client import BackendClient, NetworkFailure
from wassel.services.upstream import UpstreamError

logger = get_logger(__name__)

SYNC_TRIPS_TAG = "sync-trips"
SYNC_MESSAGES_TAG = "sync-messages"


class SyncCoordinator:
    """Flush unsynced trips and messages through the backend client."""

    def __init__(
        self,
        store: LocalStore,
        backend: BackendClient,
        max_attempts: int | None = None,
    ):
        self.store = store
        self.backend = backend
        self.max_attempts = max_attempts

    def _is_stalled(self, record: PendingTrip | PendingMessage) -> bool:
        return self.max_attempts is not None and record.sync_attempts >= self.max_attempts

    async def sync_trips(self, user_id: str) -> SyncReport:
        """Submit every unsynced trip owned by `user_id`."""
        report = SyncReport(record_type="trips")
        pending = await self.store.get_pending_trips(user_id)

        logger.info("Syncing pending trips", user_id=user_id, pending=len(pending))

        for trip in pending:
            if self._is_stalled(trip):
                report.stalled += 1
                continue

            report.attempted += 1
            try:
                await self.backend.submit_trip(trip)
            except (NetworkFailure, UpstreamError) as e:
                logger.warning(
                    "Failed to sync trip",
                    trip_id=trip.id,
                    attempts=trip.sync_attempts + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self.store.record_trip_sync_failure(trip.id)
                report.failed += 1
                report.failed_ids.append(trip.id)
                continue

            await self.store.mark_trip_synced(trip.id)
            report.synced += 1

        log_sync_result("trips", report.synced, report.failed, report.stalled)
        return report

    async def sync_messages(self) -> SyncReport:
        """Submit every unsynced message (not owner-scoped)."""
        report = SyncReport(record_type="messages")
        pending = await self.store.get_pending_messages()

        logger.info("Syncing pending messages", pending=len(pending))

        for message in pending:
            if self._is_stalled(message):
                report.stalled += 1
                continue

            report.attempted += 1
            try:
                await self.backend.submit_message(message)
            except (NetworkFailure, UpstreamError) as e:
                logger.warning(
                    "Failed to sync message",
                    message_id=message.id,
                    attempts=message.sync_attempts + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self.store.record_message_sync_failure(message.id)
                report.failed += 1
                report.failed_ids.append(message.id)
                continue

            await self.store.mark_message_synced(message.id)
            report.synced += 1

        log_sync_result("messages", report.synced, report.failed, report.stalled)
        return report

    async def sync_all(self, user_id: str) -> dict[str, SyncReport]:
        return {
            "trips": await self.sync_trips(user_id),
            "messages": await self.sync_messages(),
        }

    async def handle_sync_event(self, tag: str, user_id: str) -> SyncReport | None:
        """Dispatch a background-sync tag to the matching drain."""
        if tag == SYNC_TRIPS_TAG:
            return await self.sync_trips(user_id)
        if tag == SYNC_MESSAGES_TAG:
            return await self.sync_messages()

        logger.warning("Ignoring unknown sync tag", tag=tag)
        return None
