# wassel/services/trip_service.py
"""
Trip handlers' business logic on top of Supabase REST.

- ingest_offline_trip: upsert a synced offline record (replays merge on id)
- get_trip: single-row read, served from the TTL cache when warm
- update_trip: PATCH with the service role key; drops the cached copy
"""

from datetime import UTC, datetime
from typing import Any

from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.offline_domain import PendingTripWire
from wassel.services.supabase_rest import SupabaseRestClient
from wassel.services.ttl_cache import TTLCache

logger = get_logger(__name__)

TRIPS_TABLE = "trips"
OFFLINE_TRIPS_TABLE = "offline_trips"


def ms_to_iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).isoformat()


class TripService:
    def __init__(self, supabase: SupabaseRestClient, cache: TTLCache, cache_ttl_seconds: int = 30):
        self.supabase = supabase
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds

    @staticmethod
    def _cache_key(trip_id: str) -> str:
        return f"trip:{trip_id}"

    async def ingest_offline_trip(self, trip: PendingTripWire, caller_id: str | None = None) -> str:
        row = {
            "id": trip.id,
            "user_id": trip.user_id,
            "type": trip.kind,
            "data": trip.payload,
            "created_at": ms_to_iso(trip.timestamp),
        }
        await self.supabase.upsert(OFFLINE_TRIPS_TABLE, row, error_message="Failed to sync trip")
        logger.info("Offline trip synced", trip_id=trip.id, kind=trip.kind, caller_id=caller_id)
        return trip.id

    async def get_trip(self, trip_id: str) -> dict[str, Any] | None:
        key = self._cache_key(trip_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Trip served from cache", trip_id=trip_id)
            return cached

        trip = await self.supabase.select_one(
            TRIPS_TABLE, "id", trip_id, error_message="Failed to fetch trip"
        )
        if trip is not None:
            self.cache.set(key, trip, ttl_seconds=self.cache_ttl_seconds)
        return trip

    async def update_trip(self, trip_id: str, updates: dict[str, Any]) -> None:
        await self.supabase.update(
            TRIPS_TABLE, "id", trip_id, updates, error_message="Failed to update trip"
        )
        self.cache.delete(self._cache_key(trip_id))
        logger.info("Trip updated", trip_id=trip_id, fields=sorted(updates))
