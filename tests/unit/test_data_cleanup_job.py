import pytest

from wassel.jobs.data_cleanup_job import DataCleanupJob
from wassel.models.domain.offline_domain import NewPendingTrip
from wassel.offline.store import StorageFailure

DAY_MS = 24 * 60 * 60 * 1000


@pytest.mark.asyncio
async def test_cleanup_deletes_only_old_synced_records(store, clock):
    await store.save_trip_offline(NewPendingTrip(id="old", user_id="u1", kind="history"))
    await store.save_trip_offline(NewPendingTrip(id="pending", user_id="u1", kind="booking"))
    await store.mark_trip_synced("old")
    clock.advance(31 * DAY_MS)

    result = await DataCleanupJob(store, max_age_ms=30 * DAY_MS).run_cleanup()

    assert result == {"success": True, "deleted_trips": 1, "deleted_messages": 0, "errors": []}
    assert [t.id for t in await store.get_all_trips("u1")] == ["pending"]


@pytest.mark.asyncio
async def test_cleanup_collects_store_errors():
    class BrokenStore:
        async def clear_old_data(self, max_age_ms):
            raise StorageFailure("disk full", operation="clear_old_data")

    result = await DataCleanupJob(BrokenStore(), max_age_ms=DAY_MS).run_cleanup()

    assert result["success"] is False
    assert "disk full" in result["errors"][0]


@pytest.mark.asyncio
async def test_cleanup_skips_when_already_running(store):
    job = DataCleanupJob(store, max_age_ms=DAY_MS)
    job.is_running = True

    result = await job.run_cleanup()

    assert result == {"success": False, "error": "Already running"}
