"""
One-shot offline sync pass.

Flushes pending messages, and pending trips for SYNC_USER_ID when set, to the
backend at BACKEND_BASE_URL using SYNC_ACCESS_TOKEN.
"""

from wassel.client.runtime import ClientRuntime
from wassel.config import settings
from wassel.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


async def run_sync_pass() -> None:
    runtime = ClientRuntime(settings, access_token=settings.SYNC_ACCESS_TOKEN)
    await runtime.store.initialize()

    try:
        if settings.SYNC_USER_ID:
            reports = await runtime.go_online(settings.SYNC_USER_ID)
        else:
            logger.warning("SYNC_USER_ID not set, syncing messages only")
            reports = {"messages": await runtime.sync.sync_messages()}

        logger.info(
            "Sync job completed",
            **{f"{name}_synced": report.synced for name, report in reports.items()},
            complete=all(report.complete for report in reports.values()),
        )
    finally:
        await runtime.close()
