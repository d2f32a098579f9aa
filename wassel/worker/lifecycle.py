# wassel/worker/lifecycle.py
"""
Keep-alive bookkeeping for work started outside a request's await chain.

The worker context may be torn down between tasks. Anything that must finish
(background revalidation, cache writes, notification display) is registered
with `wait_until` so shutdown can `drain()` it instead of dropping the write.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any

from wassel.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class Lifecycle:
    """Tracks background tasks until they complete."""

    def __init__(self):
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def wait_until(self, awaitable: Awaitable[Any], name: str | None = None) -> asyncio.Task:
        """Schedule `awaitable` and hold a reference until it finishes."""
        task = asyncio.ensure_future(awaitable)
        if name:
            task.set_name(name)
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every registered task, including ones scheduled meanwhile."""
        while self._pending:
            done, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
            self._pending.difference_update(done)
            if not_done and timeout is not None:
                logger.warning("Background tasks still pending after drain timeout", pending=len(not_done))
                return
