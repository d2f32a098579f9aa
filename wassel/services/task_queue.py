# wassel/services/task_queue.py
"""
In-process task queue with per-type serial draining and bounded retry.

- One drain per job type at a time; add_job() while a drain runs only enqueues
- FIFO; a failed job goes back to the tail until it reaches max_attempts
- An exhausted job is dropped, logged, and handed to `on_failure`
- Jobs for a type with no handler stay queued until one is registered

Usage:
    queue = TaskQueue()
    queue.register_handler("retention-sweep", sweep)
    job_id = await queue.add_job("retention-sweep", {"max_age_ms": ...})
    await queue.wait_idle()
"""

import asyncio
import inspect
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.job_domain import Job
from wassel.worker.lifecycle import Lifecycle

logger = get_logger(__name__)

JobHandler = Callable[[Any], Awaitable[None]]
FailureCallback = Callable[[Job, BaseException], Awaitable[None] | None]


class TaskQueue:
    def __init__(self, on_failure: FailureCallback | None = None, lifecycle: Lifecycle | None = None):
        self._queues: dict[str, deque[Job]] = {}
        self._handlers: dict[str, JobHandler] = {}
        self._drains: dict[str, asyncio.Task] = {}
        self.on_failure = on_failure
        self.lifecycle = lifecycle

    def register_handler(self, job_type: str, handler: JobHandler) -> None:
        """Set the handler for `job_type`, replacing any earlier one."""
        self._handlers[job_type] = handler
        if self._queues.get(job_type):
            self._start_drain(job_type)

    async def add_job(self, job_type: str, payload: Any = None, max_attempts: int = 3) -> str:
        job = Job.create(job_type, payload, max_attempts=max_attempts)
        self._queues.setdefault(job_type, deque()).append(job)
        logger.debug("Job queued", job_id=job.id, job_type=job_type)
        self._start_drain(job_type)
        return job.id

    def queue_size(self, job_type: str) -> int:
        return len(self._queues.get(job_type, ()))

    def is_draining(self, job_type: str) -> bool:
        task = self._drains.get(job_type)
        return task is not None and not task.done()

    async def wait_idle(self, job_type: str | None = None) -> None:
        """Wait until the active drain(s) finish."""
        while True:
            if job_type is not None:
                tasks = [t for t in (self._drains.get(job_type),) if t is not None and not t.done()]
            else:
                tasks = [t for t in self._drains.values() if not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def _start_drain(self, job_type: str) -> None:
        if job_type not in self._handlers:
            logger.debug("No handler registered yet, job waits", job_type=job_type)
            return
        if self.is_draining(job_type):
            return

        coro = self._drain(job_type)
        name = f"drain {job_type}"
        if self.lifecycle is not None:
            task = self.lifecycle.wait_until(coro, name=name)
        else:
            task = asyncio.create_task(coro, name=name)
        self._drains[job_type] = task

    async def _drain(self, job_type: str) -> None:
        queue = self._queues[job_type]

        while queue:
            handler = self._handlers.get(job_type)
            if handler is None:
                return

            job = queue.popleft()
            try:
                await handler(job.payload)
                logger.debug("Job completed", job_id=job.id, attempts=job.attempts + 1)
            except Exception as e:
                job.attempts += 1
                if not job.exhausted:
                    queue.append(job)
                    logger.warning(
                        "Job failed, re-queued",
                        job_id=job.id,
                        attempts=job.attempts,
                        max_attempts=job.max_attempts,
                        error=str(e),
                    )
                    continue

                logger.error(
                    "Job failed after max attempts",
                    job_id=job.id,
                    job_type=job_type,
                    attempts=job.attempts,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._report_failure(job, e)

    async def _report_failure(self, job: Job, error: BaseException) -> None:
        if self.on_failure is None:
            return
        try:
            result = self.on_failure(job, error)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Job failure callback raised", job_id=job.id, error=str(e))
