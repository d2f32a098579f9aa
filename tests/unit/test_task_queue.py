import asyncio

import pytest

from wassel.services.task_queue import TaskQueue


@pytest.mark.asyncio
async def test_jobs_run_in_fifo_order():
    seen = []

    async def handler(payload):
        seen.append(payload)

    queue = TaskQueue()
    queue.register_handler("notify", handler)
    for n in range(3):
        await queue.add_job("notify", n)
    await queue.wait_idle()

    assert seen == [0, 1, 2]
    assert queue.queue_size("notify") == 0


@pytest.mark.asyncio
async def test_failing_job_is_attempted_exactly_max_attempts():
    attempts = []
    failures = []

    async def always_fails(payload):
        attempts.append(payload)
        raise RuntimeError("nope")

    queue = TaskQueue(on_failure=lambda job, error: failures.append((job.id, str(error))))
    queue.register_handler("flaky", always_fails)

    job_id = await queue.add_job("flaky", {"n": 1})
    await queue.wait_idle()

    assert len(attempts) == 3
    assert failures == [(job_id, "nope")]
    assert queue.queue_size("flaky") == 0


@pytest.mark.asyncio
async def test_failed_job_goes_to_the_tail():
    order = []
    failed_once = set()

    async def handler(payload):
        order.append(payload)
        if payload == "a" and payload not in failed_once:
            failed_once.add(payload)
            raise RuntimeError("retry me")

    queue = TaskQueue()
    queue.register_handler("work", handler)
    await queue.add_job("work", "a")
    await queue.add_job("work", "b")
    await queue.wait_idle()

    assert order == ["a", "b", "a"]


@pytest.mark.asyncio
async def test_only_one_drain_per_type():
    running = {"now": 0, "max": 0}

    async def handler(payload):
        running["now"] += 1
        running["max"] = max(running["max"], running["now"])
        await asyncio.sleep(0)
        running["now"] -= 1

    queue = TaskQueue()
    queue.register_handler("serial", handler)
    for n in range(5):
        await queue.add_job("serial", n)
    await queue.wait_idle()

    assert running["max"] == 1


@pytest.mark.asyncio
async def test_jobs_wait_for_a_handler():
    seen = []

    async def handler(payload):
        seen.append(payload)

    queue = TaskQueue()
    await queue.add_job("late", "x")
    await queue.wait_idle()
    assert queue.queue_size("late") == 1

    queue.register_handler("late", handler)
    await queue.wait_idle()

    assert seen == ["x"]


@pytest.mark.asyncio
async def test_later_registration_replaces_handler():
    seen = []

    async def first(payload):
        seen.append(("first", payload))

    async def second(payload):
        seen.append(("second", payload))

    queue = TaskQueue()
    queue.register_handler("t", first)
    queue.register_handler("t", second)
    await queue.add_job("t", 1)
    await queue.wait_idle()

    assert seen == [("second", 1)]


@pytest.mark.asyncio
async def test_async_failure_callback_is_awaited():
    reported = []

    async def fails(payload):
        raise ValueError("bad")

    async def on_failure(job, error):
        reported.append(job.attempts)

    queue = TaskQueue(on_failure=on_failure)
    queue.register_handler("t", fails)
    await queue.add_job("t", None, max_attempts=1)
    await queue.wait_idle()

    assert reported == [1]
