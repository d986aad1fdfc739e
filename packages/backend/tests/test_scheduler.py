"""Scheduler tests — delayed jobs, periodic jobs, drain, shutdown."""

import asyncio

import pytest

from hivemind.dispatcher.scheduler import Scheduler


@pytest.mark.asyncio
async def test_call_later_runs_after_delay():
    scheduler = Scheduler()
    ran = []

    async def job():
        ran.append("done")

    handle = scheduler.call_later(0.01, job, name="one")
    assert ran == []
    await handle
    assert ran == ["done"]
    assert handle.done


@pytest.mark.asyncio
async def test_drain_waits_for_jobs_they_spawn():
    scheduler = Scheduler()
    order = []

    async def child():
        order.append("child")

    async def parent():
        order.append("parent")
        scheduler.call_later(0, child)

    scheduler.call_later(0, parent)
    await scheduler.drain()
    assert order == ["parent", "child"]
    assert len(scheduler) == 0


@pytest.mark.asyncio
async def test_failing_job_is_contained():
    scheduler = Scheduler()

    async def broken():
        raise RuntimeError("nope")

    scheduler.call_later(0, broken)
    await scheduler.drain()
    assert len(scheduler) == 0


@pytest.mark.asyncio
async def test_periodic_job_repeats_and_is_not_drained():
    scheduler = Scheduler()
    ticks = []

    scheduler.every(0.01, lambda: ticks.append(1), name="tick")
    await asyncio.sleep(0.06)
    # drain returns even though the periodic job never finishes
    await asyncio.wait_for(scheduler.drain(), timeout=1)
    assert len(ticks) >= 2

    await scheduler.shutdown()
    assert len(scheduler) == 0


@pytest.mark.asyncio
async def test_periodic_errors_do_not_stop_the_job():
    scheduler = Scheduler()
    calls = []

    def flaky():
        calls.append(1)
        raise ValueError("flaky")

    scheduler.every(0.01, flaky)
    await asyncio.sleep(0.06)
    assert len(calls) >= 2
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_jobs():
    scheduler = Scheduler()
    ran = []

    async def job():
        ran.append(1)

    handle = scheduler.call_later(10, job)
    await scheduler.shutdown()
    assert handle.done
    assert ran == []
