"""
Tests for the Dispatcher.

tick() is driven by hand for the ordering and capacity checks; the last tests
let the polling loop run on its own.
"""

import asyncio

import pytest

from models.enums import JobStatus


def _blocking_handler(release: asyncio.Event):
    async def handler(data, job):
        await release.wait()
        return data

    return handler


@pytest.mark.asyncio
async def test_tick_on_empty_store_returns_none(service):
    assert service.dispatcher.tick() is None


@pytest.mark.asyncio
async def test_tick_dispatches_one_job_in_tier_order(service):
    release = asyncio.Event()
    service.register_handler("block", _blocking_handler(release))

    low = service.add_job("block", priority=9)
    critical = service.add_job("block", priority=1)

    assert service.dispatcher.tick() is critical
    assert critical.status == JobStatus.PROCESSING
    assert low.status == JobStatus.PENDING

    assert service.dispatcher.tick() is low
    release.set()


@pytest.mark.asyncio
async def test_tick_does_nothing_without_capacity(service, wait_until):
    release = asyncio.Event()
    service.register_handler("block", _blocking_handler(release))
    service.pool.max_workers = 1

    first = service.add_job("block")
    second = service.add_job("block")

    assert service.dispatcher.tick() is first
    assert service.dispatcher.tick() is None
    assert second.status == JobStatus.PENDING

    release.set()
    await wait_until(lambda: first.status == JobStatus.COMPLETED)
    assert service.dispatcher.tick() is second


@pytest.mark.asyncio
async def test_start_and_stop(service):
    assert not service.dispatcher.running
    service.dispatcher.start()
    assert service.dispatcher.running

    await service.dispatcher.stop()
    assert not service.dispatcher.running


@pytest.mark.asyncio
async def test_loop_drains_queue(running, wait_until):
    jobs = [running.add_job("echo", {"n": i}) for i in range(5)]

    await wait_until(lambda: all(j.status == JobStatus.COMPLETED for j in jobs))
    assert [j.result for j in jobs] == [{"received": {"n": i}} for i in range(5)]


@pytest.mark.asyncio
async def test_loop_survives_tick_errors(running, wait_until, monkeypatch):
    calls = {"n": 0}
    original = running.store.dequeue_next

    def flaky(now):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return original(now)

    monkeypatch.setattr(running.store, "dequeue_next", flaky)
    job = running.add_job("echo", {"ok": True})

    await wait_until(lambda: job.status == JobStatus.COMPLETED)
    assert running.dispatcher.running
