"""
Tests for the WorkerPool: timeouts, concurrency ceiling, late results and
synchronous handlers.

Jobs go in through QueueService.add_job so they carry real defaults, and are
handed to the pool either by the running dispatcher or directly through
process_job().
"""

import asyncio
import threading
import time

import pytest

from jobs.base import AbstractJobHandler
from jobs.registry import register_default_handlers
from models.enums import JobEvent, JobStatus
from models.errors import PermanentJobError
from worker.service import QueueService


@pytest.mark.asyncio
async def test_process_job_completes_and_records_history(service):
    job = service.add_job("echo", {"a": 1})
    service.store.remove(job.id)

    await service.pool.process_job(job)

    assert job.status == JobStatus.COMPLETED
    assert job.result == {"received": {"a": 1}}
    assert job.progress == 100
    assert job.attempts == 1
    assert service.history.get(job.id) is job
    assert service.pool.active_count == 0


@pytest.mark.asyncio
async def test_submit_refuses_when_full(service):
    release = asyncio.Event()

    async def block(data, job):
        await release.wait()

    service.register_handler("block", block)
    service.pool.max_workers = 1
    first = service.add_job("block")
    second = service.add_job("block")
    service.store.remove(first.id)
    service.store.remove(second.id)

    service.pool.submit(first)
    with pytest.raises(RuntimeError, match="capacity"):
        service.pool.submit(second)
    release.set()


@pytest.mark.asyncio
async def test_timeout_retries_then_dead_letters(running, wait_until):
    """A handler slower than its timeout fails every attempt: 1 + retries attempts, then dead letter."""

    async def slow(data, job):
        await asyncio.sleep(1)

    running.register_handler("slow", slow)
    job = running.add_job("slow", timeout=20, retries=2)

    await wait_until(lambda: job.status == JobStatus.FAILED, timeout=3.0)

    assert job.attempts == 3
    assert job.last_error == "Job execution timeout after 20ms"
    assert running.get_dead_letter_jobs() == [job]


@pytest.mark.asyncio
async def test_concurrency_never_exceeds_max_workers(fast_settings, wait_until):
    fast_settings.QUEUE_MAX_WORKERS = 2
    service = QueueService(fast_settings)
    register_default_handlers(service.registry)

    in_flight = 0
    peak = 0

    async def tracked(data, job):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.03)
        in_flight -= 1

    service.register_handler("tracked", tracked)
    jobs = [service.add_job("tracked") for _ in range(6)]

    await service.start()
    try:
        await wait_until(lambda: all(j.status == JobStatus.COMPLETED for j in jobs), timeout=3.0)
    finally:
        await service.stop()

    assert peak == 2


@pytest.mark.asyncio
async def test_late_result_is_discarded(running, wait_until):
    finished = asyncio.Event()

    async def late(data, job):
        await asyncio.sleep(0.1)
        finished.set()
        return "too late"

    running.register_handler("late", late)
    job = running.add_job("late", timeout=20, retries=0)

    await wait_until(lambda: job.status == JobStatus.FAILED)
    await asyncio.wait_for(finished.wait(), timeout=1.0)
    await asyncio.sleep(0.01)

    # The handler did finish, but the job stays failed and keeps no result
    assert job.status == JobStatus.FAILED
    assert job.result is None
    assert running.history.get(job.id) is None


@pytest.mark.asyncio
async def test_cancel_on_timeout_cancels_handler(running, wait_until):
    cancelled = asyncio.Event()

    class Cooperative(AbstractJobHandler):
        cancel_on_timeout = True

        async def run(self, data, job):
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        @property
        def job_type(self):
            return "cooperative"

    running.register_handler("cooperative", Cooperative())
    job = running.add_job("cooperative", timeout=20, retries=0)

    await wait_until(lambda: job.status == JobStatus.FAILED)
    await asyncio.wait_for(cancelled.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_sync_handler_runs_in_thread(running, wait_until):
    seen = {}

    def blocking(data, job):
        seen["thread"] = threading.current_thread()
        time.sleep(0.02)
        job.update_progress(50)
        return data["x"] * 2

    progress = []
    running.subscribe(JobEvent.PROGRESS, lambda j: progress.append(j.progress))
    running.register_handler("blocking", blocking)
    job = running.add_job("blocking", {"x": 21})

    await wait_until(lambda: job.status == JobStatus.COMPLETED)
    await asyncio.sleep(0.01)

    assert job.result == 42
    assert seen["thread"] is not threading.main_thread()
    assert 50 in progress


@pytest.mark.asyncio
async def test_handler_exception_retries_with_message(running, wait_until):
    attempts = []

    async def flaky(data, job):
        attempts.append(job.attempts)
        if len(attempts) < 3:
            raise RuntimeError(f"attempt {len(attempts)} failed")
        return "ok"

    running.register_handler("flaky", flaky)
    job = running.add_job("flaky", retries=3)

    await wait_until(lambda: job.status == JobStatus.COMPLETED, timeout=3.0)

    assert attempts == [1, 2, 3]
    assert job.result == "ok"
    assert job.retries == 1
    assert job.last_error == "attempt 2 failed"


@pytest.mark.asyncio
async def test_permanent_error_dead_letters_immediately(running, wait_until):
    async def declined(data, job):
        raise PermanentJobError("card declined")

    running.register_handler("declined", declined)
    job = running.add_job("declined", retries=5)

    await wait_until(lambda: job.status == JobStatus.FAILED)
    assert job.attempts == 1
    assert running.dead_letters.get(job.id) is job


@pytest.mark.asyncio
async def test_shutdown_releases_all_workers(service):
    release = asyncio.Event()

    async def block(data, job):
        await release.wait()

    service.register_handler("block", block)
    job = service.add_job("block")
    service.store.remove(job.id)
    service.pool.submit(job)
    assert service.pool.active_count == 1

    await service.pool.shutdown()

    assert service.pool.active_count == 0
    assert service.pool.has_capacity()
    release.set()


@pytest.mark.asyncio
async def test_plain_callable_returning_coroutine_is_awaited(running, wait_until):
    ran = []

    async def real(data):
        ran.append(data)
        return {"doubled": data["x"] * 2}

    running.register_handler("wrapped", lambda data, job: real(data))
    job = running.add_job("wrapped", {"x": 1})

    await wait_until(lambda: job.status == JobStatus.COMPLETED)

    assert ran == [{"x": 1}]
    assert job.result == {"doubled": 2}


@pytest.mark.asyncio
async def test_awaitable_result_failure_is_retried(running, wait_until):
    async def broken(data):
        raise RuntimeError("inner failure")

    running.register_handler("wrapped-broken", lambda data, job: broken(data))
    job = running.add_job("wrapped-broken", retries=0)

    await wait_until(lambda: job.status == JobStatus.FAILED)

    assert job.last_error == "inner failure"
    assert job.result is None
