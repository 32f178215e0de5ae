"""
Worker pool — executes jobs with a per-attempt timeout and a concurrency ceiling.

Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         WorkerPool                           │
    │                                                              │
    │  submit(job)  ← called by the Dispatcher only when           │
    │     │           has_capacity() is True                       │
    │     │                                                        │
    │     ├─ claim: Worker record + active map, job → PROCESSING   │
    │     ▼                                                        │
    │  asyncio.Task per attempt                                    │
    │  ┌────────────────────────────┐   ┌────────────────────────┐ │
    │  │ handler(data, job)         │   │ timer (job.timeout ms) │ │
    │  │ async → awaited on loop    │ vs│ call_later → deadline  │ │
    │  │ sync  → asyncio.to_thread  │   │                        │ │
    │  └────────────────────────────┘   └────────────────────────┘ │
    │     │ whichever settles first                                │
    │     ▼                                                        │
    │  timer cleared → worker released →                           │
    │     success: COMPLETED → JobHistory                          │
    │     failure / timeout: RetryPlanner (retry or dead-letter)   │
    └──────────────────────────────────────────────────────────────┘

Timeouts do NOT kill the handler. When the deadline wins, the attempt is
failed with JobTimeoutError and the worker slot is reclaimed, but the handler
keeps running; whatever it eventually returns is discarded. Handlers that set
cancel_on_timeout = True opt in to having their task cancelled instead.

Everything here runs on the event loop thread, so the worker and active-job
maps need no lock. The only cross-thread path is progress reporting from
synchronous handlers, which is marshalled back with call_soon_threadsafe.
"""

import asyncio
import functools
import inspect
import logging
import time
from typing import Any, Optional

from jobs.registry import Handler, HandlerRegistry, is_async_handler
from models.enums import JobEvent
from models.errors import JobTimeoutError
from models.job import Job, Worker, utcnow
from worker.events import EventBus
from worker.history import JobHistory
from worker.retry import RetryPlanner

logger = logging.getLogger(__name__)


async def _invoke(handler: Handler, job: Job) -> Any:
    if is_async_handler(handler):
        result = await handler(job.data, job)
    else:
        # Blocking handlers run in a thread so they can't stall the dispatcher
        result = await asyncio.to_thread(handler, job.data, job)
    # Plain callables may still hand back a coroutine (lambdas, sync wrappers)
    if inspect.isawaitable(result):
        result = await result
    return result


def _expire(deadline: asyncio.Future) -> None:
    if not deadline.done():
        deadline.set_result(None)


def _discard_late_result(job_id: str, task: asyncio.Task) -> None:
    """Done-callback for handlers that outlived their timeout."""
    if task.cancelled():
        return
    exc = task.exception()  # marks the exception retrieved
    if exc is not None:
        logger.debug(f"Ignoring late failure from timed-out job {job_id}: {exc}")
    else:
        logger.debug(f"Discarding late result from timed-out job {job_id}")


class WorkerPool:

    def __init__(
        self,
        registry: HandlerRegistry,
        retry_planner: RetryPlanner,
        history: JobHistory,
        events: EventBus,
        max_workers: int = 5,
    ):
        self._registry = registry
        self._retry = retry_planner
        self._history = history
        self._events = events
        self.max_workers = max_workers

        self._workers: dict[str, Worker] = {}
        self._active_jobs: dict[str, Job] = {}
        self._tasks: set[asyncio.Task] = set()

    # ── Capacity & lookup ───────────────────────────────────────

    def has_capacity(self) -> bool:
        return len(self._workers) < self.max_workers

    @property
    def active_count(self) -> int:
        return len(self._workers)

    def get_active(self, job_id: str) -> Optional[Job]:
        return self._active_jobs.get(job_id)

    def active_jobs(self) -> list[Job]:
        return list(self._active_jobs.values())

    # ── Execution ───────────────────────────────────────────────

    def submit(self, job: Job) -> asyncio.Task:
        """
        Start one attempt of job and return the task driving it.

        The worker slot is claimed synchronously, before this returns, so the
        next has_capacity() check already counts it.
        """
        if not self.has_capacity():
            raise RuntimeError(f"Worker pool is at capacity ({self.max_workers})")

        handler = self._registry.get(job.type)
        worker = self._claim(job)

        task = asyncio.get_running_loop().create_task(
            self._run(job, worker, handler), name=f"run-{job.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_attempt_done)
        return task

    def _on_attempt_done(self, task: asyncio.Task) -> None:
        """
        Fired when an attempt task finishes. Normal success/failure handling
        happens inside _run(); this only surfaces bugs in that bookkeeping.
        """
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Unhandled worker exception: {exc}", exc_info=exc)

    async def process_job(self, job: Job) -> None:
        """Run one attempt of job and wait until it has settled."""
        await self.submit(job)

    def _claim(self, job: Job) -> Worker:
        worker = Worker(job_id=job.id, start_time=time.monotonic())
        self._workers[worker.id] = worker
        self._active_jobs[job.id] = job
        job.mark_processing(utcnow())

        logger.info(
            f"Processing job: {job.type} ({job.id}) with {worker.id}, "
            f"attempt {job.attempts}/{job.max_retries + 1}"
        )
        self._events.emit(JobEvent.STARTED, job)
        return worker

    def _release(self, job: Job, worker: Worker) -> None:
        self._workers.pop(worker.id, None)
        self._active_jobs.pop(job.id, None)

    async def _run(self, job: Job, worker: Worker, handler: Handler) -> None:
        loop = asyncio.get_running_loop()
        job.set_progress_listener(self._progress_listener(loop))

        execution = loop.create_task(_invoke(handler, job), name=f"handler-{job.id}")
        deadline = loop.create_future()
        worker.timeout_handle = loop.call_later(job.timeout / 1000, _expire, deadline)

        try:
            await asyncio.wait({execution, deadline}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # Pool shutdown: the handler is left to finish on its own
            execution.add_done_callback(functools.partial(_discard_late_result, job.id))
            raise
        finally:
            # Timer goes first: a late fire must never touch a settled job
            worker.timeout_handle.cancel()
            deadline.cancel()
            job.set_progress_listener(None)
            self._release(job, worker)

        if execution.done():
            self._settle(job, worker, execution)
            return

        if getattr(handler, "cancel_on_timeout", False):
            execution.cancel()
        execution.add_done_callback(functools.partial(_discard_late_result, job.id))

        logger.error(f"Job timeout: {job.type} ({job.id}) after {job.timeout}ms")
        self._retry.handle_failure(job, JobTimeoutError(job.timeout))

    def _settle(self, job: Job, worker: Worker, execution: asyncio.Task) -> None:
        if execution.cancelled():
            error: Optional[BaseException] = RuntimeError("Job execution was cancelled")
        else:
            error = execution.exception()

        if error is not None:
            logger.error(f"Job {job.id} [{job.type}] failed: {error}")
            self._retry.handle_failure(job, error)
            return

        elapsed_ms = (time.monotonic() - worker.start_time) * 1000
        job.mark_completed(execution.result(), utcnow())
        self._history.add(job)

        logger.info(f"Job completed: {job.type} ({job.id}) in {elapsed_ms:.0f}ms")
        self._events.emit(JobEvent.COMPLETED, job)

    def _progress_listener(self, loop: asyncio.AbstractEventLoop):
        def emit(job: Job) -> None:
            self._events.emit(JobEvent.PROGRESS, job)

        def listener(job: Job) -> None:
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                emit(job)
            else:
                loop.call_soon_threadsafe(emit, job)

        return listener

    async def shutdown(self) -> None:
        """Cancel in-flight attempts and forget them. Handlers are not awaited."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._workers.clear()
        self._active_jobs.clear()
