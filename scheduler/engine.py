"""
Dispatcher — the polling scheduling loop.

Runs as an asyncio task on the service's event loop. Every poll interval
(QUEUE_POLL_INTERVAL_MS, default 1s) it executes ONE cycle:

    1. Is there a free worker slot?      → if not, do nothing this tick
    2. Pull the highest-priority job whose scheduled_for has passed
    3. Hand it to the worker pool         → pool starts a task, returns at once

          PriorityJobStore            Dispatcher               WorkerPool
    ┌───────────────────────┐   ┌──────────────────┐   ┌──────────────────────┐
    │ critical/high/normal/ │──>│ 1 job per tick   │──>│ up to MAX_WORKERS    │
    │ low/bulk buckets      │   │ if capacity      │   │ concurrent attempts  │
    └───────────────────────┘   └──────────────────┘   └──────────────────────┘

The dispatcher never awaits a job. Many jobs make progress at once because
each attempt is its own task; the loop itself only ever waits on its timer.

At one dispatch per tick, throughput is capped at 1000 / QUEUE_POLL_INTERVAL_MS
job starts per second. Lower the interval if that matters more than idle CPU.
"""

import asyncio
import logging
from typing import Optional

from models.job import Job, utcnow
from scheduler.priority import PriorityJobStore
from worker.pool import WorkerPool

logger = logging.getLogger(__name__)


class Dispatcher:

    def __init__(self, store: PriorityJobStore, pool: WorkerPool, poll_interval_ms: int = 1_000):
        self._store = store
        self._pool = pool
        self._poll_interval = poll_interval_ms / 1000
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run_loop(), name="dispatcher")
        logger.info(f"Dispatcher started, polling every {self._poll_interval * 1000:.0f}ms")

    async def stop(self) -> None:
        """Stop the loop. In-flight jobs are the worker pool's business."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Dispatcher stopped")

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Dispatcher loop error: {e}", exc_info=True)

    def tick(self) -> Optional[Job]:
        """
        One dispatch cycle. Returns the job handed to the pool, or None.

        Public so tests (and callers that want to drain faster) can drive the
        dispatcher without waiting on its timer.
        """
        if not self._pool.has_capacity():
            return None

        job = self._store.dequeue_next(utcnow())
        if job is None:
            return None

        self._pool.submit(job)
        return job
