"""
QueueService — the public face of the job engine.

One instance per process, built from a Settings object and handed to whoever
needs it (the FastAPI app keeps it on app.state, worker/main.py owns its own).
All queues, workers and history are fields of this object; nothing lives in
module globals.

What the rest of the application calls:

    register_handler(job_type, handler)
    add_job(job_type, data, priority=..., delay=..., retries=..., timeout=...,
            scheduled_for=..., correlation_id=...)         → Job
    get_job(job_id)                                        → Job | None
    get_jobs_by_type(job_type, status=None)                → list[Job]
    cancel_job(job_id)                                     → bool
    get_metrics() / get_health_status() / get_dead_letter_jobs()
    subscribe(JobEvent.X, callback)

add_job is fire-and-forget: it validates, enqueues and returns the pending Job.
Failures during execution are recorded on the Job and announced through
job:retried / job:failed events; callers poll get_job() or subscribe.

Background loops (started by start(), all on the current event loop):
- Dispatcher: one dispatch cycle per poll interval
- Metrics reporter: logs + emits a snapshot every QUEUE_METRICS_INTERVAL_MS
- Cleanup: evicts expired history / dead letters every QUEUE_CLEANUP_INTERVAL_MS
"""

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

from config.settings import Settings
from jobs.registry import Handler, HandlerRegistry
from models.enums import JobEvent, JobStatus, JobType
from models.errors import QueueFull
from models.job import Job, clamp_priority, new_correlation_id, utcnow
from scheduler.engine import Dispatcher
from scheduler.priority import PriorityJobStore
from worker.cleanup import sweep_expired
from worker.events import EventBus
from worker.history import DeadLetterStore, JobHistory
from worker.metrics import HealthStatus, MetricsCollector, MetricsSnapshot
from worker.pool import WorkerPool
from worker.retry import RetryPlanner

logger = logging.getLogger(__name__)


class QueueService:

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or Settings()

        self.events = EventBus()
        self.registry = HandlerRegistry()
        self.store = PriorityJobStore()
        self.history = JobHistory(max_size=self.config.QUEUE_HISTORY_MAX_SIZE)
        self.dead_letters = DeadLetterStore()

        self.retry_planner = RetryPlanner(
            self.store,
            self.dead_letters,
            self.events,
            base_delay_ms=self.config.QUEUE_RETRY_DELAY_MS,
            max_delay_ms=self.config.QUEUE_MAX_RETRY_DELAY_MS,
        )
        self.pool = WorkerPool(
            self.registry,
            self.retry_planner,
            self.history,
            self.events,
            max_workers=self.config.QUEUE_MAX_WORKERS,
        )
        self.dispatcher = Dispatcher(
            self.store, self.pool, poll_interval_ms=self.config.QUEUE_POLL_INTERVAL_MS
        )

        self.metrics = MetricsCollector(max_samples=self.config.QUEUE_PROCESSING_SAMPLES)
        self.metrics.attach(self.events)

        self._background: list[asyncio.Task] = []

    # ── Registration & observation ──────────────────────────────

    def register_handler(self, job_type: Union[JobType, str], handler: Handler) -> None:
        self.registry.register(job_type, handler)

    def subscribe(self, event: JobEvent, callback: Callable[[Any], None]) -> Callable[[], None]:
        return self.events.subscribe(event, callback)

    # ── Job creation ────────────────────────────────────────────

    def add_job(
        self,
        job_type: Union[JobType, str],
        data: Any = None,
        *,
        priority: Optional[int] = None,
        delay: int = 0,
        retries: Optional[int] = None,
        timeout: Optional[int] = None,
        scheduled_for: Optional[datetime] = None,
        correlation_id: Optional[str] = None,
    ) -> Job:
        """
        Validate and enqueue a job. Returns the pending Job.

        Args:
            priority: 1 (most urgent) to 10; out-of-range values are clamped
            delay: ms before the job becomes eligible (ignored if scheduled_for is set)
            retries: attempts allowed after the first one fails
            timeout: ms allowed per attempt
            scheduled_for: absolute eligibility time; naive datetimes are taken as UTC

        Raises:
            UnknownJobType: no handler registered for job_type
            QueueFull: queued + processing jobs already at QUEUE_MAX_SIZE
            ValueError: negative delay/retries or non-positive timeout
        Nothing is enqueued when any of these is raised.
        """
        key = self.registry.ensure_registered(job_type)

        if self.non_terminal_count() >= self.config.QUEUE_MAX_SIZE:
            raise QueueFull(self.config.QUEUE_MAX_SIZE)

        retries = self.config.QUEUE_MAX_RETRIES if retries is None else retries
        timeout = self.config.QUEUE_WORKER_TIMEOUT_MS if timeout is None else timeout
        priority = self.config.QUEUE_DEFAULT_PRIORITY if priority is None else priority
        if retries < 0:
            raise ValueError(f"retries must be >= 0, got {retries}")
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")

        now = utcnow()
        if scheduled_for is not None:
            if scheduled_for.tzinfo is None:
                scheduled_for = scheduled_for.replace(tzinfo=timezone.utc)
        else:
            scheduled_for = now + timedelta(milliseconds=delay)

        job = Job(
            type=key,
            data=data if data is not None else {},
            priority=clamp_priority(priority),
            retries=retries,
            max_retries=retries,
            timeout=timeout,
            correlation_id=correlation_id or new_correlation_id(),
            created_at=now,
            scheduled_for=scheduled_for,
        )
        tier = self.store.enqueue(job)

        logger.info(f"Job added: {job.type} ({job.id}) to {tier.value} queue")
        self.events.emit(JobEvent.ADDED, job)
        return job

    # ── Lookup & cancellation ───────────────────────────────────

    def get_job(self, job_id: str) -> Optional[Job]:
        """Search active, history, queued and dead-letter jobs, in that order."""
        return (
            self.pool.get_active(job_id)
            or self.history.get(job_id)
            or self.store.find(job_id)
            or self.dead_letters.get(job_id)
        )

    def get_jobs_by_type(
        self, job_type: Union[JobType, str], status: Optional[Union[JobStatus, str]] = None
    ) -> list[Job]:
        key = job_type.value if isinstance(job_type, JobType) else job_type
        wanted = JobStatus(status) if status is not None else None
        return [
            job for job in self._all_jobs()
            if job.type == key and (wanted is None or job.status == wanted)
        ]

    def cancel_job(self, job_id: str) -> bool:
        """Cancel a job that is still waiting in a bucket. Running jobs can't be cancelled."""
        job = self.store.remove(job_id)
        if job is None:
            return False

        job.mark_cancelled(utcnow())
        logger.info(f"Job cancelled: {job.type} ({job.id})")
        self.events.emit(JobEvent.CANCELLED, job)
        return True

    def get_dead_letter_jobs(self) -> list[Job]:
        return list(self.dead_letters)

    def _all_jobs(self) -> list[Job]:
        return [
            *self.pool.active_jobs(),
            *self.history,
            *self.store,
            *self.dead_letters,
        ]

    # ── Monitoring ──────────────────────────────────────────────

    def non_terminal_count(self) -> int:
        """Queued + processing jobs — the figure QUEUE_MAX_SIZE caps."""
        return self.store.size() + self.pool.active_count

    def get_metrics(self) -> MetricsSnapshot:
        return self.metrics.snapshot(
            queue_sizes=self.store.sizes(),
            dead_letter_size=len(self.dead_letters),
            active_workers=self.pool.active_count,
            registered_handlers=len(self.registry),
        )

    def get_health_status(self) -> HealthStatus:
        utilization = self.non_terminal_count() / self.config.QUEUE_MAX_SIZE
        return HealthStatus(
            status="healthy" if utilization < 0.8 else "warning",
            active_workers=self.pool.active_count,
            max_workers=self.pool.max_workers,
            queue_utilization=round(utilization * 100, 1),
            dead_letter_size=len(self.dead_letters),
            processing=self.pool.active_count > 0,
        )

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        return sweep_expired(
            self.history,
            self.dead_letters,
            completed_ttl_ms=self.config.QUEUE_COMPLETED_TTL_MS,
            failed_ttl_ms=self.config.QUEUE_FAILED_TTL_MS,
            now=now,
        )

    def report_metrics(self) -> MetricsSnapshot:
        snapshot = self.get_metrics()
        logger.info(f"Queue metrics: {asdict(snapshot)}")
        self.events.emit(JobEvent.METRICS, snapshot)
        return snapshot

    # ── Lifecycle ───────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self.dispatcher.running

    async def start(self) -> None:
        """Start the dispatcher and the periodic metrics / cleanup loops."""
        if self.running:
            return
        self.dispatcher.start()

        loop = asyncio.get_running_loop()
        if self.config.QUEUE_ENABLE_METRICS:
            self._background.append(
                loop.create_task(
                    self._every(self.config.QUEUE_METRICS_INTERVAL_MS, self.report_metrics),
                    name="queue-metrics",
                )
            )
        self._background.append(
            loop.create_task(
                self._every(self.config.QUEUE_CLEANUP_INTERVAL_MS, self.cleanup_expired),
                name="queue-cleanup",
            )
        )

        logger.info(
            f"QueueService started: max_workers={self.config.QUEUE_MAX_WORKERS}, "
            f"handlers={len(self.registry)}, metrics={self.config.QUEUE_ENABLE_METRICS}"
        )

    async def stop(self) -> None:
        """
        Stop every loop, abandon in-flight attempts and drop all in-memory state.

        Jobs are not persisted, so anything still queued is lost here.
        """
        for task in self._background:
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()

        await self.dispatcher.stop()
        await self.pool.shutdown()
        self.metrics.reset_active()

        self.store.clear()
        self.history.clear()
        self.dead_letters.clear()
        logger.info("QueueService stopped")

    async def _every(self, interval_ms: int, action: Callable[[], Any]) -> None:
        while True:
            await asyncio.sleep(interval_ms / 1000)
            try:
                action()
            except Exception as e:
                logger.error(f"Periodic task {action.__name__} failed: {e}", exc_info=True)
