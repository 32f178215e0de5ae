"""
Metrics collector — counts every lifecycle transition it is told about.

The collector is purely observational: it subscribes to the event bus and
never influences scheduling. Counters:

    total      job:added
    completed  job:completed  (+ a processing-time sample)
    retried    job:retried
    failed     job:failed
    cancelled  job:cancelled
    active     +1 on job:started, -1 on completed / retried / failed

Processing times are kept in a bounded deque (last N samples, default 1000)
and averaged on demand. Queue depths, dead-letter size and worker counts are
read live from the service when a snapshot is taken.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from models.enums import JobEvent
from models.job import Job
from worker.events import EventBus


@dataclass
class MetricsSnapshot:
    uptime_hours: float
    total_jobs: int
    completed_jobs: int
    failed_jobs: int
    retried_jobs: int
    cancelled_jobs: int
    active_jobs: int
    active_workers: int
    queue_sizes: dict[str, int] = field(default_factory=dict)
    dead_letter_size: int = 0
    jobs_per_hour: int = 0
    success_rate: float = 100.0        # percent of created jobs that completed
    avg_processing_time_ms: int = 0
    registered_handlers: int = 0


@dataclass
class HealthStatus:
    status: str                 # "healthy" below 80% queue utilization, else "warning"
    active_workers: int
    max_workers: int
    queue_utilization: float    # percent of QUEUE_MAX_SIZE in use
    dead_letter_size: int
    processing: bool


class MetricsCollector:

    def __init__(self, max_samples: int = 1_000):
        self.total_jobs = 0
        self.completed_jobs = 0
        self.failed_jobs = 0
        self.retried_jobs = 0
        self.cancelled_jobs = 0
        self.active_jobs = 0
        self._processing_times: deque[float] = deque(maxlen=max_samples)
        self._started_at = time.monotonic()

    def attach(self, events: EventBus) -> None:
        events.subscribe(JobEvent.ADDED, self._on_added)
        events.subscribe(JobEvent.STARTED, self._on_started)
        events.subscribe(JobEvent.COMPLETED, self._on_completed)
        events.subscribe(JobEvent.RETRIED, self._on_retried)
        events.subscribe(JobEvent.FAILED, self._on_failed)
        events.subscribe(JobEvent.CANCELLED, self._on_cancelled)

    # ── Event handlers ──────────────────────────────────────────

    def _on_added(self, job: Job) -> None:
        self.total_jobs += 1

    def _on_started(self, job: Job) -> None:
        self.active_jobs += 1

    def _on_completed(self, job: Job) -> None:
        self.completed_jobs += 1
        self.active_jobs -= 1
        if job.started_at is not None and job.completed_at is not None:
            elapsed = (job.completed_at - job.started_at).total_seconds() * 1000
            self.record_processing_time(elapsed)

    def _on_retried(self, job: Job) -> None:
        self.retried_jobs += 1
        self.active_jobs -= 1

    def _on_failed(self, job: Job) -> None:
        self.failed_jobs += 1
        self.active_jobs -= 1

    def _on_cancelled(self, job: Job) -> None:
        self.cancelled_jobs += 1

    # ── Derived values ──────────────────────────────────────────

    def reset_active(self) -> None:
        """Forget in-flight attempts abandoned without a terminal event (service stop)."""
        self.active_jobs = 0

    def record_processing_time(self, elapsed_ms: float) -> None:
        self._processing_times.append(elapsed_ms)

    @property
    def sample_count(self) -> int:
        return len(self._processing_times)

    def average_processing_time_ms(self) -> int:
        if not self._processing_times:
            return 0
        return round(sum(self._processing_times) / len(self._processing_times))

    def uptime_hours(self, now: Optional[float] = None) -> float:
        now = time.monotonic() if now is None else now
        return (now - self._started_at) / 3600

    def snapshot(
        self,
        queue_sizes: dict[str, int],
        dead_letter_size: int,
        active_workers: int,
        registered_handlers: int,
    ) -> MetricsSnapshot:
        uptime = self.uptime_hours()
        success_rate = (
            round(self.completed_jobs / self.total_jobs * 100, 2) if self.total_jobs else 100.0
        )
        return MetricsSnapshot(
            uptime_hours=round(uptime, 2),
            total_jobs=self.total_jobs,
            completed_jobs=self.completed_jobs,
            failed_jobs=self.failed_jobs,
            retried_jobs=self.retried_jobs,
            cancelled_jobs=self.cancelled_jobs,
            active_jobs=self.active_jobs,
            active_workers=active_workers,
            queue_sizes=dict(queue_sizes),
            dead_letter_size=dead_letter_size,
            jobs_per_hour=round(self.total_jobs / uptime) if uptime > 0 else 0,
            success_rate=success_rate,
            avg_processing_time_ms=self.average_processing_time_ms(),
            registered_handlers=registered_handlers,
        )
