"""
In-memory Job record and its state machine.

Jobs never touch a database: the engine keeps them in process memory and a
restart loses everything (see DESIGN.md, open questions). The record is a plain
dataclass so handlers, tests and the API schemas can all read it directly.

Key design decisions:
- Priority is clamped to 1-10 on creation and mapped to one of five tiers
- Timestamps at every lifecycle stage (created / scheduled_for / started / completed)
- retries counts DOWN (attempts remaining), attempts counts UP (executions made)
- Status changes go through mark_* methods; each one checks the edge exists

State machine:

    pending ──> processing ──> completed
       │            │
       │            ├──> pending    (retry edge, scheduled_for pushed out)
       │            └──> failed     (retries exhausted → dead-letter store)
       └──> cancelled               (only while still queued)
"""

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from models.enums import JobStatus, QueueTier
from models.errors import InvalidTransition

_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.CANCELLED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.PENDING, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _epoch_ms() -> int:
    return time.time_ns() // 1_000_000


def new_job_id() -> str:
    return f"job_{_epoch_ms()}_{secrets.token_hex(6)}"


def new_worker_id() -> str:
    return f"worker_{_epoch_ms()}_{secrets.token_hex(4)}"


def new_correlation_id() -> str:
    return f"corr_{_epoch_ms()}_{secrets.token_hex(8)}"


def clamp_priority(priority: int) -> int:
    return max(1, min(10, int(priority)))


def priority_to_tier(priority: int) -> QueueTier:
    if priority <= 2:
        return QueueTier.CRITICAL
    if priority <= 4:
        return QueueTier.HIGH
    if priority <= 6:
        return QueueTier.NORMAL
    if priority <= 8:
        return QueueTier.LOW
    return QueueTier.BULK


@dataclass
class Job:
    # ── Identity ────────────────────────────────────────────────
    type: str
    data: Any = None
    id: str = field(default_factory=new_job_id)
    correlation_id: str = field(default_factory=new_correlation_id)

    # ── Scheduling fields ───────────────────────────────────────
    priority: int = 5
    timeout: int = 300_000  # ms per attempt
    max_retries: int = 3
    retries: int = 3

    # ── Lifecycle timestamps ────────────────────────────────────
    created_at: datetime = field(default_factory=utcnow)
    scheduled_for: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # ── Status & results ────────────────────────────────────────
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    progress: int = 0
    result: Any = None

    # Set by the worker pool while the job runs; fires job:progress events
    _progress_listener: Optional[Callable[["Job"], None]] = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def tier(self) -> QueueTier:
        return priority_to_tier(self.priority)

    def is_eligible(self, now: datetime) -> bool:
        return self.status == JobStatus.PENDING and self.scheduled_for <= now

    def set_progress_listener(self, listener: Optional[Callable[["Job"], None]]) -> None:
        self._progress_listener = listener

    def update_progress(self, value: int) -> None:
        """Handler-facing progress report (0-100). Notifies subscribers while running."""
        self.progress = max(0, min(100, int(value)))
        if self._progress_listener is not None:
            self._progress_listener(self)

    # ── Transitions ─────────────────────────────────────────────

    def _transition(self, target: JobStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Job {self.id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def mark_processing(self, now: datetime) -> None:
        self._transition(JobStatus.PROCESSING)
        self.started_at = now
        self.attempts += 1

    def mark_completed(self, result: Any, now: datetime) -> None:
        self._transition(JobStatus.COMPLETED)
        self.completed_at = now
        self.result = result
        self.progress = 100

    def mark_retry(self, scheduled_for: datetime) -> None:
        self._transition(JobStatus.PENDING)
        self.retries -= 1
        self.started_at = None
        self.scheduled_for = scheduled_for

    def mark_failed(self, now: datetime) -> None:
        self._transition(JobStatus.FAILED)
        self.completed_at = now

    def mark_cancelled(self, now: datetime) -> None:
        self._transition(JobStatus.CANCELLED)
        self.completed_at = now

    def __repr__(self) -> str:
        return f"<Job {self.id} [{self.type}] {self.status.value}>"


@dataclass
class Worker:
    """Execution context for one attempt of one job. Never outlives the attempt."""

    job_id: str
    start_time: float  # time.monotonic()
    id: str = field(default_factory=new_worker_id)
    timeout_handle: Any = None  # asyncio.TimerHandle armed for job.timeout
