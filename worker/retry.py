"""
Retry planner — decides what happens when a job attempt fails.

Two outcomes:
1. retries > 0  → retries -= 1, status back to PENDING, scheduled_for pushed out
                  by the backoff delay, job re-appended to its priority bucket
2. retries == 0 → status FAILED, job moves to the dead-letter store

A handler raising PermanentJobError skips straight to outcome 2 whatever its
remaining retry budget.

Backoff is exponential with a ceiling:

    delay(attempt) = min(base * 2 ** (attempt - 1), max_delay)

where attempt is the 1-indexed attempt that just failed. With base=1000ms and
max=60000ms the retries wait 1000, 2000, 4000, 8000, ... 60000, 60000 ms.

Lifecycle on failure:
    PROCESSING → (exception) → PENDING  (retries left, delayed)
    PROCESSING → (exception) → FAILED   (retries exhausted → dead-letter store)

Why re-append to the bucket instead of a separate retry queue?
The dispatcher already skips jobs whose scheduled_for is in the future, so a
delayed retry waits in its ordinary bucket. No special retry queue needed, and
the job keeps its original priority tier (no boost, no demotion).
"""

import logging
from datetime import timedelta
from typing import Optional

from models.enums import JobEvent
from models.errors import PermanentJobError
from models.job import Job, utcnow
from scheduler.priority import PriorityJobStore
from worker.events import EventBus
from worker.history import DeadLetterStore

logger = logging.getLogger(__name__)


class RetryPlanner:

    def __init__(
        self,
        store: PriorityJobStore,
        dead_letters: DeadLetterStore,
        events: EventBus,
        base_delay_ms: int = 1_000,
        max_delay_ms: int = 60_000,
    ):
        self._store = store
        self._dead_letters = dead_letters
        self._events = events
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    def should_retry(self, job: Job, error: Optional[BaseException] = None) -> bool:
        if isinstance(error, PermanentJobError):
            return False
        return job.retries > 0

    def backoff_delay(self, attempts: int) -> int:
        """Delay in ms before retrying after the given (1-indexed) failed attempt."""
        exponent = max(attempts, 1) - 1
        return min(self.base_delay_ms * (2 ** exponent), self.max_delay_ms)

    def handle_failure(self, job: Job, error: BaseException) -> None:
        """
        Called by the worker pool after an attempt raised or timed out.

        The job must already be out of the active set; this method puts it in
        exactly one place — its bucket or the dead-letter store.
        """
        job.last_error = str(error) or type(error).__name__

        if self.should_retry(job, error):
            self._schedule_retry(job)
        else:
            self._dead_letter(job)

    def _schedule_retry(self, job: Job) -> None:
        delay_ms = self.backoff_delay(job.attempts)
        job.mark_retry(utcnow() + timedelta(milliseconds=delay_ms))
        self._store.enqueue(job)

        logger.info(
            f"Job retry scheduled: {job.type} ({job.id}) in {delay_ms}ms "
            f"({job.retries} retries left)"
        )
        self._events.emit(JobEvent.RETRIED, job)

    def _dead_letter(self, job: Job) -> None:
        job.mark_failed(utcnow())
        self._dead_letters.add(job)

        logger.warning(
            f"Job {job.id} [{job.type}] failed after {job.attempts} attempts, "
            f"moved to dead-letter queue: {job.last_error}"
        )
        self._events.emit(JobEvent.FAILED, job)
