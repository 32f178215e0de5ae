"""
Terminal stores: completed-job history and the dead-letter queue.

JobHistory
    Completed jobs keyed by id, kept so callers can poll get_job() for the
    result after the fact. Bounded two ways: entries older than the completed
    TTL are evicted by the cleanup sweep, and when max_size is reached the
    oldest entry is dropped on insert.

DeadLetterStore
    Jobs that exhausted their retries (or raised PermanentJobError). Append-only
    and bounded only by the failed-job TTL. Nothing here is replayed
    automatically — an operator reads the list and decides what to resubmit.
"""

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Iterator, Optional

from models.job import Job


class JobHistory:

    def __init__(self, max_size: int = 10_000):
        self._jobs: "OrderedDict[str, Job]" = OrderedDict()
        self._max_size = max_size

    def add(self, job: Job) -> None:
        self._jobs[job.id] = job
        self._jobs.move_to_end(job.id)
        while len(self._jobs) > self._max_size:
            self._jobs.popitem(last=False)

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def evict_older_than(self, ttl_ms: int, now: datetime) -> int:
        """Drop completed jobs whose completed_at is older than ttl_ms. Returns count."""
        cutoff = now - timedelta(milliseconds=ttl_ms)
        expired = [
            job_id for job_id, job in self._jobs.items()
            if job.completed_at is not None and job.completed_at < cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
        return len(expired)

    def clear(self) -> None:
        self._jobs.clear()

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs.values()))

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs


class DeadLetterStore:

    def __init__(self):
        self._jobs: list[Job] = []

    def add(self, job: Job) -> None:
        self._jobs.append(job)

    def get(self, job_id: str) -> Optional[Job]:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    def evict_older_than(self, ttl_ms: int, now: datetime) -> int:
        cutoff = now - timedelta(milliseconds=ttl_ms)
        kept = [job for job in self._jobs if job.completed_at is None or job.completed_at >= cutoff]
        evicted = len(self._jobs) - len(kept)
        self._jobs = kept
        return evicted

    def clear(self) -> None:
        self._jobs.clear()

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs))

    def __len__(self) -> int:
        return len(self._jobs)
