"""
Tiered priority job store.

Jobs are routed into one of five FIFO buckets by their numeric priority:

    priority 1-2  → critical
    priority 3-4  → high
    priority 5-6  → normal
    priority 7-8  → low
    priority 9-10 → bulk

dequeue_next(now) scans the buckets in that fixed order and, within a bucket,
returns the FIRST job that is eligible (pending and scheduled_for <= now).
A delayed or retried job therefore loses its place in line until its delay
elapses, and jobs behind it in the same bucket overtake it.

Data structure: one list per tier
- enqueue:      append      → O(1)
- dequeue_next: scan+splice → O(n) in the bucket size

A heap would make dequeue O(log n) but could not express "first eligible job
in FIFO order" without re-heaping on every tick; queue depths here are bounded
by QUEUE_MAX_SIZE so the scan is fine.

Downside: strict priority. A saturated critical tier starves every lower tier
for as long as it stays saturated. There is no aging.
"""

from datetime import datetime
from typing import Callable, Iterator, Optional

from models.enums import QueueTier
from models.job import Job


class PriorityJobStore:

    def __init__(self):
        self._buckets: dict[QueueTier, list[Job]] = {tier: [] for tier in QueueTier}

    def enqueue(self, job: Job) -> QueueTier:
        """Append to the tail of the job's tier. Returns the tier used."""
        tier = job.tier
        self._buckets[tier].append(job)
        return tier

    def dequeue_next(self, now: datetime) -> Optional[Job]:
        """Remove and return the highest-priority eligible job, or None."""
        for tier in QueueTier:
            bucket = self._buckets[tier]
            for index, job in enumerate(bucket):
                if job.is_eligible(now):
                    return bucket.pop(index)
        return None

    def remove(self, job_id: str) -> Optional[Job]:
        """Remove a job by id from whichever bucket holds it."""
        return self.remove_where(lambda job: job.id == job_id)

    def remove_where(self, predicate: Callable[[Job], bool]) -> Optional[Job]:
        for bucket in self._buckets.values():
            for index, job in enumerate(bucket):
                if predicate(job):
                    return bucket.pop(index)
        return None

    def find(self, job_id: str) -> Optional[Job]:
        for job in self:
            if job.id == job_id:
                return job
        return None

    def sizes(self) -> dict[str, int]:
        return {tier.value: len(bucket) for tier, bucket in self._buckets.items()}

    def size(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def clear(self) -> None:
        for bucket in self._buckets.values():
            bucket.clear()

    def __iter__(self) -> Iterator[Job]:
        """Jobs in dispatch-scan order (tier order, then FIFO)."""
        for tier in QueueTier:
            yield from list(self._buckets[tier])

    def __len__(self) -> int:
        return self.size()
