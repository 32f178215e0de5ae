"""
Tests for the tiered PriorityJobStore.

Jobs are dequeued tier by tier (critical → bulk), FIFO within a tier, and only
once their scheduled_for has passed.
"""

from datetime import timedelta

import pytest

from models.enums import JobStatus, QueueTier
from models.job import Job, priority_to_tier, utcnow
from scheduler.priority import PriorityJobStore


def _make_job(job_id: str, priority: int = 5, delay_ms: int = 0) -> Job:
    now = utcnow()
    return Job(
        type="echo",
        id=job_id,
        priority=priority,
        created_at=now,
        scheduled_for=now + timedelta(milliseconds=delay_ms),
    )


@pytest.mark.parametrize(
    "priority, tier",
    [
        (1, QueueTier.CRITICAL), (2, QueueTier.CRITICAL),
        (3, QueueTier.HIGH), (4, QueueTier.HIGH),
        (5, QueueTier.NORMAL), (6, QueueTier.NORMAL),
        (7, QueueTier.LOW), (8, QueueTier.LOW),
        (9, QueueTier.BULK), (10, QueueTier.BULK),
    ],
)
def test_priority_maps_to_tier(priority, tier):
    assert priority_to_tier(priority) == tier


def test_dequeues_highest_tier_first():
    store = PriorityJobStore()
    store.enqueue(_make_job("bulk", 10))
    store.enqueue(_make_job("critical", 1))
    store.enqueue(_make_job("normal", 5))
    store.enqueue(_make_job("high", 3))

    now = utcnow()
    assert [store.dequeue_next(now).id for _ in range(4)] == ["critical", "high", "normal", "bulk"]
    assert store.dequeue_next(now) is None


def test_same_tier_is_fifo_regardless_of_exact_priority():
    """Priorities 5 and 6 share the normal tier; arrival order wins."""
    store = PriorityJobStore()
    store.enqueue(_make_job("first", 6))
    store.enqueue(_make_job("second", 5))
    store.enqueue(_make_job("third", 6))

    now = utcnow()
    assert [store.dequeue_next(now).id for _ in range(3)] == ["first", "second", "third"]


def test_delayed_job_is_skipped_until_eligible():
    store = PriorityJobStore()
    store.enqueue(_make_job("later", 1, delay_ms=60_000))
    store.enqueue(_make_job("now", 10))

    now = utcnow()
    assert store.dequeue_next(now).id == "now"
    assert store.dequeue_next(now) is None

    # Delayed job is still queued and comes out once its time arrives
    assert store.size() == 1
    assert store.dequeue_next(now + timedelta(minutes=2)).id == "later"


def test_jobs_behind_a_delayed_job_overtake_it():
    store = PriorityJobStore()
    store.enqueue(_make_job("delayed", 5, delay_ms=60_000))
    store.enqueue(_make_job("ready", 5))

    assert store.dequeue_next(utcnow()).id == "ready"


def test_enqueue_returns_tier_and_sizes_per_tier():
    store = PriorityJobStore()
    assert store.enqueue(_make_job("a", 2)) == QueueTier.CRITICAL
    assert store.enqueue(_make_job("b", 8)) == QueueTier.LOW
    store.enqueue(_make_job("c", 8))

    assert store.sizes() == {"critical": 1, "high": 0, "normal": 0, "low": 2, "bulk": 0}
    assert store.size() == 3
    assert len(store) == 3


def test_remove_by_id():
    store = PriorityJobStore()
    store.enqueue(_make_job("keep", 5))
    store.enqueue(_make_job("drop", 5))

    removed = store.remove("drop")
    assert removed.id == "drop"
    assert store.remove("drop") is None
    assert [job.id for job in store] == ["keep"]


def test_find_does_not_remove():
    store = PriorityJobStore()
    store.enqueue(_make_job("x", 3))

    assert store.find("x").id == "x"
    assert store.find("missing") is None
    assert store.size() == 1


def test_non_pending_jobs_are_not_eligible():
    store = PriorityJobStore()
    job = _make_job("x", 5)
    job.status = JobStatus.CANCELLED
    store.enqueue(job)

    assert store.dequeue_next(utcnow()) is None


def test_clear_empties_every_tier():
    store = PriorityJobStore()
    for i, priority in enumerate([1, 3, 5, 7, 9]):
        store.enqueue(_make_job(f"j{i}", priority))
    store.clear()

    assert store.size() == 0
    assert all(count == 0 for count in store.sizes().values())
