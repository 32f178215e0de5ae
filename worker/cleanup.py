"""
Retention sweep for the terminal stores.

Runs every QUEUE_CLEANUP_INTERVAL_MS (default 5 minutes) and evicts:
- completed jobs in JobHistory older than QUEUE_COMPLETED_TTL_MS (default 24h)
- dead-lettered jobs older than QUEUE_FAILED_TTL_MS (default 7 days)

Age is measured from completed_at. Pending and processing jobs live in the
buckets and the worker pool, which this module never sees.
"""

import logging
from datetime import datetime
from typing import Optional

from models.job import utcnow
from worker.history import DeadLetterStore, JobHistory

logger = logging.getLogger(__name__)


def sweep_expired(
    history: JobHistory,
    dead_letters: DeadLetterStore,
    completed_ttl_ms: int,
    failed_ttl_ms: int,
    now: Optional[datetime] = None,
) -> int:
    """Evict expired terminal jobs. Returns how many were removed."""
    now = now or utcnow()
    removed = history.evict_older_than(completed_ttl_ms, now)
    removed += dead_letters.evict_older_than(failed_ttl_ms, now)

    if removed:
        logger.info(f"Queue cleanup: removed {removed} old jobs")
    return removed
