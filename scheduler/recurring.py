"""
Recurring job producers.

The engine only runs jobs somebody enqueued; this module is the "somebody" for
periodic work — payment verification sweeps, reminder batches, nightly cleanup.
Each schedule is an asyncio task that sleeps until its next run and then calls
QueueService.add_job with fixed data and options.

Three schedule shapes:
- every(interval_ms, ...)            → first run after one interval, then repeat
- daily(hour, minute, ...)           → next HH:MM, then every 24h
- weekly(weekday, hour, minute, ...) → next weekday HH:MM (Monday=0), then every 7 days

Times for daily/weekly are wall-clock in the timezone of the `now` datetimes
passed in (UTC by default).

Options are checked against QueueService.add_job when a schedule is defined, so a
misspelled option is a ValueError up front. A schedule that still fails to
enqueue (unknown type, queue full) logs the error and keeps its cadence; one bad
tick never stops the schedule.

When ENABLE_JOB_SCHEDULING is false, start() is a no-op and nothing is produced.
"""

import asyncio
import inspect
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from models.enums import JobStatus, JobType
from models.job import utcnow
from worker.service import QueueService

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
WEEK = timedelta(days=7)


def next_daily_run(hour: int, minute: int, now: datetime) -> datetime:
    """Next occurrence of HH:MM strictly after now."""
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += DAY
    return candidate


def next_weekly_run(weekday: int, hour: int, minute: int, now: datetime) -> datetime:
    """Next occurrence of weekday (Monday=0) at HH:MM strictly after now."""
    days_ahead = (weekday - now.weekday()) % 7
    candidate = (now + timedelta(days=days_ahead)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )
    if candidate <= now:
        candidate += WEEK
    return candidate


@dataclass
class RecurringJob:
    name: str
    job_type: str
    data: dict = field(default_factory=dict)
    options: dict = field(default_factory=dict)
    interval: timedelta = DAY
    # Anchor for daily/weekly schedules; None means "first run after one interval"
    first_run: Optional[datetime] = None
    runs: int = 0
    last_job_id: Optional[str] = None
    last_error: Optional[str] = None


class RecurringScheduler:

    def __init__(self, service: QueueService, enabled: bool = True):
        self._service = service
        self.enabled = enabled
        self._schedules: dict[str, RecurringJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    # ── Schedule definitions ────────────────────────────────────

    def every(
        self,
        interval_ms: int,
        job_type: Union[JobType, str],
        data: Optional[dict] = None,
        *,
        name: Optional[str] = None,
        **options: Any,
    ) -> RecurringJob:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {interval_ms}")
        return self._add(
            job_type, data, options, name, interval=timedelta(milliseconds=interval_ms)
        )

    def daily(
        self,
        hour: int,
        minute: int,
        job_type: Union[JobType, str],
        data: Optional[dict] = None,
        *,
        name: Optional[str] = None,
        now: Optional[datetime] = None,
        **options: Any,
    ) -> RecurringJob:
        first = next_daily_run(hour, minute, now or utcnow())
        return self._add(job_type, data, options, name, interval=DAY, first_run=first)

    def weekly(
        self,
        weekday: int,
        hour: int,
        minute: int,
        job_type: Union[JobType, str],
        data: Optional[dict] = None,
        *,
        name: Optional[str] = None,
        now: Optional[datetime] = None,
        **options: Any,
    ) -> RecurringJob:
        if not 0 <= weekday <= 6:
            raise ValueError(f"weekday must be 0 (Monday) to 6 (Sunday), got {weekday}")
        first = next_weekly_run(weekday, hour, minute, now or utcnow())
        return self._add(job_type, data, options, name, interval=WEEK, first_run=first)

    def _add(self, job_type, data, options, name, interval, first_run=None) -> RecurringJob:
        key = job_type.value if isinstance(job_type, JobType) else str(job_type)
        try:
            inspect.signature(self._service.add_job).bind(key, data, **options)
        except TypeError as e:
            raise ValueError(f"Invalid options for recurring job '{name or key}': {e}") from e

        schedule = RecurringJob(
            name=name or key,
            job_type=key,
            data=dict(data or {}),
            options=options,
            interval=interval,
            first_run=first_run,
        )
        if schedule.name in self._schedules:
            raise ValueError(f"Schedule '{schedule.name}' already exists")
        self._schedules[schedule.name] = schedule

        if self._tasks:  # already started: launch this one too
            self._launch(schedule)
        return schedule

    @property
    def schedules(self) -> list[RecurringJob]:
        return list(self._schedules.values())

    # ── Producing ───────────────────────────────────────────────

    def fire(self, schedule: RecurringJob) -> Optional[str]:
        """Enqueue one run of schedule. Returns the job id, or None if enqueueing failed."""
        try:
            job = self._service.add_job(schedule.job_type, dict(schedule.data), **schedule.options)
        except (ValueError, RuntimeError) as e:
            schedule.last_error = str(e)
            logger.error(f"Failed to queue recurring job '{schedule.name}': {e}")
            return None
        except Exception as e:
            schedule.last_error = str(e) or type(e).__name__
            logger.error(f"Failed to queue recurring job '{schedule.name}': {e}", exc_info=True)
            return None

        schedule.runs += 1
        schedule.last_job_id = job.id
        schedule.last_error = None
        return job.id

    async def _run(self, schedule: RecurringJob) -> None:
        if schedule.first_run is not None:
            delay = (schedule.first_run - utcnow()).total_seconds()
        else:
            delay = schedule.interval.total_seconds()

        while True:
            await asyncio.sleep(max(delay, 0))
            self.fire(schedule)
            delay = schedule.interval.total_seconds()

    def _launch(self, schedule: RecurringJob) -> None:
        self._tasks[schedule.name] = asyncio.get_running_loop().create_task(
            self._run(schedule), name=f"recurring-{schedule.name}"
        )

    def start(self) -> None:
        if not self.enabled:
            logger.info("Recurring job scheduling disabled")
            return
        for schedule in self._schedules.values():
            if schedule.name not in self._tasks:
                self._launch(schedule)
        logger.info(f"Started {len(self._tasks)} recurring job schedules")

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ── Reporting ───────────────────────────────────────────────

    def statistics(self) -> dict:
        """Engine metrics and health plus the configured schedules."""
        return {
            "queue": asdict(self._service.get_metrics()),
            "health": asdict(self._service.get_health_status()),
            "scheduling_enabled": self.enabled,
            "schedules": [
                {
                    "name": s.name,
                    "job_type": s.job_type,
                    "interval_ms": int(s.interval.total_seconds() * 1000),
                    "runs": s.runs,
                    "last_job_id": s.last_job_id,
                    "last_error": s.last_error,
                }
                for s in self._schedules.values()
            ],
            "timestamp": utcnow().isoformat(),
        }

    def active_jobs(self, job_types: Optional[list[str]] = None) -> dict[str, list]:
        """Pending and processing jobs grouped by type (defaults to every scheduled type)."""
        types = job_types or sorted({s.job_type for s in self._schedules.values()})
        live = (JobStatus.PENDING, JobStatus.PROCESSING)
        return {
            job_type: [
                job for job in self._service.get_jobs_by_type(job_type) if job.status in live
            ]
            for job_type in types
        }
