"""
Worker process entry point.

Runs the queue engine without the HTTP API: QueueService (dispatcher, worker
pool, metrics, cleanup) plus the recurring producers, all on one event loop.
The main coroutine just waits for SIGINT / SIGTERM and then shuts everything
down.

To run:
    python -m worker.main

Deployments register their own handlers by listing modules in
QUEUE_HANDLER_MODULES (each exposes register_handlers(registry)); they are
loaded before the schedules below are configured. Recurring schedules are only
installed for job types that end up with a handler; the rest are skipped with
a warning.
"""

import asyncio
import logging
import signal

from config.settings import settings
from jobs.registry import load_handler_modules, register_default_handlers
from models.enums import JobType
from scheduler.recurring import RecurringScheduler
from worker.service import QueueService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

MINUTE_MS = 60_000

# (job_type, interval_ms, priority)
INTERVAL_SCHEDULES = [
    (JobType.PAYMENT_VERIFY_BATCH, 5 * MINUTE_MS, 3),
    (JobType.PAYMENT_REMINDER, 60 * MINUTE_MS, 4),
    (JobType.PAYMENT_CLEANUP, 6 * 60 * MINUTE_MS, 6),
    (JobType.NOTIFICATION_EVENT_REMINDERS, 10 * MINUTE_MS, 4),
    (JobType.NOTIFICATION_BATCH, 2 * MINUTE_MS, 3),
    (JobType.EVENT_ANALYTICS, 30 * MINUTE_MS, 5),
    (JobType.SYSTEM_HEALTH_CHECK, 5 * MINUTE_MS, 2),
]


def configure_schedules(scheduler: RecurringScheduler, service: QueueService) -> int:
    """Install the standard recurring jobs whose handlers are registered. Returns how many."""
    installed = 0
    for job_type, interval_ms, priority in INTERVAL_SCHEDULES:
        if job_type not in service.registry:
            logger.warning(f"No handler for {job_type.value}, recurring job not scheduled")
            continue
        scheduler.every(interval_ms, job_type, {"recurring": True}, priority=priority)
        installed += 1

    if JobType.SYSTEM_CLEANUP in service.registry:
        scheduler.daily(2, 0, JobType.SYSTEM_CLEANUP, {"scope": "daily"}, priority=8)
        # Sunday 03:00
        scheduler.weekly(
            6, 3, 0, JobType.SYSTEM_CLEANUP, {"scope": "weekly"},
            name="system:cleanup:weekly", priority=8,
        )
        installed += 2
    else:
        logger.warning(f"No handler for {JobType.SYSTEM_CLEANUP.value}, cleanup jobs not scheduled")

    return installed


async def run() -> None:
    service = QueueService(settings)
    register_default_handlers(service.registry)
    load_handler_modules(service.registry, settings.QUEUE_HANDLER_MODULES)

    scheduler = RecurringScheduler(service, enabled=settings.ENABLE_JOB_SCHEDULING)
    if scheduler.enabled:
        configure_schedules(scheduler, service)

    await service.start()
    scheduler.start()

    # ── Graceful shutdown on Ctrl+C or SIGTERM ──────────────────
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    logger.info("Worker process running. Press Ctrl+C to stop.")
    await shutdown_event.wait()

    logger.info("Shutdown signal received, stopping...")
    await scheduler.stop()
    await service.stop()
    logger.info("Worker process stopped")


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
