"""
Simulated workload job.

This is the most useful job type for demos and testing because:
- You control exactly how long it takes (duration parameter)
- You control whether it fails (fail_probability parameter)
- It reports progress in steps, so job:progress subscribers have something to see

Example payloads:
    {"duration": 3.0}                          → sleeps 3 seconds, always succeeds
    {"duration": 1.0, "fail_probability": 0.5} → sleeps 1 second, fails 50% of the time
    {"duration": 0.1, "fail_probability": 1.0} → fails every attempt (demo dead-letter queue)
"""

import asyncio
import random

from jobs.base import AbstractJobHandler
from models.enums import JobType


class SleepJob(AbstractJobHandler):

    STEPS = 4

    async def run(self, data: dict, job) -> dict:
        data = data or {}
        duration = float(data.get("duration", 1.0))
        fail_probability = float(data.get("fail_probability", 0.0))

        # Check for simulated failure BEFORE sleeping
        # (no point sleeping 30 seconds just to fail)
        if random.random() < fail_probability:
            raise RuntimeError(
                f"Simulated failure (fail_probability={fail_probability})"
            )

        for step in range(1, self.STEPS + 1):
            await asyncio.sleep(duration / self.STEPS)
            job.update_progress(step * 100 // self.STEPS)

        return {
            "slept_for": duration,
            "message": f"Completed sleep of {duration}s",
        }

    @property
    def job_type(self) -> str:
        return JobType.SLEEP.value
