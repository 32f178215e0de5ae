"""
Abstract base class for job handlers.

The engine treats a handler as "a callable taking (data, job) that returns a
result or raises". Plain async functions satisfy that contract; this class is
for handlers that want a name, shared setup, or opt-in cancellation.

Same Strategy pattern everywhere in this codebase:
- AbstractJobHandler = interface
- SleepJob, EchoJob = implementations
- registry.py = lookup by job type

To add a new job type:
1. Create a class that inherits AbstractJobHandler
2. Implement run() and job_type
3. Register it with HandlerRegistry.register (or add it to register_default_handlers)
"""

from abc import ABC, abstractmethod
from typing import Any

from models.job import Job


class AbstractJobHandler(ABC):

    # When True, the worker pool cancels the handler's task if it times out.
    # Default False: the handler keeps running and its late result is discarded.
    cancel_on_timeout: bool = False

    @abstractmethod
    async def run(self, data: Any, job: Job) -> Any:
        """
        Execute the job.

        Args:
            data: the payload passed to add_job. Each job type expects different keys.
            job:  the live Job record. Call job.update_progress(n) to report progress.

        Returns:
            Any value — stored on Job.result when the job completes.

        Raises:
            Any exception → retry with backoff, or dead-letter when retries run out.
            PermanentJobError → dead-letter immediately.
        """
        ...

    @property
    @abstractmethod
    def job_type(self) -> str:
        """Key this handler registers under (e.g., 'sleep', 'payment:verify')."""
        ...

    async def __call__(self, data: Any, job: Job) -> Any:
        return await self.run(data, job)
