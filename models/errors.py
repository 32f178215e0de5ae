"""
Exceptions raised by the job engine.

Two families:
- Rejections raised synchronously to add_job callers (UnknownJobType, QueueFull).
  Nothing is enqueued when these are raised.
- Execution failures recorded on the Job (JobTimeoutError, PermanentJobError).
  These never reach the add_job caller; they drive retry / dead-letter routing.
"""


class UnknownJobType(ValueError):
    def __init__(self, job_type: str, available: list[str]):
        self.job_type = job_type
        super().__init__(f"Unknown job type: '{job_type}'. Available: {available}")


class QueueFull(RuntimeError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Queue size limit exceeded ({limit} jobs)")


class InvalidTransition(ValueError):
    """A job was asked to move along an edge the state machine does not have."""


class JobTimeoutError(TimeoutError):
    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Job execution timeout after {timeout_ms}ms")


class PermanentJobError(Exception):
    """Raise from a handler to skip any remaining retries and dead-letter the job."""
