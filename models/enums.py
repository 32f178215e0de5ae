"""
Shared enumerations used across the entire project.

Using Python enums (inheriting from str) means:
- They serialize to JSON automatically ("pending", not "JobStatus.PENDING")
- They work as FastAPI query parameters
- They compare equal to their plain string values
- Typos become immediate errors instead of silent bugs
"""

import enum


class JobStatus(str, enum.Enum):
    PENDING = "pending"        # waiting in a priority bucket (new or retry)
    PROCESSING = "processing"  # a worker is executing the handler
    COMPLETED = "completed"    # handler returned; job lives in history
    FAILED = "failed"          # retries exhausted; job lives in the dead-letter store
    CANCELLED = "cancelled"    # removed from its bucket before dispatch


class QueueTier(str, enum.Enum):
    # Declaration order is dispatch order
    CRITICAL = "critical"  # priority 1-2
    HIGH = "high"          # priority 3-4
    NORMAL = "normal"      # priority 5-6
    LOW = "low"            # priority 7-8
    BULK = "bulk"          # priority 9-10


class JobType(str, enum.Enum):
    """Job kinds the platform enqueues. Handlers for these are supplied by the app."""

    PAYMENT_VERIFY = "payment:verify"
    PAYMENT_VERIFY_BATCH = "payment:verify_batch"
    PAYMENT_WEBHOOK_NOTIFICATION = "payment:webhook_notification"
    PAYMENT_REMINDER = "payment:send_reminders"
    PAYMENT_CLEANUP = "payment:cleanup"
    NOTIFICATION_PUSH = "notification:push"
    NOTIFICATION_BATCH = "notification:batch"
    NOTIFICATION_EVENT_REMINDERS = "notification:event_reminders"
    EVENT_ANALYTICS = "event:analytics"
    SYSTEM_CLEANUP = "system:cleanup"
    SYSTEM_HEALTH_CHECK = "system:health_check"

    # Built-in handlers shipped in jobs/
    SLEEP = "sleep"
    ECHO = "echo"


class JobEvent(str, enum.Enum):
    ADDED = "job:added"
    STARTED = "job:started"
    PROGRESS = "job:progress"
    COMPLETED = "job:completed"
    RETRIED = "job:retried"
    FAILED = "job:failed"
    CANCELLED = "job:cancelled"
    METRICS = "metrics"
