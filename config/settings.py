"""
Centralized configuration using pydantic-settings.

How it works:
- Reads environment variables automatically (e.g., QUEUE_MAX_WORKERS env var → Settings.QUEUE_MAX_WORKERS)
- Falls back to defaults defined here if env vars are not set
- Can also read from a .env file in the project root

Entry points (api/main.py, worker/main.py) import `settings` from here and pass
it into QueueService. The engine itself never reads the module-level instance,
so tests can build a Settings(...) with tiny intervals and timeouts.

All durations are in milliseconds, matching the job options callers pass to
add_job (delay, timeout).
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Workers ─────────────────────────────────────────────────
    QUEUE_MAX_WORKERS: int = Field(default=5, ge=1)             # concurrent executions
    QUEUE_WORKER_TIMEOUT_MS: int = Field(default=300_000, gt=0)  # default per-job timeout

    # ── Jobs ────────────────────────────────────────────────────
    QUEUE_DEFAULT_PRIORITY: int = Field(default=5, ge=1, le=10)
    QUEUE_MAX_RETRIES: int = Field(default=3, ge=0)

    # ── Retry backoff ───────────────────────────────────────────
    QUEUE_RETRY_DELAY_MS: int = Field(default=1_000, ge=0)       # first retry delay
    QUEUE_MAX_RETRY_DELAY_MS: int = Field(default=60_000, ge=0)  # backoff ceiling

    # ── Queue management ────────────────────────────────────────
    QUEUE_MAX_SIZE: int = Field(default=10_000, ge=1)            # queued + processing ceiling
    QUEUE_POLL_INTERVAL_MS: int = Field(default=1_000, gt=0)     # dispatcher tick

    # ── Retention ───────────────────────────────────────────────
    QUEUE_COMPLETED_TTL_MS: int = Field(default=24 * 60 * 60 * 1000, gt=0)
    QUEUE_FAILED_TTL_MS: int = Field(default=7 * 24 * 60 * 60 * 1000, gt=0)
    QUEUE_HISTORY_MAX_SIZE: int = Field(default=10_000, ge=1)
    QUEUE_CLEANUP_INTERVAL_MS: int = Field(default=5 * 60 * 1000, gt=0)

    # ── Monitoring ──────────────────────────────────────────────
    QUEUE_ENABLE_METRICS: bool = True
    QUEUE_METRICS_INTERVAL_MS: int = Field(default=60_000, gt=0)
    QUEUE_PROCESSING_SAMPLES: int = Field(default=1_000, ge=1)   # rolling window size

    # ── Recurring producers ─────────────────────────────────────
    ENABLE_JOB_SCHEDULING: bool = True
    # Comma-separated modules exposing register_handlers(registry), e.g. "app.payment_jobs"
    QUEUE_HANDLER_MODULES: str = ""

    # ── App ─────────────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Process-wide defaults; entry points pass this into QueueService
settings = Settings()
