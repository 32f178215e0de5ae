"""
Pydantic schemas for /queue and /health.

Both wrap dataclasses produced by the service (MetricsSnapshot, HealthStatus),
so they validate with from_attributes instead of taking dicts.
"""

from pydantic import BaseModel


class MetricsResponse(BaseModel):
    uptime_hours: float
    total_jobs: int
    completed_jobs: int
    failed_jobs: int
    retried_jobs: int
    cancelled_jobs: int
    active_jobs: int
    active_workers: int
    queue_sizes: dict[str, int]
    dead_letter_size: int
    jobs_per_hour: int
    success_rate: float
    avg_processing_time_ms: int
    registered_handlers: int

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str
    active_workers: int
    max_workers: int
    queue_utilization: float
    dead_letter_size: int
    processing: bool

    model_config = {"from_attributes": True}


class HandlersResponse(BaseModel):
    handlers: list[str]
