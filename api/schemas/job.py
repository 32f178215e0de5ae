"""
Pydantic schemas for the /jobs endpoints.

- JobCreate: request body for POST /jobs/
- JobResponse: a single job, read straight off the in-memory Job dataclass
- JobListResponse: jobs of one type

Range checks happen here, so bad input gets a 422 before the queue sees it.
Priority is the one exception: the queue clamps it, so any int is accepted.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from models.enums import JobStatus, QueueTier


class JobCreate(BaseModel):
    """Request body for POST /jobs/."""

    type: str = Field(..., min_length=1, examples=["echo"])
    data: Any = Field(default_factory=dict, examples=[{"message": "hello"}])
    priority: Optional[int] = Field(
        default=None,
        description="1 = most urgent, 10 = least; clamped into range",
    )
    delay: int = Field(default=0, ge=0, description="ms before the job becomes eligible")
    retries: Optional[int] = Field(default=None, ge=0, le=100)
    timeout: Optional[int] = Field(default=None, gt=0, description="ms allowed per attempt")
    scheduled_for: Optional[datetime] = None
    correlation_id: Optional[str] = None


class JobResponse(BaseModel):
    """A job as the queue currently sees it."""

    id: str
    type: str
    data: Any = None
    status: JobStatus
    tier: QueueTier
    priority: int
    attempts: int
    retries: int
    max_retries: int
    timeout: int
    progress: int
    result: Any = None
    last_error: Optional[str] = None
    correlation_id: str
    created_at: datetime
    scheduled_for: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
