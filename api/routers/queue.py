"""
Queue introspection endpoints.

GET /queue/metrics      → counters, queue depths, throughput
GET /queue/dead-letter  → jobs that exhausted their retries
GET /queue/handlers     → job types that can be enqueued
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_queue
from api.schemas.job import JobListResponse, JobResponse
from api.schemas.queue import HandlersResponse, MetricsResponse
from worker.service import QueueService

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(queue: QueueService = Depends(get_queue)) -> MetricsResponse:
    return MetricsResponse.model_validate(queue.get_metrics())


@router.get("/dead-letter", response_model=JobListResponse)
async def get_dead_letter(queue: QueueService = Depends(get_queue)) -> JobListResponse:
    jobs = queue.get_dead_letter_jobs()
    return JobListResponse(
        jobs=[JobResponse.model_validate(j) for j in jobs],
        total=len(jobs),
    )


@router.get("/handlers", response_model=HandlersResponse)
async def get_handlers(queue: QueueService = Depends(get_queue)) -> HandlersResponse:
    return HandlersResponse(handlers=queue.registry.types())
