"""
Job endpoints.

POST   /jobs/           → enqueue a job
GET    /jobs/           → jobs of one type, optionally filtered by status
GET    /jobs/{job_id}   → a single job wherever it currently lives
DELETE /jobs/{job_id}   → cancel a job that hasn't started yet

The router only translates between HTTP and QueueService; queue errors map to
status codes here and nowhere else.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_queue
from api.schemas.job import JobCreate, JobListResponse, JobResponse
from models.enums import JobStatus
from models.errors import QueueFull, UnknownJobType
from worker.service import QueueService

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/", response_model=JobResponse, status_code=201)
async def create_job(
    job_in: JobCreate,
    queue: QueueService = Depends(get_queue),
) -> JobResponse:
    """
    Enqueue a job and return it in its pending state.

    400 if no handler is registered for the type, 503 if the queue is full.
    """
    try:
        job = queue.add_job(
            job_in.type,
            job_in.data,
            priority=job_in.priority,
            delay=job_in.delay,
            retries=job_in.retries,
            timeout=job_in.timeout,
            scheduled_for=job_in.scheduled_for,
            correlation_id=job_in.correlation_id,
        )
    except UnknownJobType as e:
        raise HTTPException(status_code=400, detail=str(e))
    except QueueFull as e:
        raise HTTPException(status_code=503, detail=str(e))
    return JobResponse.model_validate(job)


@router.get("/", response_model=JobListResponse)
async def list_jobs(
    job_type: str = Query(..., description="Job type to list"),
    status: Optional[JobStatus] = Query(None, description="Filter by job status"),
    queue: QueueService = Depends(get_queue),
) -> JobListResponse:
    jobs = queue.get_jobs_by_type(job_type, status)
    return JobListResponse(
        jobs=[JobResponse.model_validate(j) for j in jobs],
        total=len(jobs),
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    queue: QueueService = Depends(get_queue),
) -> JobResponse:
    job = queue.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return JobResponse.model_validate(job)


@router.delete("/{job_id}", status_code=204)
async def cancel_job(
    job_id: str,
    queue: QueueService = Depends(get_queue),
) -> None:
    """
    Cancel a job.

    Only PENDING jobs can be cancelled. A running attempt is left alone, and
    finished jobs are already terminal.
    """
    if queue.cancel_job(job_id):
        return

    job = queue.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    raise HTTPException(
        status_code=409,
        detail=f"Cannot cancel job in {job.status.value} state. Only pending jobs can be cancelled.",
    )
