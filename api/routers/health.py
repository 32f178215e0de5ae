"""
Health check endpoint.

Reports "healthy" while fewer than 80% of QUEUE_MAX_SIZE slots are taken by
queued or running jobs, "warning" above that. Always answers 200: a full
queue is degraded, not down.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_queue
from api.schemas.queue import HealthResponse
from worker.service import QueueService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(queue: QueueService = Depends(get_queue)) -> HealthResponse:
    return HealthResponse.model_validate(queue.get_health_status())
