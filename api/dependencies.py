"""
FastAPI dependency injection.

An endpoint declares `queue: QueueService = Depends(get_queue)` and receives the
service the lifespan handler built. Tests swap it out through
app.dependency_overrides.
"""

from fastapi import Request

from worker.service import QueueService


async def get_queue(request: Request) -> QueueService:
    """Returns the QueueService stored on the app during startup."""
    return request.app.state.queue
