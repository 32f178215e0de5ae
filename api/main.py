"""
FastAPI application factory.

The API process owns a QueueService: the lifespan handler builds it from
settings, registers the built-in handlers and starts the engine before the
first request, then stops it on shutdown.

To run:  uvicorn api.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routers import health, jobs, queue
from config.settings import settings
from jobs.registry import load_handler_modules, register_default_handlers
from worker.service import QueueService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ─────────────────────────────────────────────────
    service = QueueService(settings)
    register_default_handlers(service.registry)
    load_handler_modules(service.registry, settings.QUEUE_HANDLER_MODULES)
    await service.start()
    app.state.queue = service
    logger.info(f"API ready, handlers: {service.registry.types()}")

    yield

    # ── Shutdown ────────────────────────────────────────────────
    await service.stop()
    logger.info("API shut down")


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    app = FastAPI(
        title="Job Queue",
        description="In-process priority job queue with retries, timeouts and a dead-letter store",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(queue.router)

    return app


app = create_app()
