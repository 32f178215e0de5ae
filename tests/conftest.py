"""
Shared test fixtures.

The queue lives entirely in process memory, so there is no infrastructure to
fake: each test gets its own QueueService built from Settings with intervals
shrunk to a few milliseconds.

- fast_settings: Settings with 10ms polling and short retry backoff
- service:       QueueService with the built-in handlers, NOT started
- running:       the same service with its dispatcher running
- client:        httpx.AsyncClient talking to the FastAPI app in-process
- wait_until:    poll a condition until it holds (or fail after a timeout)
"""

import asyncio

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from api.dependencies import get_queue
from api.main import create_app
from config.settings import Settings
from jobs.registry import register_default_handlers
from worker.service import QueueService


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        QUEUE_MAX_WORKERS=5,
        QUEUE_POLL_INTERVAL_MS=10,
        QUEUE_RETRY_DELAY_MS=10,
        QUEUE_MAX_RETRY_DELAY_MS=40,
        QUEUE_WORKER_TIMEOUT_MS=5_000,
        QUEUE_ENABLE_METRICS=False,
    )


@pytest_asyncio.fixture
async def service(fast_settings):
    queue = QueueService(fast_settings)
    register_default_handlers(queue.registry)
    yield queue
    await queue.stop()


@pytest_asyncio.fixture
async def running(service):
    await service.start()
    yield service


@pytest.fixture
def wait_until():
    async def _wait(predicate, timeout: float = 2.0, interval: float = 0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(interval)

    return _wait


@pytest_asyncio.fixture
async def client(running):
    """
    Test HTTP client bound to the running service.

    ASGITransport does not run the lifespan handler, so the app never builds
    its own QueueService; dependency_overrides hands it ours instead.
    """
    app = create_app()
    app.dependency_overrides[get_queue] = lambda: running

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
