"""Shared fixtures: an in-memory broker, a running pipeline and an HTTP client."""
import asyncio
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from activity_relay.channels.memory import InMemoryBroker, InMemoryChannel
from activity_relay.config import Settings
from activity_relay.main import create_app
from activity_relay.services.pipeline import Pipeline


@pytest.fixture
def settings():
    return Settings(
        BROKER_ADAPTER="memory",
        LOG_JSON=False,
        CONSUMER_BLOCK_MS=50,
        CONSUMER_RETRY_BACKOFF=0.01,
    )


@pytest_asyncio.fixture
async def broker():
    return InMemoryBroker()


@pytest_asyncio.fixture
async def pipeline(settings, broker):
    pipeline = Pipeline(settings, InMemoryChannel(broker), InMemoryChannel(broker))
    async with pipeline.running():
        yield pipeline


@pytest_asyncio.fixture
async def raw_producer(broker):
    """A separate producer that writes arbitrary bytes onto the broker."""
    channel = InMemoryChannel(broker)
    await channel.connect()
    yield channel
    await channel.close()


@pytest_asyncio.fixture
async def client(settings, pipeline):
    app = create_app(settings=settings, pipeline=pipeline)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds, failing after timeout seconds."""

    async def _wait_until(predicate, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)

    return _wait_until
