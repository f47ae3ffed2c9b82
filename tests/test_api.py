"""End-to-end tests: submission endpoint -> channel -> consumer -> query endpoint."""
import asyncio
import time
import orjson
import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from activity_relay.channels.memory import InMemoryChannel
from activity_relay.errors import PublishError
from activity_relay.main import create_app
from activity_relay.services.pipeline import Pipeline


class UnavailableChannel(InMemoryChannel):
    async def publish(self, topic: str, value: bytes) -> str:
        raise PublishError("broker unavailable")


def duplicate_message(event_id: str) -> bytes:
    return orjson.dumps({
        "eventId": event_id,
        "userId": "hacker_user",
        "eventType": "ATTACK",
        "timestamp": "2026-10-16T09:30:00.000Z",
        "payload": {"attempt": "double_spend"},
    })


@pytest.mark.asyncio
async def test_generate_event_is_processed(client, pipeline, wait_until):
    """Test a submitted event is acknowledged and later listed exactly once."""
    response = await client.post(
        "/events/generate",
        json={"userId": "u1", "eventType": "LOGIN", "payload": {"test": "integration"}},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "Created"
    event_id = data["eventId"]
    assert event_id

    await wait_until(lambda: pipeline.store.contains(event_id))

    response = await client.get("/events/processed")
    assert response.status_code == 200
    matches = [e for e in response.json() if e["userId"] == "u1" and e["eventType"] == "LOGIN"]
    assert len(matches) == 1
    assert matches[0]["eventId"] == event_id
    assert matches[0]["payload"] == {"test": "integration"}
    assert set(matches[0]) == {"eventId", "userId", "eventType", "timestamp", "payload"}


@pytest.mark.asyncio
async def test_generate_event_without_payload(client, pipeline, wait_until):
    response = await client.post("/events/generate", json={"userId": "u2", "eventType": "LOGOUT"})
    assert response.status_code == 201

    event_id = response.json()["eventId"]
    await wait_until(lambda: pipeline.store.contains(event_id))

    stored = (await client.get("/events/processed")).json()
    assert stored[0]["payload"] == {}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"userId": "u1"},
        {"eventType": "LOGIN"},
        {"userId": "", "eventType": "LOGIN"},
        {"userId": "u1", "eventType": ""},
        {},
    ],
)
async def test_generate_event_missing_fields(client, pipeline, broker, settings, body):
    """Test missing required fields are rejected and nothing is published."""
    response = await client.post("/events/generate", json=body)

    assert response.status_code == 400
    assert response.json() == {
        "error": "Bad Request",
        "message": "userId and eventType are required fields.",
    }

    await asyncio.sleep(0.05)
    assert broker.size(settings.EVENTS_TOPIC) == 0
    assert pipeline.store.list() == []


@pytest.mark.asyncio
async def test_generate_event_invalid_json(client, broker, settings):
    """Test an unparsable body is a client error."""
    response = await client.post(
        "/events/generate",
        content=b"{invalid json}",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Bad Request"
    assert "JSON" in data["message"]
    assert broker.size(settings.EVENTS_TOPIC) == 0


@pytest.mark.asyncio
async def test_generate_event_payload_must_be_object(client):
    response = await client.post(
        "/events/generate",
        json={"userId": "u1", "eventType": "LOGIN", "payload": "not-a-dict"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Bad Request"
    assert "payload" in data["message"]


@pytest.mark.asyncio
async def test_generate_event_payload_too_large(client, settings):
    large_payload = {"data": "x" * (settings.MAX_EVENT_SIZE + 1000)}

    response = await client.post(
        "/events/generate",
        json={"userId": "u1", "eventType": "LOGIN", "payload": large_payload},
    )

    assert response.status_code == 413
    assert response.json()["error"] == "Payload Too Large"


@pytest.mark.asyncio
async def test_generate_event_publish_failure(settings):
    """Test a broker that refuses the event yields a 500."""
    pipeline = Pipeline(settings, UnavailableChannel(), InMemoryChannel())

    async with pipeline.running():
        app = create_app(settings=settings, pipeline=pipeline)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/events/generate", json={"userId": "u1", "eventType": "LOGIN"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}
    assert pipeline.store.list() == []


@pytest.mark.asyncio
async def test_duplicate_messages_stored_once(client, pipeline, raw_producer, settings, wait_until):
    """Test two channel messages sharing an eventId produce one stored record."""
    await raw_producer.publish(settings.EVENTS_TOPIC, duplicate_message("dup-1"))
    await raw_producer.publish(settings.EVENTS_TOPIC, duplicate_message("dup-1"))

    registry = pipeline.metrics.registry
    await wait_until(lambda: registry.get_sample_value("activity_relay_events_duplicate_total") == 1.0)

    stored = (await client.get("/events/processed")).json()
    assert len([e for e in stored if e["eventId"] == "dup-1"]) == 1


@pytest.mark.asyncio
async def test_malformed_message_does_not_stop_consumer(client, pipeline, raw_producer, settings, wait_until):
    """Test a malformed message is skipped and the next one is still stored."""
    await raw_producer.publish(settings.EVENTS_TOPIC, b"{this is not json")
    await raw_producer.publish(settings.EVENTS_TOPIC, duplicate_message("after-malformed"))

    await wait_until(lambda: pipeline.store.contains("after-malformed"))

    stored = (await client.get("/events/processed")).json()
    assert [e["eventId"] for e in stored] == ["after-malformed"]
    assert pipeline.metrics.registry.get_sample_value("activity_relay_events_malformed_total") == 1.0
    assert not pipeline.consumer_task.done()


@pytest.mark.asyncio
async def test_processed_events_in_append_order(client, pipeline, wait_until):
    event_ids = []
    for i in range(5):
        response = await client.post("/events/generate", json={"userId": f"user-{i}", "eventType": "CLICK"})
        event_ids.append(response.json()["eventId"])

    await wait_until(lambda: len(pipeline.store) == 5)

    stored = (await client.get("/events/processed")).json()
    assert [e["eventId"] for e in stored] == event_ids


def test_app_owns_pipeline_lifetime(settings):
    """Test the lifespan starts the pipeline and tears it down on shutdown."""
    app = create_app(settings=settings)

    with TestClient(app) as client:
        pipeline = app.state.pipeline
        assert pipeline is not None

        response = client.post("/events/generate", json={"userId": "u1", "eventType": "LOGIN"})
        assert response.status_code == 201
        event_id = response.json()["eventId"]

        deadline = time.time() + 2.0
        stored = []
        while time.time() < deadline:
            stored = client.get("/events/processed").json()
            if stored:
                break
            time.sleep(0.02)

        assert [e["eventId"] for e in stored] == [event_id]

    assert app.state.pipeline is None
    assert pipeline.consumer_task is None
