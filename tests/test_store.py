"""Tests for the in-memory event store."""
import threading
from activity_relay.event_models import generate_user_event
from activity_relay.store import EventStore


def test_store_starts_empty():
    store = EventStore()

    assert store.list() == []
    assert len(store) == 0


def test_store_lists_in_append_order():
    """Test list() preserves append order."""
    store = EventStore()
    events = [generate_user_event(f"user-{i}", "CLICK") for i in range(5)]

    for event in events:
        store.append(event)

    assert [e.event_id for e in store.list()] == [e.event_id for e in events]


def test_append_is_unconditional():
    """Test append() itself does not suppress duplicates."""
    store = EventStore()
    event = generate_user_event("u1", "LOGIN")

    store.append(event)
    store.append(event)

    assert len(store) == 2


def test_append_if_absent():
    """Test append_if_absent() stores only the first copy of an eventId."""
    store = EventStore()
    event = generate_user_event("u1", "LOGIN")

    assert store.append_if_absent(event) is True
    assert store.append_if_absent(event) is False
    assert store.contains(event.event_id)
    assert len(store) == 1


def test_list_returns_snapshot():
    """Test later appends do not change an earlier list() result."""
    store = EventStore()
    store.append(generate_user_event("u1", "LOGIN"))

    snapshot = store.list()
    store.append(generate_user_event("u2", "LOGOUT"))

    assert len(snapshot) == 1
    assert len(store.list()) == 2


def test_append_if_absent_concurrent_writers():
    """Test parallel writers with the same eventId store a single copy."""
    store = EventStore()
    event = generate_user_event("u1", "LOGIN")
    writers = 16
    barrier = threading.Barrier(writers)
    results = []

    def write():
        barrier.wait()
        results.append(store.append_if_absent(event))

    threads = [threading.Thread(target=write) for _ in range(writers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert len(store) == 1
