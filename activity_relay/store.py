"""Append-only in-memory store of processed events."""
import threading
import structlog
from .dedup import EventIdIndex, is_duplicate
from .event_models import UserEvent

log = structlog.get_logger()


class EventStore:
    """
    Volatile, append-only collection of accepted events.

    The store does not suppress duplicates on append(); callers that need
    idempotent writes use append_if_absent(), which runs the duplicate
    check and the append under one lock.
    """

    def __init__(self):
        self._events: list[UserEvent] = []
        self._index = EventIdIndex()
        self._lock = threading.Lock()

    def append(self, event: UserEvent):
        with self._lock:
            self._append_locked(event)

    def append_if_absent(self, event: UserEvent) -> bool:
        """
        Append the event unless one with the same eventId is already stored.

        Returns:
            True if the event was appended, False if it was a duplicate
        """
        with self._lock:
            if is_duplicate(event.event_id, self._index):
                return False
            self._append_locked(event)
            return True

    def list(self) -> list[UserEvent]:
        """Snapshot of all stored events in append order."""
        with self._lock:
            return list(self._events)

    def contains(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._index

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _append_locked(self, event: UserEvent):
        self._events.append(event)
        self._index.add(event)
        log.debug("store.appended", event_id=event.event_id, size=len(self._events))
