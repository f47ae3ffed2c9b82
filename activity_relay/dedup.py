"""Duplicate detection keyed on the event idempotency key."""
from typing import Any, Iterable, Mapping


def event_id_of(event: Any) -> str | None:
    """Read the eventId from a stored event or a raw event mapping."""
    if isinstance(event, Mapping):
        return event.get("eventId")
    return getattr(event, "event_id", None)


class EventIdIndex:
    """Set-backed lookup of accepted event ids."""

    def __init__(self, events: Iterable[Any] = ()):
        self._ids: set[str] = set()
        for event in events:
            self.add(event)

    def add(self, event: Any):
        event_id = event_id_of(event)
        if event_id is not None:
            self._ids.add(event_id)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


def is_duplicate(event_id: str, history: Iterable[Any] | EventIdIndex) -> bool:
    """
    Check whether an event id was already accepted.

    Args:
        event_id: Candidate idempotency key, compared by exact string equality
        history: Previously accepted events, or an EventIdIndex over them

    Returns:
        True if any accepted event carries the same eventId
    """
    if isinstance(history, EventIdIndex):
        return event_id in history
    return any(event_id_of(event) == event_id for event in history)
