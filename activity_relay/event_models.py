from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from datetime import datetime, timezone
from typing import Any, Dict
import copy
import orjson
import uuid

from .errors import MalformedMessageError


class UserEvent(BaseModel):
    """One user activity occurrence as it travels through the channel.

    The payload is deep-copied on construction so later changes to the
    caller's dict do not reach a stored event. The copy itself is a plain
    dict, so the model is only frozen at the field level.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_id: str = Field(..., alias="eventId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)
    event_type: str = Field(..., alias="eventType", min_length=1)
    timestamp: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("payload")
    @classmethod
    def copy_payload(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        return copy.deepcopy(value)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_user_event(user_id: str, event_type: str, payload: Dict[str, Any] | None = None) -> UserEvent:
    return UserEvent(
        event_id=str(uuid.uuid4()),
        user_id=user_id,
        event_type=event_type,
        timestamp=utc_timestamp(),
        payload=payload or {},
    )


def encode_event(event: UserEvent) -> bytes:
    """Serialize an event into its wire representation."""
    return orjson.dumps(event.model_dump(by_alias=True))


def decode_event(raw: bytes | str) -> UserEvent:
    """
    Parse a wire message back into an event.

    Raises:
        MalformedMessageError: If the message is not a JSON object carrying
            the required event fields.
    """
    raw_bytes = raw.encode() if isinstance(raw, str) else raw
    try:
        data = orjson.loads(raw_bytes)
    except orjson.JSONDecodeError as e:
        raise MalformedMessageError(f"message is not valid JSON: {e}", raw=raw_bytes) from e

    if not isinstance(data, dict):
        raise MalformedMessageError("message is not a JSON object", raw=raw_bytes)

    if data.get("payload") is None:
        data["payload"] = {}

    try:
        return UserEvent.model_validate(data)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise MalformedMessageError(
            f"message is missing or has invalid fields: {', '.join(fields)}", raw=raw_bytes
        ) from e
