from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict

REQUIRED_FIELDS_MESSAGE = "userId and eventType are required fields."

class GenerateEventRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(None, alias="userId")
    event_type: str | None = Field(None, alias="eventType")
    payload: Dict[str, Any] | None = None

class GenerateEventResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    event_id: str = Field(..., alias="eventId")

class ErrorResponse(BaseModel):
    error: str
    message: str | None = None
