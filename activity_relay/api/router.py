from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
import structlog
from .schemas import GenerateEventRequest, GenerateEventResponse, ErrorResponse, REQUIRED_FIELDS_MESSAGE
from ..errors import PublishError
from ..event_models import UserEvent, generate_user_event
from ..services.pipeline import Pipeline

router = APIRouter(prefix="/events", tags=["events"])
log = structlog.get_logger()


def get_pipeline(request: Request) -> Pipeline:
    return request.app.state.pipeline


def bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Bad Request", "message": message})


@router.post(
    "/generate",
    status_code=201,
    response_model=GenerateEventResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def generate_event(req: GenerateEventRequest, pipeline: Pipeline = Depends(get_pipeline)):
    if not req.user_id or not req.event_type:
        log.warning("event.rejected", reason="missing_required_fields")
        return bad_request(REQUIRED_FIELDS_MESSAGE)

    event = generate_user_event(req.user_id, req.event_type, req.payload)

    try:
        await pipeline.publisher.publish(event)
    except PublishError:
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    return GenerateEventResponse(status="Created", event_id=event.event_id)


@router.get("/processed", response_model=list[UserEvent])
async def list_processed_events(pipeline: Pipeline = Depends(get_pipeline)):
    return pipeline.store.list()
