"""Structured error responses."""
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import structlog
from .correlation import get_correlation_id
from ..api.schemas import REQUIRED_FIELDS_MESSAGE

log = structlog.get_logger()


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns unhandled exceptions into a 500 response."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            log.error(
                "unhandled.exception",
                error=str(exc),
                error_type=exc.__class__.__name__,
                path=request.url.path,
                correlation_id=get_correlation_id(),
                exc_info=True,
            )
            return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 Bad Request."""
    errors = exc.errors()
    log.warning(
        "request.invalid",
        path=request.url.path,
        errors=[{"loc": list(err.get("loc", ())), "type": err.get("type")} for err in errors],
    )
    return JSONResponse(
        status_code=400,
        content={"error": "Bad Request", "message": describe_validation_errors(errors)},
    )


def describe_validation_errors(errors) -> str:
    types = {err.get("type") for err in errors}
    if "json_invalid" in types:
        return "Request body is not valid JSON."

    fields = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        if loc:
            fields.append(".".join(loc))

    if not fields:
        return REQUIRED_FIELDS_MESSAGE
    return f"Invalid value for: {', '.join(sorted(set(fields)))}."
