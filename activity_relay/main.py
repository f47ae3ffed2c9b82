"""
Activity Relay - user activity ingestion pipeline.

Features:
- POST /events/generate publishes user activity events to the channel
- A background consumer applies them to the store, skipping redelivered duplicates
- GET /events/processed returns the stored events
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from .config import Settings, get_settings
from .logging import setup_logging, get_logger, SERVICE_NAME
from .api.router import router
from .middleware.correlation import CorrelationMiddleware
from .middleware.error_handler import ErrorHandlerMiddleware, validation_exception_handler
from .middleware.metrics import MetricsMiddleware
from .middleware.validation import ValidationMiddleware
from .metrics import Metrics
from .health import HealthChecker
from .services.pipeline import Pipeline

VERSION = "0.1.0"

logger = get_logger()


def create_app(settings: Settings | None = None, pipeline: Pipeline | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration (defaults to the environment)
        pipeline: An already running pipeline to serve. When omitted, the
            application builds one from settings and owns its lifetime.
    """
    settings = settings or get_settings()
    setup_logging(json_output=settings.LOG_JSON)

    metrics = pipeline.metrics if pipeline else Metrics(service_name=SERVICE_NAME, version=VERSION)
    health_checker = HealthChecker(service_name=SERVICE_NAME, version=VERSION)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_starting",
            version=VERSION,
            env=settings.ENV,
            broker_adapter=settings.BROKER_ADAPTER,
            topic=settings.EVENTS_TOPIC,
        )
        if pipeline is not None:
            yield
        else:
            # A broker that cannot be reached here aborts startup
            owned = Pipeline.from_settings(settings, metrics=metrics)
            async with owned.running():
                app.state.pipeline = owned
                yield
            app.state.pipeline = None

        logger.info("service_stopping")
        metrics.app_up.labels(service=SERVICE_NAME, version=VERSION).set(0)

    app = FastAPI(
        title="Activity Relay",
        version=VERSION,
        description="User activity ingestion with idempotent consumption",
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline
    app.state.metrics = metrics

    # Last added runs first: correlation ID, then metrics, then errors
    app.add_middleware(ValidationMiddleware, max_size=settings.MAX_EVENT_SIZE)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(MetricsMiddleware, metrics=metrics)
    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(router)
    app.mount("/metrics", make_asgi_app(registry=metrics.registry))

    @app.get("/health")
    async def health():
        """
        Liveness probe - basic health check.

        Returns 200 if service is running.
        """
        logger.debug("health_check_liveness")
        return health_checker.liveness()

    @app.get("/health/ready")
    async def health_ready(request: Request):
        """
        Readiness probe - broker, consumer loop and host resources.

        Returns:
            200: Service is ready to handle traffic
            503: Service is not ready
        """
        logger.debug("health_check_readiness")
        metrics.update_system_metrics()
        result = await health_checker.readiness(request.app.state.pipeline)
        status_code = 200 if result["status"] == "ready" else 503
        return JSONResponse(result, status_code=status_code)

    return app


app = create_app()


def run():
    import uvicorn

    settings = get_settings()
    uvicorn.run("activity_relay.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
