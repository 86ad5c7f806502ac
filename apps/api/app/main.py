from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from app.api.routes import router as api_router
from app.context import get_correlation_id
from app.core.config import get_settings
from app.core.events import InternalEvent, event_bus
from app.events import TRANSITION_EVENT_TYPE, LoggingTransitionSink, StateTransitionEvent
from app.logging import configure_logging
from app.middleware.correlation_id import CorrelationIdMiddleware
from app.middleware.request_logging import RequestLoggingMiddleware
from app.otel import get_fastapi_server_request_hook, setup_otel
from app.platform.errors import (
    ConflictError,
    NotFoundError,
    OperationTimeoutError,
    PipelineError,
    TransitionConflictError,
    ValidationError,
)


configure_logging()
logger = logging.getLogger("app.lifecycle")
transition_log_sink = LoggingTransitionSink()

_ERROR_STATUS: tuple[tuple[type[PipelineError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (OperationTimeoutError, 504),
)


def _on_pipeline_transition(event: InternalEvent) -> None:
    transition_log_sink.emit(StateTransitionEvent.from_envelope(event.payload))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.transition_log_enabled:
        event_bus.subscribe(TRANSITION_EVENT_TYPE, _on_pipeline_transition)
    logger.info("system_event", extra={"event_name": "system.started"})
    try:
        yield
    finally:
        event_bus.unsubscribe(TRANSITION_EVENT_TYPE, _on_pipeline_transition)


app = FastAPI(title="Pipeline API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    status_code = next((code for error_type, code in _ERROR_STATUS if isinstance(exc, error_type)), 400)
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    body: dict[str, object] = {"detail": exc.message, "correlation_id": correlation_id}
    if isinstance(exc, TransitionConflictError):
        body["transition"] = exc.as_dict()

    logger.warning(
        "pipeline.request_rejected",
        extra={"status_code": status_code, "error": exc.message, "path": request.url.path},
    )
    return JSONResponse(status_code=status_code, content=body)


settings = get_settings()
if settings.otel_enabled:
    setup_otel("pipeline-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
