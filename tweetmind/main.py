from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from structlog.contextvars import bind_contextvars, reset_contextvars

from tweetmind.api.routes import router
from tweetmind.dependencies import get_database, get_settings, get_telemetry
from tweetmind.logging_config import configure_application_logging, shutdown_application_logging

LOGGER = logging.getLogger("tweetmind.api")

REQUEST_ID_HEADER = "X-Request-ID"
# Polled by open library views; no finish event is emitted for these.
UNTRACED_PATHS: frozenset[str] = frozenset({"/health", "/items/changes"})


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_application_logging(settings)
    get_database()
    yield
    shutdown_application_logging()


def request_id_for(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return supplied or uuid4().hex


async def trace_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag the request with an id, bind it for logging and report one finish event."""
    request_id = request_id_for(request)
    path = request.url.path
    context_tokens = bind_contextvars(http_request_id=request_id)
    started_at = perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        duration_ms = int((perf_counter() - started_at) * 1000)
        if status_code >= 500:
            LOGGER.warning(
                "request failed method=%s path=%s status=%s duration_ms=%s",
                request.method,
                path,
                status_code,
                duration_ms,
            )
        if path not in UNTRACED_PATHS:
            get_telemetry().emit(
                "http.request.finish",
                request_id=request_id,
                method=request.method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
            )
        reset_contextvars(**context_tokens)


def create_app() -> FastAPI:
    app = FastAPI(title="TweetMind API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(trace_request)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )

    return app


app = create_app()
