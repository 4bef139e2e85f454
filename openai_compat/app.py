"""FastAPI application wiring."""

from __future__ import annotations

import time

from asgi_correlation_id import CorrelationIdMiddleware, correlation_id
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

from openai_compat.errors.openai_error import MalformedRequest, build_openai_error
from openai_compat.handlers.chat_completions import router as chat_completions_router
from openai_compat.observability.logging import configure_logging

app = FastAPI()
configure_logging()


@app.middleware("http")
async def bind_request_context(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    clear_contextvars()
    request.state.start_time = time.perf_counter()

    request_correlation_id = correlation_id.get()
    request.state.correlation_id = request_correlation_id
    if request_correlation_id:
        bind_contextvars(correlation_id=request_correlation_id)

    try:
        return await call_next(request)
    finally:
        clear_contextvars()


# Added last so it runs first and the correlation id is set for the middleware above.
app.add_middleware(CorrelationIdMiddleware, header_name="X-Correlation-ID")


def _invalid_request(message: str) -> JSONResponse:
    error_payload = build_openai_error(
        message,
        error_type="invalid_request_error",
        code="invalid_request_error",
    )
    return JSONResponse(status_code=400, content=error_payload)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return _invalid_request(f"Invalid request: {details}" if details else "Invalid request")


@app.exception_handler(MalformedRequest)
async def handle_malformed_request(
    _request: Request, exc: MalformedRequest
) -> JSONResponse:
    return _invalid_request(str(exc) or "Invalid request")


app.include_router(chat_completions_router)
