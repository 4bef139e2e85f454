"""/v1/chat/completions handler."""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterator, Optional

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from openai_compat.config import (
    MissingAnthropicAPIKeyError,
    get_thinking_rules,
    include_thinking,
)
from openai_compat.handlers.chat_common import (
    ChatRequestContext,
    build_missing_credentials_error,
    build_upstream_error,
    format_sse_error,
    log_error,
    log_success_response,
    log_upstream_request,
    normalize_anthropic_payload,
    prepare_request_context,
)
from openai_compat.mapping.anthropic_stream_helpers import DONE_FRAME, StreamState
from openai_compat.mapping.anthropic_stream_to_openai import translate_anthropic_events
from openai_compat.mapping.anthropic_to_openai import (
    map_anthropic_response_to_openai,
    normalize_anthropic_usage,
)
from openai_compat.mapping.openai_to_anthropic import map_openai_request_to_anthropic
from openai_compat.observability.logging import (
    get_stream_logger,
    streaming_logging_enabled,
)
from openai_compat.observability.redaction import redact_openai_response
from openai_compat.schema.openai import ChatCompletionRequest
from openai_compat.transport.anthropic_client import create_anthropic_message
from openai_compat.transport.anthropic_stream import stream_anthropic_events
from openai_compat.transport.upstream_common import AnthropicUpstreamError

router = APIRouter()
logger = structlog.get_logger(__name__)


def _build_anthropic_payload(
    request: ChatCompletionRequest, context: ChatRequestContext
) -> dict:
    anthropic_request = map_openai_request_to_anthropic(
        request, thinking_rules=get_thinking_rules()
    )
    anthropic_request.model = context.model_anthropic
    return normalize_anthropic_payload(anthropic_request)


@router.post("/v1/chat/completions")
async def create_chat_completion(
    http_request: Request, request: ChatCompletionRequest
) -> Any:
    """Translate an OpenAI chat completion request into an Anthropic message."""

    if request.stream:
        return await stream_chat_completion(http_request, request)

    context = prepare_request_context(logger, http_request, request)
    payload = _build_anthropic_payload(request, context)
    log_upstream_request(logger, http_request, context, payload)
    try:
        response = await create_anthropic_message(payload)
    except MissingAnthropicAPIKeyError as exc:
        status_code, error_payload = build_missing_credentials_error(exc)
        log_error(logger, http_request, context, status_code, error_payload)
        return JSONResponse(status_code=status_code, content=error_payload)
    except AnthropicUpstreamError as exc:
        status_code, error_payload = build_upstream_error(exc)
        log_error(logger, http_request, context, status_code, error_payload)
        return JSONResponse(status_code=status_code, content=error_payload)

    response_payload = map_anthropic_response_to_openai(
        response,
        request.model or context.model_anthropic,
        include_thinking=include_thinking(),
    )
    log_success_response(
        logger,
        http_request,
        context,
        token_usage=response_payload.get("usage"),
        payload=redact_openai_response(response_payload),
    )
    return response_payload


async def stream_chat_completion(
    http_request: Request, request: ChatCompletionRequest
) -> StreamingResponse:
    """Stream OpenAI chat completion chunks mapped from Anthropic SSE events."""
    stream_logging_enabled = streaming_logging_enabled()
    context = prepare_request_context(
        logger,
        http_request,
        request,
        include_stream_logging=stream_logging_enabled,
    )

    stream_logger = get_stream_logger() if stream_logging_enabled else None
    stream_start = time.perf_counter() if stream_logger else None
    if stream_logger:
        stream_logger.info(
            "stream_start",
            endpoint=str(http_request.url.path),
            correlation_id=context.correlation_id,
            model_requested=context.model_requested,
            model_anthropic=context.model_anthropic,
            payload_summary=context.payload_summary,
        )

    payload = _build_anthropic_payload(request, context)
    payload["stream"] = True
    log_upstream_request(logger, http_request, context, payload)

    async def event_stream() -> AsyncIterator[str]:
        state = StreamState(
            model=request.model or context.model_anthropic,
            include_thinking=include_thinking(),
        )
        stream_failed = False
        first_chunk_at: Optional[float] = None
        chunk_count = 0
        error_status: Optional[int] = None
        error_type: Optional[str] = None
        anthropic_events = stream_anthropic_events(payload)
        try:
            try:
                async for frame in translate_anthropic_events(
                    anthropic_events, state=state
                ):
                    if first_chunk_at is None:
                        first_chunk_at = time.perf_counter()
                    chunk_count += 1
                    yield frame
            finally:
                # Releases the upstream connection when translation stops early.
                await anthropic_events.aclose()
            if state.errored:
                stream_failed = True
                error_type = "upstream_stream_error"
                log_error(
                    logger,
                    http_request,
                    context,
                    200,
                    {"error": state.error},
                )
        except asyncio.CancelledError:
            stream_failed = True
            error_status = 499
            error_type = "client_disconnect"
            raise
        except MissingAnthropicAPIKeyError as exc:
            stream_failed = True
            status_code, error_payload = build_missing_credentials_error(exc)
            error_status = status_code
            error_type = error_payload["error"]["type"]
            log_error(logger, http_request, context, status_code, error_payload)
            yield format_sse_error(error_payload)
            yield DONE_FRAME
        except AnthropicUpstreamError as exc:
            stream_failed = True
            status_code, error_payload = build_upstream_error(exc)
            error_status = status_code
            error_type = error_payload["error"]["type"]
            log_error(logger, http_request, context, status_code, error_payload)
            yield format_sse_error(error_payload)
            yield DONE_FRAME
        finally:
            token_usage = normalize_anthropic_usage(state.usage)
            if not stream_failed:
                log_success_response(
                    logger,
                    http_request,
                    context,
                    token_usage=token_usage,
                )
            if stream_logger:
                duration = None
                time_to_first_chunk_ms = None
                if stream_start is not None:
                    duration = int((time.perf_counter() - stream_start) * 1000)
                    if first_chunk_at is not None:
                        time_to_first_chunk_ms = int(
                            (first_chunk_at - stream_start) * 1000
                        )
                stream_logger.info(
                    "stream_end",
                    endpoint=str(http_request.url.path),
                    correlation_id=context.correlation_id,
                    model_requested=context.model_requested,
                    model_anthropic=context.model_anthropic,
                    duration_ms=duration,
                    time_to_first_chunk_ms=time_to_first_chunk_ms,
                    chunk_count=chunk_count,
                    tool_call_count=state.tool_slot_index + 1,
                    finish_reason=state.finish_reason,
                    stream_failed=stream_failed,
                    error_status=error_status,
                    error_type=error_type,
                    token_usage=token_usage,
                )

    headers = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=headers
    )
