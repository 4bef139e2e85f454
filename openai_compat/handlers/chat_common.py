"""Shared helpers for /v1/chat/completions handlers."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from asgi_correlation_id import correlation_id
from fastapi import Request

from openai_compat.config import get_anthropic_default_model, resolve_anthropic_model
from openai_compat.errors.openai_error import (
    build_openai_error,
    map_anthropic_error_to_openai,
)
from openai_compat.observability.logging import logging_enabled
from openai_compat.observability.redaction import (
    redact_generic_payload,
    redact_openai_error,
    summarize_chat_request,
)
from openai_compat.transport.upstream_common import AnthropicUpstreamError


@dataclass(frozen=True)
class ChatRequestContext:
    model_requested: Optional[str]
    model_anthropic: str
    correlation_id: Optional[str]
    payload_summary: Optional[Dict[str, Any]]


def normalize_anthropic_payload(payload: Any) -> Dict[str, Any]:
    if hasattr(payload, "model_dump"):
        return payload.model_dump(exclude_none=True)
    return payload


def get_correlation_id(request: Request) -> Optional[str]:
    return getattr(request.state, "correlation_id", None) or correlation_id.get()


def duration_ms(request: Request) -> Optional[int]:
    start_time = getattr(request.state, "start_time", None)
    if start_time is None:
        return None
    return int((time.perf_counter() - start_time) * 1000)


def format_sse_error(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def prepare_request_context(
    logger: Any,
    http_request: Request,
    request: Any,
    include_stream_logging: bool = False,
) -> ChatRequestContext:
    model_requested = request.model
    try:
        model_anthropic = resolve_anthropic_model(model_requested)
    except ValueError as exc:
        logger.warning("model_map_invalid", error=str(exc))
        model_anthropic = model_requested or get_anthropic_default_model()

    summarize = logging_enabled() or include_stream_logging
    context = ChatRequestContext(
        model_requested=model_requested,
        model_anthropic=model_anthropic,
        correlation_id=get_correlation_id(http_request),
        payload_summary=summarize_chat_request(request) if summarize else None,
    )

    if logging_enabled():
        logger.info(
            "request",
            method=http_request.method,
            payload=redact_generic_payload(request),
            payload_summary=context.payload_summary,
            **_event_fields(http_request, context),
        )
    return context


def _event_fields(
    http_request: Request, context: ChatRequestContext
) -> Dict[str, Any]:
    return {
        "endpoint": str(http_request.url.path),
        "correlation_id": context.correlation_id,
        "model_requested": context.model_requested,
        "model_anthropic": context.model_anthropic,
    }


def log_upstream_request(
    logger: Any,
    http_request: Request,
    context: ChatRequestContext,
    payload: Dict[str, Any],
) -> None:
    if logging_enabled():
        logger.debug(
            "upstream_request",
            payload=redact_generic_payload(payload),
            **_event_fields(http_request, context),
        )


def log_error(
    logger: Any,
    http_request: Request,
    context: ChatRequestContext,
    status_code: int,
    payload: Dict[str, Any],
) -> None:
    if logging_enabled():
        logger.info(
            "error",
            status_code=status_code,
            duration_ms=duration_ms(http_request),
            payload=redact_openai_error(payload),
            **_event_fields(http_request, context),
        )


def log_success_response(
    logger: Any,
    http_request: Request,
    context: ChatRequestContext,
    token_usage: Optional[Dict[str, Any]],
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    if not logging_enabled():
        return
    fields = _event_fields(http_request, context)
    fields.update(
        status_code=200,
        duration_ms=duration_ms(http_request),
        token_usage=token_usage,
    )
    if payload is not None:
        fields["payload"] = payload
    logger.info("response", **fields)


def build_missing_credentials_error(exc: Exception) -> Tuple[int, Dict[str, Any]]:
    message = str(exc) or "Missing upstream credentials"
    return 401, build_openai_error(
        message, error_type="invalid_api_key", code="invalid_api_key"
    )


def build_upstream_error(exc: AnthropicUpstreamError) -> Tuple[int, Dict[str, Any]]:
    return exc.status_code, map_anthropic_error_to_openai(
        exc.error_payload, exc.status_code
    )
