"""Anthropic Messages API streaming transport client."""

from __future__ import annotations

from typing import Any, AsyncGenerator, AsyncIterable, Dict, List, Optional

import httpx

from openai_compat import config
from openai_compat.observability.logging import (
    get_stream_logger,
    streaming_logging_enabled,
)
from openai_compat.transport.upstream_common import (
    AnthropicUpstreamError,
    build_upstream_request,
    parse_data,
    safe_json,
)


async def iter_sse_frames(
    lines: AsyncIterable[str],
) -> AsyncGenerator[Dict[str, Any], None]:
    """Group SSE lines into ``{"event": name, "data": parsed}`` frames."""
    current_event: Optional[str] = None
    data_lines: List[str] = []

    async for line in lines:
        if line == "":
            if current_event is None and not data_lines:
                continue
            yield {"event": current_event or "message", "data": parse_data(data_lines)}
            current_event = None
            data_lines = []
            continue

        if line.startswith(":"):
            continue

        if line.startswith("event:"):
            current_event = line[len("event:") :].lstrip()
            continue

        if line.startswith("data:"):
            data_lines.append(line[len("data:") :].lstrip())
            continue

    if current_event is not None or data_lines:
        yield {"event": current_event or "message", "data": parse_data(data_lines)}


async def stream_anthropic_events(
    payload: Dict[str, Any],
) -> AsyncGenerator[Dict[str, Any], None]:
    """Stream Anthropic Messages API events as parsed SSE frames."""
    stream_logger = get_stream_logger() if streaming_logging_enabled() else None

    url, headers = build_upstream_request()
    payload = dict(payload)
    payload["stream"] = True

    async with httpx.AsyncClient(timeout=config.UPSTREAM_TIMEOUT_SECONDS) as client:
        if stream_logger:
            stream_logger.info(
                "upstream_connect_start",
                upstream_url=url,
                correlation_id=headers.get("X-Correlation-ID"),
            )
        async with client.stream("POST", url, json=payload, headers=headers) as response:
            if response.is_error:
                await response.aread()
                raise AnthropicUpstreamError(response.status_code, safe_json(response))
            async for frame in iter_sse_frames(response.aiter_lines()):
                yield frame
