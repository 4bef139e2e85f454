"""Translate Anthropic Messages streaming events into OpenAI chat completion chunks."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from openai_compat.errors.openai_error import DEFAULT_ERROR_MESSAGE, build_openai_error
from openai_compat.mapping.anthropic_stream_helpers import (
    DONE_FRAME,
    StreamState,
    build_chunk,
    content_chunk,
    format_sse,
    role_chunk,
    tool_arguments_chunk,
    tool_start_chunk,
    unwrap_event,
)
from openai_compat.mapping.constants import (
    THINKING_CLOSE_MARKER,
    THINKING_OPEN_MARKER,
    map_finish_reason,
)

logger = logging.getLogger(__name__)

Chunk = Dict[str, Any]


def _with_role(state: StreamState, chunk: Chunk) -> List[Chunk]:
    if state.initial_chunk_sent:
        return [chunk]
    return [role_chunk(state), chunk]


def _on_block_start(state: StreamState, payload: Dict[str, Any]) -> List[Chunk]:
    block = payload.get("content_block")
    if not isinstance(block, dict):
        block = {}
    block_type = block.get("type")

    if block_type == "thinking":
        state.open_block = "thinking"
        if state.include_thinking:
            return _with_role(state, content_chunk(state, THINKING_OPEN_MARKER))
        return []
    if block_type == "tool_use":
        call_id = block.get("id")
        index = state.open_tool_slot(call_id)
        return _with_role(
            state, tool_start_chunk(state, index, call_id, block.get("name"))
        )
    if block_type == "text":
        state.open_block = "text"
        return []
    state.open_block = None
    return []


def _on_block_delta(state: StreamState, payload: Dict[str, Any]) -> List[Chunk]:
    delta = payload.get("delta")
    if not isinstance(delta, dict):
        return []
    delta_type = delta.get("type")

    if delta_type == "thinking_delta":
        if state.open_block == "thinking" and state.include_thinking:
            return _with_role(state, content_chunk(state, delta.get("thinking") or ""))
        return []
    if delta_type == "text_delta":
        return _with_role(state, content_chunk(state, delta.get("text") or ""))
    if delta_type == "input_json_delta":
        if state.tool_slot_index < 0:
            return []
        return _with_role(
            state,
            tool_arguments_chunk(
                state, state.tool_slot_index, delta.get("partial_json") or ""
            ),
        )
    # signature_delta has no OpenAI equivalent.
    return []


def _on_block_stop(state: StreamState) -> List[Chunk]:
    chunks: List[Chunk] = []
    if state.open_block == "thinking" and state.include_thinking:
        chunks = _with_role(state, content_chunk(state, THINKING_CLOSE_MARKER))
    if state.open_block == "tool":
        state.tool_call_id = None
    state.open_block = None
    return chunks


def _on_error(state: StreamState, payload: Dict[str, Any]) -> List[Chunk]:
    upstream_error = payload.get("error")
    if not isinstance(upstream_error, dict):
        upstream_error = {}
    message = upstream_error.get("message")
    if not isinstance(message, str) or not message:
        message = DEFAULT_ERROR_MESSAGE
    # Upstream categories are not forwarded mid-stream.
    error = build_openai_error(message, error_type="api_error")["error"]
    state.errored = True
    state.error = error
    logger.warning(
        "upstream_stream_error",
        extra={
            "completion_id": state.completion_id,
            "upstream_error_type": upstream_error.get("type"),
            "error_message": error["message"],
        },
    )
    chunk = build_chunk(state, {}, "stop")
    chunk["error"] = error
    return [chunk]


def translate_event(state: StreamState, event: Dict[str, Any]) -> List[Chunk]:
    """Advance ``state`` by one Anthropic event and return the chunks it produces."""

    event_type, payload = unwrap_event(event)

    if event_type == "message_start":
        message = payload.get("message")
        if isinstance(message, dict):
            state.record_usage(message.get("usage"))
        if state.initial_chunk_sent:
            return []
        return [role_chunk(state)]

    if event_type == "content_block_start":
        return _on_block_start(state, payload)

    if event_type == "content_block_delta":
        return _on_block_delta(state, payload)

    if event_type == "content_block_stop":
        return _on_block_stop(state)

    if event_type == "message_delta":
        delta = payload.get("delta")
        if isinstance(delta, dict) and delta.get("stop_reason"):
            state.finish_reason = map_finish_reason(delta.get("stop_reason"))
        state.record_usage(payload.get("usage"))
        return []

    if event_type == "error":
        return _on_error(state, payload)

    # message_stop, ping and unknown events produce nothing.
    return []


def finish_stream(state: StreamState) -> List[Chunk]:
    """Return the terminal chunk carrying the recorded finish reason."""

    return [build_chunk(state, {}, state.finish_reason or "stop")]


async def translate_anthropic_events(
    events: AsyncIterator[Dict[str, Any]],
    model: Optional[str] = None,
    include_thinking: bool = False,
    state: Optional[StreamState] = None,
) -> AsyncIterator[str]:
    """Yield OpenAI SSE frames for an Anthropic event stream.

    A caller that needs to inspect the stream afterwards (usage, errors) can
    pass its own ``state``; ``model`` and ``include_thinking`` are ignored
    in that case. If ``events`` raises, the exception propagates and no
    terminal chunk is produced.
    """

    if state is None:
        state = StreamState(model=model, include_thinking=include_thinking)

    async for event in events:
        for chunk in translate_event(state, event):
            yield format_sse(chunk)
        if state.errored:
            yield DONE_FRAME
            return

    for chunk in finish_stream(state):
        yield format_sse(chunk)
    yield DONE_FRAME
