"""Shared state and helper functions for Anthropic->OpenAI stream translation."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple

from openai_compat.mapping.anthropic_to_openai import new_completion_id
from openai_compat.mapping.constants import CHAT_COMPLETION_CHUNK_OBJECT

DONE_FRAME = "data: [DONE]\n\n"

OpenBlockKind = Optional[Literal["text", "thinking", "tool"]]


def format_sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@dataclass
class StreamState:
    """Per-stream translation state, owned by exactly one stream."""

    model: Optional[str] = None
    include_thinking: bool = False
    completion_id: str = field(default_factory=new_completion_id)
    created: int = field(default_factory=lambda: int(time.time()))
    open_block: OpenBlockKind = None
    tool_slot_index: int = -1
    tool_call_id: Optional[str] = None
    initial_chunk_sent: bool = False
    finish_reason: str = "stop"
    errored: bool = False
    error: Optional[Dict[str, Any]] = None
    usage: Dict[str, int] = field(default_factory=dict)

    def open_tool_slot(self, call_id: Optional[str]) -> int:
        self.tool_slot_index += 1
        self.tool_call_id = call_id
        self.open_block = "tool"
        return self.tool_slot_index

    def record_usage(self, usage: Any) -> None:
        if not isinstance(usage, dict):
            return
        for key, value in usage.items():
            if isinstance(value, int) and not isinstance(value, bool):
                self.usage[key] = value


def build_chunk(
    state: StreamState,
    delta: Dict[str, Any],
    finish_reason: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": state.completion_id,
        "object": CHAT_COMPLETION_CHUNK_OBJECT,
        "created": state.created,
        "model": state.model,
        "choices": [
            {
                "index": 0,
                "delta": delta,
                "logprobs": None,
                "finish_reason": finish_reason,
            }
        ],
        "system_fingerprint": None,
    }


def role_chunk(state: StreamState) -> Dict[str, Any]:
    state.initial_chunk_sent = True
    return build_chunk(state, {"role": "assistant", "content": ""})


def content_chunk(state: StreamState, text: str) -> Dict[str, Any]:
    return build_chunk(state, {"content": text})


def tool_start_chunk(
    state: StreamState, index: int, call_id: Optional[str], name: Optional[str]
) -> Dict[str, Any]:
    return build_chunk(
        state,
        {
            "tool_calls": [
                {
                    "index": index,
                    "id": call_id,
                    "type": "function",
                    "function": {"name": name, "arguments": ""},
                }
            ]
        },
    )


def tool_arguments_chunk(
    state: StreamState, index: int, partial_json: str
) -> Dict[str, Any]:
    # Continuations carry no id/name so clients append to the open call.
    return build_chunk(
        state,
        {"tool_calls": [{"index": index, "function": {"arguments": partial_json}}]},
    )


def unwrap_event(event: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
    """Return (event_type, payload) for raw payloads or parsed SSE frames."""

    data = event.get("data")
    payload: Dict[str, Any] = data if isinstance(data, dict) else event
    event_type = payload.get("type")
    if not isinstance(event_type, str) or not event_type:
        event_type = event.get("event")
    return (event_type if isinstance(event_type, str) else None), payload

