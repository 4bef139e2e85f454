"""Map Anthropic Messages responses to OpenAI Chat Completions responses."""

from __future__ import annotations

import json
import secrets
import time
from typing import Any, Dict, List, Optional

from openai_compat.mapping.constants import (
    ANTHROPIC_MESSAGE_ID_PREFIX,
    CHAT_COMPLETION_OBJECT,
    COMPLETION_ID_PREFIX,
    map_finish_reason,
)


def _safe_json_dumps(value: object) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return json.dumps(str(value), ensure_ascii=False)


def _int_or_zero(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def new_completion_id() -> str:
    return f"{COMPLETION_ID_PREFIX}{secrets.token_hex(12)}"


def completion_id_from_message_id(message_id: Any) -> str:
    """Reuse the backend message id under the ``chatcmpl-`` prefix."""

    if not isinstance(message_id, str) or not message_id:
        return new_completion_id()
    return COMPLETION_ID_PREFIX + message_id.replace(ANTHROPIC_MESSAGE_ID_PREFIX, "", 1)


def normalize_anthropic_usage(usage: Optional[Dict[str, Any]]) -> Dict[str, int]:
    """Fold Anthropic usage into OpenAI prompt/completion/total counts."""

    if not isinstance(usage, dict):
        usage = {}
    prompt_tokens = _int_or_zero(usage.get("input_tokens")) + _int_or_zero(
        usage.get("cache_read_input_tokens")
    )
    completion_tokens = _int_or_zero(usage.get("output_tokens"))
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }


def map_anthropic_response_to_openai(
    response: Dict[str, Any],
    model: Optional[str],
    include_thinking: bool = False,
) -> Dict[str, Any]:
    """Convert an Anthropic message response into an OpenAI chat completion."""

    text_parts: List[str] = []
    tool_calls: List[Dict[str, Any]] = []

    for block in response.get("content") or []:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text_parts.append(block.get("text") or "")
            continue
        if block_type == "thinking":
            if include_thinking:
                text_parts.append(f"<thinking>\n{block.get('thinking') or ''}\n</thinking>")
            continue
        if block_type == "tool_use":
            tool_calls.append(
                {
                    "id": block.get("id"),
                    "type": "function",
                    "function": {
                        "name": block.get("name"),
                        "arguments": _safe_json_dumps(block.get("input") or {}),
                    },
                    "index": len(tool_calls),
                }
            )
            continue

    message: Dict[str, Any] = {
        "role": "assistant",
        "content": "\n".join(text_parts) if text_parts else None,
    }
    if tool_calls:
        message["tool_calls"] = tool_calls

    return {
        "id": completion_id_from_message_id(response.get("id")),
        "object": CHAT_COMPLETION_OBJECT,
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": message,
                "logprobs": None,
                "finish_reason": map_finish_reason(response.get("stop_reason")),
            }
        ],
        "usage": normalize_anthropic_usage(response.get("usage")),
        "system_fingerprint": None,
    }
