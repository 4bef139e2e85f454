"""Lookup tables and constants shared by the OpenAI <-> Anthropic mappers."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

DEFAULT_MAX_TOKENS = 4096

COMPLETION_ID_PREFIX = "chatcmpl-"
ANTHROPIC_MESSAGE_ID_PREFIX = "msg_"

CHAT_COMPLETION_OBJECT = "chat.completion"
CHAT_COMPLETION_CHUNK_OBJECT = "chat.completion.chunk"

THINKING_OPEN_MARKER = "<thinking>\n"
THINKING_CLOSE_MARKER = "\n</thinking>\n"

STOP_REASON_TO_FINISH_REASON: Dict[str, str] = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}

ERROR_TYPE_MAP: Dict[str, str] = {
    "authentication_error": "invalid_api_key",
    "invalid_request_error": "invalid_request_error",
    "rate_limit_error": "rate_limit_exceeded",
    "api_error": "api_error",
    "overloaded_error": "server_error",
    "permission_error": "insufficient_quota",
}

STATUS_CODE_TO_ERROR_CODE: Dict[int, str] = {
    400: "invalid_request_error",
    401: "invalid_api_key",
    429: "rate_limit_exceeded",
}

# (model-name substring, reasoning budget); first match wins.
ThinkingRules = Tuple[Tuple[str, int], ...]

DEFAULT_THINKING_RULES: ThinkingRules = (
    ("thinking", 10000),
    ("gemini-3", 10000),
)


def map_finish_reason(stop_reason: Optional[str]) -> str:
    """Map an Anthropic stop_reason to an OpenAI finish_reason."""

    if not isinstance(stop_reason, str):
        return "stop"
    return STOP_REASON_TO_FINISH_REASON.get(stop_reason, "stop")


def map_error_type(error_type: Optional[str]) -> str:
    if not isinstance(error_type, str):
        return "api_error"
    return ERROR_TYPE_MAP.get(error_type, "api_error")


def error_code_for_status(status_code: Optional[int]) -> Optional[str]:
    if not isinstance(status_code, int):
        return None
    return STATUS_CODE_TO_ERROR_CODE.get(status_code)


def thinking_budget_for_model(
    model: Optional[str], rules: ThinkingRules = DEFAULT_THINKING_RULES
) -> Optional[int]:
    if not isinstance(model, str) or not model:
        return None
    for pattern, budget in rules:
        if pattern in model:
            return budget
    return None
