"""Redaction helpers for observability payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from openai_compat.config import OBS_REDACTION_MODE

REDACTION_TOKEN = "[REDACTED]"
LOG_ARRAY_LIMIT = 50
SENSITIVE_KEYS = {
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "password",
    "secret",
    "token",
    "x-api-key",
}


def _redaction_mode(override: Optional[str] = None) -> str:
    mode = (override or OBS_REDACTION_MODE or "full").strip().lower()
    if mode not in {"full", "off"}:
        return "full"
    return mode


def redact_text(text: Any, mode: Optional[str] = None) -> Any:
    """Replace a string value with the redaction token unless redaction is off."""

    if not isinstance(text, str):
        return text
    if _redaction_mode(mode) == "off":
        return text
    return REDACTION_TOKEN


def _normalize_payload(payload: Any) -> Any:
    if hasattr(payload, "model_dump"):
        return payload.model_dump(exclude_none=True)
    return payload


def _truncate_list(items: List[Any], limit: int) -> tuple[List[Any], bool]:
    if len(items) <= limit:
        return items, False
    return items[:limit], True


def _redact_value(value: Any, mode: Optional[str]) -> tuple[Any, bool]:
    if isinstance(value, str):
        return redact_text(value, mode), False
    if isinstance(value, list):
        items, truncated = _truncate_list(value, LOG_ARRAY_LIMIT)
        redacted_items = []
        for item in items:
            redacted_item, item_truncated = _redact_value(item, mode)
            truncated = truncated or item_truncated
            redacted_items.append(redacted_item)
        return redacted_items, truncated
    if isinstance(value, dict):
        redacted: Dict[str, Any] = {}
        truncated = False
        for key, item in value.items():
            if str(key).strip().lower() in SENSITIVE_KEYS:
                redacted[key] = REDACTION_TOKEN
                continue
            # Structural fields stay readable in logs.
            if key in {"type", "role", "id", "tool_call_id", "tool_use_id", "model"}:
                redacted[key] = item
                continue
            redacted_item, item_truncated = _redact_value(item, mode)
            truncated = truncated or item_truncated
            redacted[key] = redacted_item
        return redacted, truncated
    return value, False


def redact_generic_payload(payload: Any) -> Dict[str, Any]:
    """Redact every free-text value of a request/response payload."""

    data = _normalize_payload(payload)
    if not isinstance(data, dict):
        return {}
    redacted, truncated = _redact_value(data, None)
    if truncated:
        redacted["payload_truncated"] = True
    return redacted


def redact_openai_response(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = _normalize_payload(payload)
    if not isinstance(data, dict):
        return {}

    mode = _redaction_mode(None)
    redacted = dict(data)
    choices = data.get("choices")
    if not isinstance(choices, list):
        return redacted

    updated_choices = []
    for choice in choices:
        if not isinstance(choice, dict) or not isinstance(choice.get("message"), dict):
            updated_choices.append(choice)
            continue
        message = dict(choice["message"])
        message["content"] = redact_text(message.get("content"), mode)
        tool_calls = message.get("tool_calls")
        if isinstance(tool_calls, list):
            updated_calls = []
            for call in tool_calls:
                if not isinstance(call, dict) or not isinstance(call.get("function"), dict):
                    updated_calls.append(call)
                    continue
                function = dict(call["function"])
                function["arguments"] = redact_text(function.get("arguments"), mode)
                updated_calls.append({**call, "function": function})
            message["tool_calls"] = updated_calls
        updated_choices.append({**choice, "message": message})
    redacted["choices"] = updated_choices
    return redacted


def redact_openai_error(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = _normalize_payload(payload)
    if not isinstance(data, dict):
        return {}

    mode = _redaction_mode(None)
    redacted = dict(data)
    error = data.get("error")
    if isinstance(error, dict):
        updated_error = dict(error)
        if "message" in updated_error:
            updated_error["message"] = redact_text(updated_error.get("message"), mode)
        redacted["error"] = updated_error
    return redacted


def summarize_chat_request(payload: Any) -> Dict[str, Any]:
    data = _normalize_payload(payload)
    if not isinstance(data, dict):
        return {}

    messages = data.get("messages")
    tools = data.get("tools")
    role_counts: Dict[str, int] = {}
    tool_call_count = 0
    image_count = 0
    tool_name_counts: Dict[str, int] = {}

    if isinstance(messages, list):
        for message in messages:
            if not isinstance(message, dict):
                continue
            role = message.get("role")
            if isinstance(role, str):
                role_counts[role] = role_counts.get(role, 0) + 1
            for call in message.get("tool_calls") or []:
                if not isinstance(call, dict):
                    continue
                tool_call_count += 1
                function = call.get("function")
                name = function.get("name") if isinstance(function, dict) else None
                if isinstance(name, str) and name:
                    tool_name_counts[name] = tool_name_counts.get(name, 0) + 1
            content = message.get("content")
            if isinstance(content, list):
                image_count += sum(
                    1
                    for part in content
                    if isinstance(part, dict) and part.get("type") == "image_url"
                )

    return {
        "message_count": len(messages) if isinstance(messages, list) else 0,
        "role_counts": role_counts,
        "tool_definition_count": len(tools) if isinstance(tools, list) else 0,
        "tool_call_count": tool_call_count,
        "tool_result_count": role_counts.get("tool", 0),
        "tool_name_counts": tool_name_counts,
        "image_count": image_count,
        "stream": bool(data.get("stream")),
    }
