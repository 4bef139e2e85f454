"""OpenAI error envelope helpers."""

from __future__ import annotations

from typing import Any, Dict, Optional

from openai_compat.mapping.constants import error_code_for_status, map_error_type

DEFAULT_ERROR_MESSAGE = "An error occurred"


class MalformedRequest(ValueError):
    """Raised when a Chat Completions request is missing required structure."""


def _extract_anthropic_error(anthropic_error: Any) -> Dict[str, Any]:
    if isinstance(anthropic_error, dict):
        inner = anthropic_error.get("error")
        if isinstance(inner, dict):
            return inner
        return anthropic_error
    return {}


def build_openai_error(
    message: str,
    error_type: str = "api_error",
    code: Optional[str] = None,
    param: Optional[str] = None,
) -> Dict[str, Any]:
    """Return an OpenAI error envelope."""

    return {
        "error": {
            "message": message,
            "type": error_type,
            "param": param,
            "code": code,
        }
    }


def map_anthropic_error_to_openai(
    anthropic_error: Any, status_code: Optional[int]
) -> Dict[str, Any]:
    """Convert an Anthropic error payload to an OpenAI error envelope.

    ``type`` follows the Anthropic error category; ``code`` depends on the
    HTTP status alone.
    """

    error = _extract_anthropic_error(anthropic_error)
    message = error.get("message")
    if not isinstance(message, str) or not message:
        message = DEFAULT_ERROR_MESSAGE
    return build_openai_error(
        message,
        error_type=map_error_type(error.get("type")),
        code=error_code_for_status(status_code),
    )
