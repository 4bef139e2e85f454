"""Shared upstream request helpers for the Anthropic transports."""

from __future__ import annotations

import json
from typing import Any, List

import httpx
from asgi_correlation_id import correlation_id

from openai_compat import config


class AnthropicUpstreamError(Exception):
    """Raised when the Anthropic upstream returns an error response."""

    def __init__(self, status_code: int, error_payload: Any) -> None:
        super().__init__(f"Anthropic upstream error ({status_code})")
        self.status_code = status_code
        self.error_payload = error_payload


def build_upstream_request() -> tuple[str, dict[str, str]]:
    """Return (url, headers) for the Messages endpoint."""
    api_key = config.require_anthropic_api_key()
    headers = {
        "x-api-key": api_key,
        "anthropic-version": config.ANTHROPIC_VERSION,
        "content-type": "application/json",
    }

    upstream_correlation_id = correlation_id.get()
    if upstream_correlation_id:
        headers["X-Correlation-ID"] = upstream_correlation_id

    return f"{config.ANTHROPIC_BASE_URL}/messages", headers


def safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"type": "error", "error": {"type": "api_error", "message": response.text}}


def parse_data(data_lines: List[str]) -> Any:
    raw = "\n".join(data_lines)
    if raw == "":
        return ""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw
