"""Anthropic Messages API transport client."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from openai_compat import config
from openai_compat.transport.upstream_common import (
    AnthropicUpstreamError,
    build_upstream_request,
    safe_json,
)


async def create_anthropic_message(payload: Dict[str, Any]) -> Dict[str, Any]:
    """POST a Messages API payload and return the JSON response."""
    url, headers = build_upstream_request()
    request_payload = dict(payload)
    request_payload["stream"] = False

    async with httpx.AsyncClient(timeout=config.UPSTREAM_TIMEOUT_SECONDS) as client:
        response = await client.post(url, json=request_payload, headers=headers)

    if response.is_error:
        raise AnthropicUpstreamError(response.status_code, safe_json(response))
    return response.json()
