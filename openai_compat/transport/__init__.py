"""Transport clients for the Anthropic upstream."""

from openai_compat.transport.anthropic_client import create_anthropic_message
from openai_compat.transport.anthropic_stream import stream_anthropic_events
from openai_compat.transport.upstream_common import AnthropicUpstreamError

__all__ = [
    "AnthropicUpstreamError",
    "create_anthropic_message",
    "stream_anthropic_events",
]
