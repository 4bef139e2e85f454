"""Mapping helpers between OpenAI and Anthropic schemas."""

from importlib import import_module

__all__ = [
    "map_anthropic_response_to_openai",
    "map_openai_request_to_anthropic",
    "translate_anthropic_events",
]

# Re-exports are resolved lazily to avoid a circular import with
# openai_compat.errors.openai_error, which imports mapping.constants.
_LAZY_EXPORTS = {
    "translate_anthropic_events": ".anthropic_stream_to_openai",
    "map_anthropic_response_to_openai": ".anthropic_to_openai",
    "map_openai_request_to_anthropic": ".openai_to_anthropic",
}


def __getattr__(name):
    if name in _LAZY_EXPORTS:
        return getattr(import_module(_LAZY_EXPORTS[name], __name__), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
