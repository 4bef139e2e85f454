"""Observability helpers."""

from openai_compat.observability.logging import configure_logging, logging_enabled
from openai_compat.observability.redaction import (
    redact_generic_payload,
    redact_openai_error,
    redact_openai_response,
    redact_text,
)

__all__ = [
    "configure_logging",
    "logging_enabled",
    "redact_generic_payload",
    "redact_openai_error",
    "redact_openai_response",
    "redact_text",
]
