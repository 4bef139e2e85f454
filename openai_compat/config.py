"""Configuration helpers for Anthropic upstream access."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

import structlog

from openai_compat.mapping.constants import DEFAULT_THINKING_RULES, ThinkingRules

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_BASE_URL = os.getenv(
    "ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1"
).rstrip("/")
ANTHROPIC_VERSION = os.getenv("ANTHROPIC_VERSION", "2023-06-01")

logger = structlog.get_logger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


UPSTREAM_TIMEOUT_SECONDS = _env_float("UPSTREAM_TIMEOUT_SECONDS", 300.0)
INCLUDE_THINKING = _env_bool("INCLUDE_THINKING", False)

OBS_LOG_ENABLED = _env_bool("OBS_LOG_ENABLED", False)
OBS_LOG_ALL = _env_bool("OBS_LOG_ALL", False)
OBS_LOG_FILE = os.getenv("OBS_LOG_FILE", "./logs/requests.log")
OBS_LOG_PRETTY = _env_bool("OBS_LOG_PRETTY", True)
OBS_STREAM_LOG_ENABLED = _env_bool("OBS_STREAM_LOG_ENABLED", False)
OBS_STREAM_LOG_FILE = os.getenv("OBS_STREAM_LOG_FILE", "./logs/streaming.log")
OBS_REDACTION_MODE = os.getenv("OBS_REDACTION_MODE", "full")


class MissingAnthropicAPIKeyError(ValueError):
    """Raised when the Anthropic API key is missing."""


def require_anthropic_api_key() -> str:
    """Return the API key or raise if missing."""
    if not ANTHROPIC_API_KEY:
        raise MissingAnthropicAPIKeyError("ANTHROPIC_API_KEY is required")
    return ANTHROPIC_API_KEY


def include_thinking() -> bool:
    return INCLUDE_THINKING


def get_anthropic_default_model() -> str:
    return os.getenv("ANTHROPIC_DEFAULT_MODEL", "claude-sonnet-4-5")


def _normalize_model_key(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip().casefold()
    return normalized or None


@lru_cache(maxsize=16)
def _parse_model_map(raw: str | None) -> Dict[str, str]:
    if not raw:
        return {}

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("MODEL_MAP_JSON must be valid JSON") from exc
    if not isinstance(parsed, dict):
        raise ValueError("MODEL_MAP_JSON must be a JSON object")

    normalized_map: Dict[str, str] = {}
    for raw_key, raw_value in parsed.items():
        normalized_key = _normalize_model_key(raw_key)
        if normalized_key is None:
            raise ValueError("MODEL_MAP_JSON keys must be non-empty strings")
        if not isinstance(raw_value, str) or not raw_value.strip():
            raise ValueError(
                f"MODEL_MAP_JSON value for '{raw_key}' must be a non-empty string"
            )
        if normalized_key in normalized_map:
            raise ValueError(
                "MODEL_MAP_JSON has duplicate keys after normalization: "
                f"{normalized_key}"
            )
        normalized_map[normalized_key] = raw_value.strip()

    if OBS_LOG_ENABLED:
        logger.info("model_map_loaded", entry_count=len(normalized_map))

    return normalized_map


def _load_model_map() -> Dict[str, str]:
    return _parse_model_map(os.getenv("MODEL_MAP_JSON"))


@lru_cache(maxsize=16)
def _parse_thinking_rules(raw: str | None) -> ThinkingRules:
    if not raw:
        return DEFAULT_THINKING_RULES

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("THINKING_MODEL_RULES_JSON must be valid JSON") from exc
    if not isinstance(parsed, dict):
        raise ValueError("THINKING_MODEL_RULES_JSON must be a JSON object")

    rules = []
    for pattern, budget in parsed.items():
        if not isinstance(pattern, str) or not pattern:
            raise ValueError("THINKING_MODEL_RULES_JSON keys must be non-empty strings")
        if isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0:
            raise ValueError(
                f"THINKING_MODEL_RULES_JSON budget for '{pattern}' must be a positive integer"
            )
        rules.append((pattern, budget))
    return tuple(rules)


def get_thinking_rules() -> ThinkingRules:
    """Return the model-pattern -> reasoning budget table."""
    return _parse_thinking_rules(os.getenv("THINKING_MODEL_RULES_JSON"))


def _clear_config_caches_for_tests() -> None:
    _parse_model_map.cache_clear()
    _parse_thinking_rules.cache_clear()


def resolve_anthropic_model(requested_model: Optional[str]) -> str:
    """Resolve a requested model name to the backend model name.

    Exact matches win, then the longest mapped prefix. Names with no mapping
    are passed through unchanged; a missing name falls back to
    ``ANTHROPIC_DEFAULT_MODEL``.
    """
    normalized_request = _normalize_model_key(requested_model)
    if normalized_request is None:
        return get_anthropic_default_model()

    model_map = _load_model_map()
    match_type, resolved = _match_model(normalized_request, model_map)
    if resolved is None:
        resolved = str(requested_model).strip()

    if OBS_LOG_ENABLED:
        logger.info(
            "model_resolved",
            model_requested=normalized_request,
            match_type=match_type,
            model_anthropic=resolved,
        )

    return resolved


def _match_model(
    normalized_request: str, model_map: Dict[str, str]
) -> Tuple[str, str | None]:
    resolved = model_map.get(normalized_request)
    if resolved is not None:
        return "exact", resolved

    # Keys are unique after normalization, so the longest prefix is unique too.
    matches = [(k, v) for k, v in model_map.items() if normalized_request.startswith(k)]
    if not matches:
        return "miss", None
    _, best = max(matches, key=lambda item: len(item[0]))
    return "prefix", best
