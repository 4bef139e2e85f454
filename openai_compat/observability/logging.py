"""Structured logging setup: structlog rendering over stdlib handlers."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List

import structlog

from openai_compat.config import (
    OBS_LOG_ALL,
    OBS_LOG_ENABLED,
    OBS_LOG_FILE,
    OBS_LOG_PRETTY,
    OBS_STREAM_LOG_ENABLED,
    OBS_STREAM_LOG_FILE,
)

STREAM_LOGGER_NAME = "streaming"


def logging_enabled() -> bool:
    return OBS_LOG_ENABLED


def streaming_logging_enabled() -> bool:
    return OBS_STREAM_LOG_ENABLED


def _level() -> int:
    return logging.DEBUG if OBS_LOG_ALL else logging.INFO


def _shared_processors() -> List[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _renderer() -> structlog.processors.JSONRenderer:
    if OBS_LOG_PRETTY:
        return structlog.processors.JSONRenderer(indent=2, sort_keys=True)
    return structlog.processors.JSONRenderer()


def _formatter() -> structlog.stdlib.ProcessorFormatter:
    # ExtraAdder picks up `extra=` fields from plain stdlib loggers.
    return structlog.stdlib.ProcessorFormatter(
        processor=_renderer(),
        foreign_pre_chain=[*_shared_processors(), structlog.stdlib.ExtraAdder()],
    )


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(_formatter())
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    return _handler(logging.FileHandler(file_path), level)


def _reset_logger(
    logger: logging.Logger, level: int, handlers: List[logging.Handler]
) -> None:
    logger.setLevel(level)
    logger.handlers.clear()
    for handler in handlers:
        logger.addHandler(handler)


def configure_logging() -> None:
    level = _level()
    if logging_enabled():
        _reset_logger(
            logging.getLogger(),
            level,
            [
                _handler(logging.StreamHandler(sys.stdout), logging.INFO),
                _handler(logging.StreamHandler(sys.stderr), logging.ERROR),
                _file_handler(OBS_LOG_FILE, level),
            ],
        )
    if streaming_logging_enabled():
        stream_logger = logging.getLogger(STREAM_LOGGER_NAME)
        _reset_logger(stream_logger, level, [_file_handler(OBS_STREAM_LOG_FILE, level)])
        stream_logger.propagate = False

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.format_exc_info,
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_stream_logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(STREAM_LOGGER_NAME)
