"""Logging utilities for Ragline."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import orjson

LOGGER_NAME = "ragline"
CONTEXT_PREFIX = "ctx_"

_DEFAULT_LEVEL = os.environ.get("RAGL_LOG_LEVEL", "INFO")
_DEFAULT_FORMAT = os.environ.get("RAGL_LOG_FORMAT", "json")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``ctx_*`` extras are grouped under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": f"{self.formatTime(record, '%Y-%m-%dT%H:%M:%S')}.{int(record.msecs):03d}",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {
            key[len(CONTEXT_PREFIX) :]: value
            for key, value in record.__dict__.items()
            if key.startswith(CONTEXT_PREFIX)
        }
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def configure_logging(level: str | int = _DEFAULT_LEVEL, fmt: str = _DEFAULT_FORMAT) -> logging.Logger:
    """Attach a single stderr handler to the ``ragline`` logger tree."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "text":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())
    logger.handlers = [handler]
    # stdout carries command output
    logger.propagate = False
    logging.captureWarnings(True)
    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    if not logging.getLogger(LOGGER_NAME).handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger", "LOGGER_NAME"]
