"""Logging setup for crawler processes.

A single stream handler is installed on the package logger, either with a
human-readable format or a minimal JSON formatter (LOG_JSON=true).
"""

from __future__ import annotations

import json
import logging

PACKAGE_LOGGER = "notes_crawl_core"
HUMAN_FORMAT = "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def _get_formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        return JsonFormatter()
    return logging.Formatter(HUMAN_FORMAT)


def configure_logging(level: str = "INFO", *, json_output: bool = False) -> logging.Logger:
    """
    Configure the package logger. Calling it again replaces the handler
    installed by a previous call instead of stacking a second one.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_notes_crawl_core", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(_get_formatter(json_output))
    handler._notes_crawl_core = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
