"""
Structured logging for the session store.

This module provides JSON log formatting for the package logger so that
connection transitions, eviction sweeps and crypto failures can be
collected by whatever log pipeline hosts the application.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from mongo_session_store.errors.exceptions import SessionStoreError

PACKAGE_LOGGER = "mongo_session_store"


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs one JSON object per record.

    Each entry carries timestamp (UTC, ``Z`` suffix), level, message,
    logger and source location, followed by the record's ``extra_data``
    mapping. When the record holds a SessionStoreError its code, category
    and details are added under ``error`` so failures can be grouped
    without parsing the traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data: Dict[str, Any] = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        log_data.update(_source_location(record))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data.update(extra_data)

        if record.exc_info:
            error = record.exc_info[1]
            if isinstance(error, SessionStoreError):
                log_data["error"] = error.to_dict()
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


def _source_location(record: logging.LogRecord) -> Dict[str, Any]:
    location: Dict[str, Any] = {"module": record.module, "line": record.lineno}
    if record.funcName and record.funcName != "<module>":
        location["function"] = record.funcName
    return location


def configure_logging(
    level: str = "INFO",
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure JSON logging for the package logger.

    Only the ``mongo_session_store`` logger is touched; the host
    application's root logger configuration is left alone.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Output stream, defaults to stdout

    Returns:
        The configured package logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicate logs
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter())
    package_logger.addHandler(handler)
    package_logger.propagate = False

    package_logger.debug("Session store logging configured", extra={
        "extra_data": {"log_level": level.upper()}
    })
    return package_logger

