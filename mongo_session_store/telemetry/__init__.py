"""
Telemetry module for structured logging.

This module provides:
- JSONFormatter for structured JSON log output
- configure_logging to attach it to the package logger
"""

from mongo_session_store.telemetry.service import (
    JSONFormatter,
    configure_logging,
)

__all__ = [
    "JSONFormatter",
    "configure_logging",
]
