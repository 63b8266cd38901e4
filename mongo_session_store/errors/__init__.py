"""
Error handling module for the session store.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- ErrorCategory enum grouping codes by how they surface
- SessionStoreError and its subclasses
"""

from mongo_session_store.errors.codes import ErrorCategory, ErrorCode, get_category
from mongo_session_store.errors.exceptions import (
    ConfigurationError,
    CryptoError,
    NotConnectedError,
    SessionNotFoundError,
    SessionStoreError,
    TransformError,
)

__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "get_category",
    "ConfigurationError",
    "CryptoError",
    "NotConnectedError",
    "SessionNotFoundError",
    "SessionStoreError",
    "TransformError",
]
