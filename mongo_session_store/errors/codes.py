"""
Error code catalog for the session store.

This module defines all error codes raised by the session persistence
engine, grouped into the categories callers are expected to handle
differently: configuration mistakes, connection loss, transform and
crypto failures, missing sessions on touch, and background sweep
failures that are only ever logged.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Broad classes of failure, used to decide how an error is surfaced."""

    CONFIGURATION = "configuration"
    CONNECTION = "connection"
    TRANSFORM = "transform"
    CRYPTO = "crypto"
    NOT_FOUND = "not_found"
    BACKGROUND = "background"


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the store.

    Each error code belongs to one ErrorCategory:
    - Configuration errors: raised synchronously at construction
    - Connection errors: the engine is (or became) unusable
    - Transform / crypto errors: raised by the call that triggered them
    - Not found: touch could not match a stored session
    - Background: interval sweep failures, logged and never raised
    """

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Missing, conflicting or out-of-range store options"""

    NOT_CONNECTED = "NOT_CONNECTED"
    """The connection attempt failed or the store was closed"""

    SERIALIZATION_FAILED = "SERIALIZATION_FAILED"
    """A session could not be converted to its stored payload"""

    DESERIALIZATION_FAILED = "DESERIALIZATION_FAILED"
    """A stored payload could not be converted back to a session"""

    ENCRYPTION_FAILED = "ENCRYPTION_FAILED"
    """The crypto adapter rejected a plaintext payload"""

    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    """Wrong key, tampered or malformed ciphertext"""

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    """Touch did not match any stored session"""

    SWEEP_FAILED = "SWEEP_FAILED"
    """An interval eviction sweep failed"""


# Mapping of error codes to their category
ERROR_CODE_CATEGORY_MAP: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.CONFIGURATION_ERROR: ErrorCategory.CONFIGURATION,
    ErrorCode.NOT_CONNECTED: ErrorCategory.CONNECTION,
    ErrorCode.SERIALIZATION_FAILED: ErrorCategory.TRANSFORM,
    ErrorCode.DESERIALIZATION_FAILED: ErrorCategory.TRANSFORM,
    ErrorCode.ENCRYPTION_FAILED: ErrorCategory.CRYPTO,
    ErrorCode.DECRYPTION_FAILED: ErrorCategory.CRYPTO,
    ErrorCode.SESSION_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.SWEEP_FAILED: ErrorCategory.BACKGROUND,
}


def get_category(error_code: ErrorCode) -> ErrorCategory:
    """
    Get the category for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The ErrorCategory the code belongs to
    """
    return ERROR_CODE_CATEGORY_MAP[error_code]
