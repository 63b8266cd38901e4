"""
Exception classes for the session store.

Every error raised by the engine itself derives from SessionStoreError and
carries an ErrorCode. Errors raised by the MongoDB driver during a store
call are not wrapped and propagate unchanged.
"""

from typing import Any, Optional

from mongo_session_store.errors.codes import ErrorCategory, ErrorCode, get_category


class SessionStoreError(Exception):
    """
    Base exception class for all session store errors.

    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - details: Optional additional context (e.g., the session id involved)

    Example:
        raise SessionStoreError(
            error_code=ErrorCode.SESSION_NOT_FOUND,
            message="Unable to find the session to touch",
            details={"sid": "abc"}
        )
    """

    default_code: ErrorCode = ErrorCode.CONFIGURATION_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize a SessionStoreError.

        Args:
            message: A human-readable error message
            error_code: The error code (defaults to the class's default code)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code or self.default_code
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def category(self) -> ErrorCategory:
        """The category of this error."""
        return get_category(self.error_code)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for structured logging.

        Returns:
            Dictionary containing error_code, category, message, and details
        """
        result = {
            "error_code": self.error_code.value,
            "category": self.category.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, details={self.details!r})"
        )


class ConfigurationError(SessionStoreError):
    """
    Raised synchronously when store options fail validation.

    Lists every missing and invalid field rather than only the first one.
    """

    default_code = ErrorCode.CONFIGURATION_ERROR

    def __init__(
        self,
        message: str,
        missing_fields: Optional[list[str]] = None,
        invalid_fields: Optional[dict[str, str]] = None
    ):
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(
            self._format(message),
            details={
                "missing_fields": self.missing_fields,
                "invalid_fields": self.invalid_fields,
            },
        )

    def _format(self, message: str) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


class NotConnectedError(SessionStoreError):
    """Raised by every operation once the store is disconnected."""

    default_code = ErrorCode.NOT_CONNECTED


class TransformError(SessionStoreError):
    """Raised when a session cannot be serialized or a payload unserialized."""

    default_code = ErrorCode.SERIALIZATION_FAILED


class CryptoError(SessionStoreError):
    """Raised when a crypto adapter fails to encrypt or decrypt a payload."""

    default_code = ErrorCode.DECRYPTION_FAILED


class SessionNotFoundError(SessionStoreError):
    """Raised by touch when no stored session matches the id."""

    default_code = ErrorCode.SESSION_NOT_FOUND


# Convenience factory functions for common error types

def not_connected(
    message: str = "Not connected",
    details: Optional[dict[str, Any]] = None
) -> NotConnectedError:
    """Create a not connected exception."""
    return NotConnectedError(message, details=details)


def serialization_failed(
    message: str = "Unable to serialize session",
    details: Optional[dict[str, Any]] = None
) -> TransformError:
    """Create a serialization exception."""
    return TransformError(message, ErrorCode.SERIALIZATION_FAILED, details)


def deserialization_failed(
    message: str = "Unable to unserialize stored session",
    details: Optional[dict[str, Any]] = None
) -> TransformError:
    """Create an unserialization exception."""
    return TransformError(message, ErrorCode.DESERIALIZATION_FAILED, details)


def encryption_failed(
    message: str = "Unable to encrypt session",
    details: Optional[dict[str, Any]] = None
) -> CryptoError:
    """Create an encryption exception."""
    return CryptoError(message, ErrorCode.ENCRYPTION_FAILED, details)


def decryption_failed(
    message: str = "Unable to decrypt session",
    details: Optional[dict[str, Any]] = None
) -> CryptoError:
    """Create a decryption exception."""
    return CryptoError(message, ErrorCode.DECRYPTION_FAILED, details)


def session_not_found(
    message: str = "Unable to find the session to touch",
    details: Optional[dict[str, Any]] = None
) -> SessionNotFoundError:
    """Create a touch-not-found exception."""
    return SessionNotFoundError(message, details=details)
