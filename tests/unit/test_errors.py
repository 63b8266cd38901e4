"""
Unit tests for error codes and exception classes.
"""

import pytest

from mongo_session_store.errors import (
    ConfigurationError,
    CryptoError,
    ErrorCategory,
    ErrorCode,
    NotConnectedError,
    SessionNotFoundError,
    SessionStoreError,
    TransformError,
    get_category,
)
from mongo_session_store.errors.codes import ERROR_CODE_CATEGORY_MAP
from mongo_session_store.errors.exceptions import (
    decryption_failed,
    deserialization_failed,
    encryption_failed,
    not_connected,
    serialization_failed,
    session_not_found,
)


class TestErrorCodes:
    """Tests for the error code catalog."""

    def test_every_code_has_a_category(self):
        assert set(ERROR_CODE_CATEGORY_MAP) == set(ErrorCode)

    @pytest.mark.parametrize("code,category", [
        (ErrorCode.CONFIGURATION_ERROR, ErrorCategory.CONFIGURATION),
        (ErrorCode.NOT_CONNECTED, ErrorCategory.CONNECTION),
        (ErrorCode.DESERIALIZATION_FAILED, ErrorCategory.TRANSFORM),
        (ErrorCode.ENCRYPTION_FAILED, ErrorCategory.CRYPTO),
        (ErrorCode.SESSION_NOT_FOUND, ErrorCategory.NOT_FOUND),
        (ErrorCode.SWEEP_FAILED, ErrorCategory.BACKGROUND),
    ])
    def test_get_category(self, code, category):
        assert get_category(code) is category


class TestExceptions:
    """Tests for exception classes and factories."""

    @pytest.mark.parametrize("factory,cls,code", [
        (not_connected, NotConnectedError, ErrorCode.NOT_CONNECTED),
        (serialization_failed, TransformError, ErrorCode.SERIALIZATION_FAILED),
        (deserialization_failed, TransformError, ErrorCode.DESERIALIZATION_FAILED),
        (encryption_failed, CryptoError, ErrorCode.ENCRYPTION_FAILED),
        (decryption_failed, CryptoError, ErrorCode.DECRYPTION_FAILED),
        (session_not_found, SessionNotFoundError, ErrorCode.SESSION_NOT_FOUND),
    ])
    def test_factories(self, factory, cls, code):
        error = factory()

        assert isinstance(error, cls)
        assert isinstance(error, SessionStoreError)
        assert error.error_code is code

    def test_to_dict(self):
        error = session_not_found(details={"sid": "abc"})

        assert error.to_dict() == {
            "error_code": "SESSION_NOT_FOUND",
            "category": "not_found",
            "message": "Unable to find the session to touch",
            "details": {"sid": "abc"},
        }

    def test_to_dict_without_details(self):
        assert "details" not in not_connected().to_dict()

    def test_configuration_error_lists_every_field(self):
        error = ConfigurationError(
            "Invalid session store options",
            missing_fields=["mongo_url"],
            invalid_fields={"ttl": "must be positive"},
        )

        message = str(error)
        assert "Missing required fields: mongo_url" in message
        assert "  - ttl: must be positive" in message
        assert error.details == {
            "missing_fields": ["mongo_url"],
            "invalid_fields": {"ttl": "must be positive"},
        }
        assert error.category is ErrorCategory.CONFIGURATION

    def test_repr(self):
        assert repr(not_connected("gone")) == (
            "NotConnectedError(error_code='NOT_CONNECTED', message='gone', details=None)"
        )
