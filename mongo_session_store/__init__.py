"""
MongoDB session store.

Persists short-lived web session records in a MongoDB collection behind an
async get / set / touch / destroy / all / length / clear contract.
"""

from mongo_session_store.session.mongo_store import MongoStore
from mongo_session_store.config import StoreOptions, StoreSettings
from mongo_session_store.errors import (
    ConfigurationError,
    CryptoError,
    ErrorCode,
    NotConnectedError,
    SessionNotFoundError,
    SessionStoreError,
    TransformError,
)
from mongo_session_store.session import (
    AutoRemove,
    ConnectionState,
    CryptoAdapter,
    SessionStore,
    create_aes_gcm_adapter,
    create_secret_adapter,
)
from mongo_session_store.telemetry import configure_logging

__version__ = "1.0.0"

__all__ = [
    "MongoStore",
    "StoreOptions",
    "StoreSettings",
    "AutoRemove",
    "ConnectionState",
    "CryptoAdapter",
    "SessionStore",
    "create_aes_gcm_adapter",
    "create_secret_adapter",
    "configure_logging",
    "ConfigurationError",
    "CryptoError",
    "ErrorCode",
    "NotConnectedError",
    "SessionNotFoundError",
    "SessionStoreError",
    "TransformError",
]
