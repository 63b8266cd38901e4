"""
Session persistence engine building blocks.

MongoStore itself lives in mongo_session_store.session.mongo_store and is
exported from the top-level package.
"""

from mongo_session_store.session.connection import ConnectionState
from mongo_session_store.session.crypto import (
    CryptoAdapter,
    create_aes_gcm_adapter,
    create_secret_adapter,
)
from mongo_session_store.session.expiration import DEFAULT_TTL_SECONDS, AutoRemove
from mongo_session_store.session.store import SessionStore

__all__ = [
    "AutoRemove",
    "ConnectionState",
    "CryptoAdapter",
    "DEFAULT_TTL_SECONDS",
    "SessionStore",
    "create_aes_gcm_adapter",
    "create_secret_adapter",
]
