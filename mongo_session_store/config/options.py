"""
Validated configuration for MongoStore.

StoreOptions is the only configuration the engine reads. It is built from
keyword arguments (or from StoreSettings) and validated eagerly, so every
configuration mistake is raised synchronously, before any connection
attempt, as a ConfigurationError listing all offending fields.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from mongo_session_store.errors.exceptions import ConfigurationError
from mongo_session_store.session.connection import (
    ClientPromiseStrategy,
    ClientStrategy,
    ConnectionStrategy,
    DatabaseStrategy,
    UrlStrategy,
    is_supplied,
)
from mongo_session_store.session.crypto import CryptoAdapter, create_secret_adapter
from mongo_session_store.session.expiration import (
    DEFAULT_INTERVAL_MINUTES,
    DEFAULT_TTL_SECONDS,
    MAX_INTERVAL_MINUTES,
    AutoRemove,
)

CONNECTION_SOURCES = ("mongo_url", "client", "client_promise", "database")


class StoreOptions(BaseModel):
    """
    Options recognized by MongoStore.

    Exactly one connection source (mongo_url, client, client_promise or
    database) must be supplied. ``crypto`` (inline legacy secret options)
    and ``crypto_adapter`` are mutually exclusive.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid", frozen=True)

    # Connection sources
    mongo_url: Optional[str] = Field(
        default=None,
        description="MongoDB connection URL"
    )
    client: Optional[Any] = Field(
        default=None,
        description="Pre-built async MongoDB client"
    )
    client_promise: Optional[Any] = Field(
        default=None,
        description="Awaitable resolving to an async MongoDB client"
    )
    database: Optional[Any] = Field(
        default=None,
        description="Existing database handle owned by the application"
    )
    mongo_options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword arguments for the client created from mongo_url"
    )

    # Target namespace
    db_name: Optional[str] = Field(
        default=None,
        description="Database name; defaults to the connection's default database"
    )
    collection_name: str = Field(
        default="sessions",
        min_length=1,
        description="Session collection name"
    )

    # Expiration
    ttl: int = Field(
        default=DEFAULT_TTL_SECONDS,
        gt=0,
        description="Fallback session lifetime in seconds"
    )
    auto_remove: AutoRemove = Field(
        default=AutoRemove.NATIVE,
        description="Eviction mechanism: native, interval or disabled"
    )
    auto_remove_interval: int = Field(
        default=DEFAULT_INTERVAL_MINUTES,
        ge=1,
        le=MAX_INTERVAL_MINUTES,
        description="Sweep period in minutes for interval eviction"
    )
    touch_after: int = Field(
        default=0,
        ge=0,
        description="Minimum seconds between touch writes; 0 disables throttling"
    )

    # Transform pipeline
    stringify: bool = Field(
        default=True,
        description="Store sessions as JSON text instead of sub-documents"
    )
    serialize: Optional[Callable[[Any], Any]] = None
    unserialize: Optional[Callable[[Any], Any]] = None

    # Crypto
    crypto: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Inline secret options for the legacy secret adapter"
    )
    crypto_adapter: Optional[Any] = Field(
        default=None,
        description="Object implementing async encrypt/decrypt"
    )

    transform_id: Optional[Callable[[str], Any]] = None
    write_operation_options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword arguments forwarded to every write operation"
    )
    clock: Optional[Callable[[], datetime]] = Field(
        default=None,
        description="Source of the current UTC time; wall clock by default"
    )

    @field_validator("mongo_url")
    @classmethod
    def validate_mongo_url(cls, v: Optional[str]) -> Optional[str]:
        """Blank URLs count as not supplied; others must use a MongoDB scheme."""
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not (v.startswith("mongodb://") or v.startswith("mongodb+srv://")):
            raise ValueError("mongo_url must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("crypto")
    @classmethod
    def validate_crypto(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """An inline crypto block must carry a non-empty secret."""
        if v is None:
            return None
        if not v.get("secret"):
            raise ValueError("crypto requires a non-empty secret")
        return v

    @field_validator("crypto_adapter")
    @classmethod
    def validate_crypto_adapter(cls, v: Any) -> Any:
        """Custom adapters must expose encrypt and decrypt."""
        if v is not None and not isinstance(v, CryptoAdapter):
            raise ValueError("crypto_adapter must provide encrypt() and decrypt()")
        return v

    @model_validator(mode="after")
    def validate_sources(self) -> "StoreOptions":
        """Exactly one connection source; at most one crypto option."""
        supplied = [name for name in CONNECTION_SOURCES if is_supplied(getattr(self, name))]
        if not supplied:
            raise ValueError(
                "Connection strategy not found: supply one of "
                + ", ".join(CONNECTION_SOURCES)
            )
        if len(supplied) > 1:
            raise ValueError(
                "Only one connection source may be supplied, got: " + ", ".join(supplied)
            )
        if self.crypto is not None and self.crypto_adapter is not None:
            raise ValueError("crypto and crypto_adapter cannot be used together")
        return self

    @classmethod
    def build(cls, **kwargs: Any) -> "StoreOptions":
        """
        Validate keyword options.

        Raises:
            ConfigurationError: Listing every missing or invalid field.
        """
        try:
            return cls(**kwargs)
        except ValidationError as e:
            missing_fields: List[str] = []
            invalid_fields: Dict[str, str] = {}
            for error in e.errors():
                field_name = ".".join(str(loc) for loc in error.get("loc", ())) or "options"
                if error.get("type") == "missing":
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error.get("msg", str(error))
            raise ConfigurationError(
                "Invalid session store options",
                missing_fields=missing_fields,
                invalid_fields=invalid_fields,
            ) from e

    def connection_strategy(self) -> ConnectionStrategy:
        """The single connection strategy selected by these options."""
        if is_supplied(self.mongo_url):
            return UrlStrategy(self.mongo_url, self.mongo_options, self.db_name)
        if is_supplied(self.client):
            return ClientStrategy(self.client, self.db_name)
        if is_supplied(self.client_promise):
            return ClientPromiseStrategy(self.client_promise, self.db_name)
        return DatabaseStrategy(self.database)

    def crypto_capability(self) -> Optional[CryptoAdapter]:
        """The crypto adapter to apply, if encryption is configured."""
        if self.crypto_adapter is not None:
            return self.crypto_adapter
        if self.crypto is not None:
            params = dict(self.crypto)
            secret = params.pop("secret")
            try:
                return create_secret_adapter(secret, **params)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    "Invalid session store options",
                    invalid_fields={"crypto": str(e)},
                ) from e
        return None
