"""
Environment-driven settings for the session store.

Deployments that configure the store through environment variables (or a
``.env`` file) load StoreSettings and turn it into StoreOptions. The
engine itself never reads the environment.

Variables use the ``SESSION_STORE_`` prefix, e.g. ``SESSION_STORE_MONGO_URL``,
``SESSION_STORE_TTL`` or ``SESSION_STORE_AUTO_REMOVE``.
"""

from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mongo_session_store.config.options import StoreOptions
from mongo_session_store.errors.exceptions import ConfigurationError
from mongo_session_store.session.expiration import (
    DEFAULT_INTERVAL_MINUTES,
    DEFAULT_TTL_SECONDS,
    MAX_INTERVAL_MINUTES,
    AutoRemove,
)


class StoreSettings(BaseSettings):
    """
    Session store settings loaded from environment variables.

    Only scalar options can come from the environment; clients, callables
    and custom crypto adapters are passed as overrides to to_options().
    """

    mongo_url: Optional[str] = Field(
        default=None,
        description="MongoDB connection URL"
    )
    db_name: Optional[str] = Field(
        default=None,
        description="Database name; defaults to the URL's database"
    )
    collection_name: str = Field(
        default="sessions",
        description="Session collection name"
    )
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
        description="Minimum seconds between touch writes"
    )
    stringify: bool = Field(
        default=True,
        description="Store sessions as JSON text"
    )
    crypto_secret: Optional[str] = Field(
        default=None,
        description="Secret enabling the legacy secret crypto adapter"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_prefix="SESSION_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("auto_remove", mode="before")
    @classmethod
    def normalize_auto_remove(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def to_options(self, **overrides: Any) -> StoreOptions:
        """
        Build validated StoreOptions from these settings.

        Overrides win over environment values. When an override supplies a
        different connection source (client, client_promise or database),
        the environment's mongo_url is dropped.

        Raises:
            ConfigurationError: If the combined options are invalid.
        """
        values: dict[str, Any] = {
            "mongo_url": self.mongo_url,
            "db_name": self.db_name,
            "collection_name": self.collection_name,
            "ttl": self.ttl,
            "auto_remove": self.auto_remove,
            "auto_remove_interval": self.auto_remove_interval,
            "touch_after": self.touch_after,
            "stringify": self.stringify,
        }
        if self.crypto_secret and "crypto_adapter" not in overrides:
            values["crypto"] = {"secret": self.crypto_secret}
        if any(overrides.get(name) is not None for name in ("client", "client_promise", "database")):
            values.pop("mongo_url")
        values.update(overrides)
        return StoreOptions.build(**values)


# Global settings cache
_settings_cache: Optional[StoreSettings] = None


def load_settings(**values: Any) -> StoreSettings:
    """
    Load settings, converting validation failures to ConfigurationError.

    Raises:
        ConfigurationError: If environment values are missing or invalid.
    """
    try:
        return StoreSettings(**values)
    except ValidationError as e:
        missing_fields = []
        invalid_fields = {}
        for error in e.errors():
            field_name = ".".join(str(loc) for loc in error.get("loc", []))
            if error.get("type") == "missing":
                missing_fields.append(field_name)
            else:
                invalid_fields[field_name] = error.get("msg", str(error))
        raise ConfigurationError(
            "Failed to load session store settings",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields,
        ) from e


def get_settings() -> StoreSettings:
    """
    Get the settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If settings are invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = load_settings()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None
