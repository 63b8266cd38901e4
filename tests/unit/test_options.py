"""
Unit tests for StoreOptions validation.

Tests cover:
- Default values
- Connection source selection and conflicts
- Range checks on ttl, auto_remove_interval and touch_after
- Crypto option validation
"""

import pytest

from mongo_session_store.config import StoreOptions
from mongo_session_store.errors import ConfigurationError, ErrorCode
from mongo_session_store.session.connection import (
    ClientPromiseStrategy,
    ClientStrategy,
    DatabaseStrategy,
    UrlStrategy,
)
from mongo_session_store.session.crypto import SecretAdapter, create_aes_gcm_adapter
from mongo_session_store.session.expiration import MAX_INTERVAL_MINUTES, AutoRemove


class TestDefaults:
    """Tests for option defaults."""

    def test_default_values_are_applied(self, fake_database):
        options = StoreOptions.build(database=fake_database)

        assert options.collection_name == "sessions"
        assert options.ttl == 1209600
        assert options.auto_remove is AutoRemove.NATIVE
        assert options.auto_remove_interval == 10
        assert options.touch_after == 0
        assert options.stringify is True
        assert options.crypto is None
        assert options.write_operation_options == {}

    def test_options_are_frozen(self, fake_database):
        options = StoreOptions.build(database=fake_database)

        with pytest.raises(Exception):
            options.ttl = 10

    def test_unknown_option_rejected(self, fake_database):
        with pytest.raises(ConfigurationError) as exc_info:
            StoreOptions.build(database=fake_database, time_to_live=10)

        assert "time_to_live" in exc_info.value.invalid_fields


class TestConnectionSources:
    """Tests for choosing the connection strategy."""

    def test_url_strategy(self):
        options = StoreOptions.build(mongo_url="mongodb://localhost:27017/app", db_name="other")

        strategy = options.connection_strategy()

        assert isinstance(strategy, UrlStrategy)
        assert strategy.db_name == "other"

    def test_srv_url_is_accepted(self):
        options = StoreOptions.build(mongo_url="mongodb+srv://cluster.example.net/app")

        assert options.mongo_url == "mongodb+srv://cluster.example.net/app"

    def test_client_strategy(self, fake_client):
        options = StoreOptions.build(client=fake_client)

        assert isinstance(options.connection_strategy(), ClientStrategy)

    @pytest.mark.asyncio
    async def test_client_promise_strategy(self, fake_client):
        async def build_client():
            return fake_client

        promise = build_client()
        options = StoreOptions.build(client_promise=promise)

        assert isinstance(options.connection_strategy(), ClientPromiseStrategy)
        await promise

    def test_database_strategy(self, fake_database):
        options = StoreOptions.build(database=fake_database)

        assert isinstance(options.connection_strategy(), DatabaseStrategy)

    def test_no_source_raises(self):
        with pytest.raises(ConfigurationError) as exc_info:
            StoreOptions.build()

        assert exc_info.value.error_code is ErrorCode.CONFIGURATION_ERROR
        assert "Connection strategy not found" in str(exc_info.value)

    def test_blank_url_counts_as_missing(self):
        with pytest.raises(ConfigurationError):
            StoreOptions.build(mongo_url="   ")

    def test_blank_url_with_other_source_is_fine(self, fake_database):
        options = StoreOptions.build(mongo_url="", database=fake_database)

        assert options.mongo_url is None

    def test_two_sources_raise(self, fake_client, fake_database):
        with pytest.raises(ConfigurationError) as exc_info:
            StoreOptions.build(client=fake_client, database=fake_database)

        assert "client, database" in str(exc_info.value)

    def test_non_mongodb_url_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            StoreOptions.build(mongo_url="redis://localhost:6379")

        assert "mongo_url" in exc_info.value.invalid_fields


class TestRanges:
    """Tests for numeric option bounds."""

    @pytest.mark.parametrize("field,value", [
        ("ttl", 0),
        ("ttl", -5),
        ("auto_remove_interval", 0),
        ("auto_remove_interval", MAX_INTERVAL_MINUTES + 1),
        ("touch_after", -1),
    ])
    def test_out_of_range_values_rejected(self, fake_database, field, value):
        with pytest.raises(ConfigurationError) as exc_info:
            StoreOptions.build(database=fake_database, **{field: value})

        assert field in exc_info.value.invalid_fields

    def test_largest_interval_accepted(self, fake_database):
        options = StoreOptions.build(
            database=fake_database, auto_remove_interval=MAX_INTERVAL_MINUTES
        )

        assert options.auto_remove_interval == MAX_INTERVAL_MINUTES

    def test_unknown_auto_remove_mode_rejected(self, fake_database):
        with pytest.raises(ConfigurationError):
            StoreOptions.build(database=fake_database, auto_remove="sometimes")

    def test_empty_collection_name_rejected(self, fake_database):
        with pytest.raises(ConfigurationError):
            StoreOptions.build(database=fake_database, collection_name="")

    def test_all_invalid_fields_are_reported(self, fake_database):
        with pytest.raises(ConfigurationError) as exc_info:
            StoreOptions.build(database=fake_database, ttl=0, touch_after=-1)

        assert set(exc_info.value.invalid_fields) == {"ttl", "touch_after"}


class TestCryptoOptions:
    """Tests for crypto option validation."""

    def test_inline_secret_builds_secret_adapter(self, fake_database):
        options = StoreOptions.build(database=fake_database, crypto={"secret": "squirrel"})

        assert isinstance(options.crypto_capability(), SecretAdapter)

    def test_inline_crypto_without_secret_rejected(self, fake_database):
        with pytest.raises(ConfigurationError):
            StoreOptions.build(database=fake_database, crypto={"hashing": "sha256"})

    def test_inline_crypto_with_bad_parameters_rejected(self, fake_database):
        options = StoreOptions.build(
            database=fake_database,
            crypto={"secret": "squirrel", "algorithm": "aes-256-cbc"},
        )

        with pytest.raises(ConfigurationError) as exc_info:
            options.crypto_capability()

        assert "crypto" in exc_info.value.invalid_fields

    def test_adapter_must_implement_protocol(self, fake_database):
        with pytest.raises(ConfigurationError):
            StoreOptions.build(database=fake_database, crypto_adapter=object())

    def test_custom_adapter_is_used(self, fake_database):
        adapter = create_aes_gcm_adapter("secret", iterations=1000)
        options = StoreOptions.build(database=fake_database, crypto_adapter=adapter)

        assert options.crypto_capability() is adapter

    def test_no_crypto_by_default(self, fake_database):
        assert StoreOptions.build(database=fake_database).crypto_capability() is None
