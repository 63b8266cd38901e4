"""
MongoDB-backed session store.

MongoStore combines the connection lifecycle, the transform pipeline, the
optional crypto adapter, the expiration policy and the touch throttle into
the SessionStore contract. Every operation first waits for the collection
to be ready, so calls made while the store is still connecting are queued
rather than failing.

Persisted document shape::

    {"_id": <storage id>, "session": <payload>, "expires": <datetime>,
     "lastModified": <datetime, only with touch throttling>}
"""

import logging
from typing import Any, Callable, Mapping, Optional

from pymongo.write_concern import WriteConcern

from mongo_session_store.config.options import StoreOptions
from mongo_session_store.config.settings import StoreSettings, get_settings
from mongo_session_store.errors.exceptions import (
    SessionStoreError,
    decryption_failed,
    encryption_failed,
    session_not_found,
)
from mongo_session_store.session import events
from mongo_session_store.session.collection import (
    EXPIRES_FIELD,
    ID_FIELD,
    LAST_MODIFIED_FIELD,
    SESSION_FIELD,
    SessionCollection,
    not_expired_filter,
    parse_timestamp,
    utcnow,
)
from mongo_session_store.session.connection import ConnectionLifecycle, ConnectionState
from mongo_session_store.session.events import EventEmitter, Listener
from mongo_session_store.session.expiration import ExpirationPolicy
from mongo_session_store.session.store import SessionStore
from mongo_session_store.session.throttle import TouchThrottle
from mongo_session_store.session.transform import (
    build_transform,
    payload_to_text,
    text_to_payload,
)
from mongo_session_store.telemetry.service import configure_logging

logger = logging.getLogger(__name__)


class MongoStore(SessionStore):
    """
    Session store persisting sessions in a MongoDB collection.

    Example:
        store = MongoStore(mongo_url="mongodb://localhost:27017/app", ttl=3600)
        async with store:
            await store.set("sid", {"user": "alice", "cookie": {"maxAge": 3600}})
            session = await store.get("sid")

    Events (register with on/once/off):
        connected, disconnected: connection lifecycle transitions
        create / update: a set inserted / replaced a record, followed by set
        get, touch, destroy: carry the session id (touch also the session)
        all: carries the list returned by all()
    """

    def __init__(self, options: Optional[StoreOptions] = None, **kwargs: Any):
        """
        Build a store from StoreOptions or keyword options.

        Construction is synchronous and does not connect; the connection is
        started by connect(), by entering the async context manager, or by
        the first operation.

        Raises:
            ConfigurationError: If the options are missing, conflicting or
                out of range.
            TypeError: If both an options object and keyword options are given.
        """
        if options is not None and kwargs:
            raise TypeError("Pass either a StoreOptions instance or keyword options, not both")
        self.options = options if options is not None else StoreOptions.build(**kwargs)

        self._clock: Callable = self.options.clock or utcnow
        self._transform = build_transform(
            stringify=self.options.stringify,
            serialize=self.options.serialize,
            unserialize=self.options.unserialize,
        )
        self._crypto = self.options.crypto_capability()

        write_options = dict(self.options.write_operation_options)
        write_concern = write_options.pop("write_concern", None)
        if isinstance(write_concern, Mapping):
            write_concern = WriteConcern(**write_concern)
        self._write_concern: Optional[WriteConcern] = write_concern
        self._write_kwargs = write_options

        self._expiration = ExpirationPolicy(
            ttl_seconds=self.options.ttl,
            auto_remove=self.options.auto_remove,
            interval_minutes=self.options.auto_remove_interval,
            clock=self._clock,
            write_concern=self._write_concern,
            index_options=self._write_kwargs,
        )
        self._throttle = TouchThrottle.from_seconds(self.options.touch_after)

        self._events = EventEmitter()
        self._lifecycle = ConnectionLifecycle(
            self.options.connection_strategy(),
            self.options.collection_name,
            self._events,
            on_connected=self._expiration.install,
            on_closing=self._expiration.shutdown,
        )

    @classmethod
    def create(cls, **kwargs: Any) -> "MongoStore":
        """Build a store from keyword options."""
        return cls(**kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[StoreSettings] = None,
        **overrides: Any
    ) -> "MongoStore":
        """
        Build a store from environment settings.

        The settings' log level is applied to the package logger through
        configure_logging.

        Args:
            settings: Settings to use; the cached environment settings by default
            **overrides: Options that cannot come from the environment,
                such as a client, callables or a crypto adapter
        """
        settings = settings or get_settings()
        configure_logging(settings.log_level)
        return cls(settings.to_options(**overrides))

    # Events

    def on(self, event: str, listener: Listener) -> Listener:
        return self._events.on(event, listener)

    def once(self, event: str, listener: Listener) -> Listener:
        return self._events.once(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self._events.off(event, listener)

    # Connection

    @property
    def state(self) -> ConnectionState:
        """Current connection lifecycle state."""
        return self._lifecycle.state

    @property
    def expiration(self) -> ExpirationPolicy:
        return self._expiration

    async def collection_ready(self) -> SessionCollection:
        """
        Wait for the session collection.

        Raises:
            NotConnectedError: If the connection failed or the store is closed.
        """
        return await self._lifecycle.collection_ready()

    async def connect(self) -> "MongoStore":
        """Connect eagerly and install the eviction mechanism."""
        await self.collection_ready()
        return self

    async def __aenter__(self) -> "MongoStore":
        return await self.connect()

    async def close(self) -> None:
        """
        Stop the eviction sweeper and release the connection.

        Operations issued after close() raise NotConnectedError.
        """
        await self._lifecycle.close()

    # Helpers

    def _storage_id(self, sid: str) -> Any:
        if self.options.transform_id is not None:
            return self.options.transform_id(sid)
        return sid

    def _writable(self, collection: SessionCollection) -> SessionCollection:
        if self._write_concern is None:
            return collection
        return collection.with_options(write_concern=self._write_concern)

    async def _encode(self, session: Any) -> Any:
        payload = self._transform.serialize(session)
        if self._crypto is None:
            return payload
        plaintext = payload_to_text(payload)
        try:
            return await self._crypto.encrypt(plaintext)
        except SessionStoreError:
            raise
        except Exception as e:
            raise encryption_failed(f"Unable to encrypt session: {e}") from e

    async def _decode(self, sid: Optional[str], payload: Any) -> Any:
        if self._crypto is not None:
            try:
                plaintext = await self._crypto.decrypt(payload)
            except Exception as e:
                logger.warning("Unable to decrypt stored session", extra={
                    "extra_data": {"sid": sid, "error": str(e)}
                })
                if isinstance(e, SessionStoreError):
                    raise
                raise decryption_failed(f"Unable to decrypt session: {e}") from e
            payload = text_to_payload(plaintext)
        return self._transform.unserialize(payload)

    # SessionStore contract

    async def get(self, sid: str) -> Optional[dict[str, Any]]:
        """
        Retrieve a non-expired session.

        Returns:
            The session, with ``lastModified`` merged in when touch
            throttling is enabled, or None if missing or expired.

        Raises:
            TransformError: If the stored payload cannot be unserialized.
            CryptoError: If the stored payload cannot be decrypted.
        """
        collection = await self.collection_ready()
        query = {ID_FIELD: self._storage_id(sid)}
        query.update(not_expired_filter(self._clock()))
        document = await collection.find_one(query)
        if document is None:
            self._events.emit(events.GET, sid)
            return None

        session = await self._decode(sid, document.get(SESSION_FIELD))
        session = self._throttle.merge(session, parse_timestamp(document.get(LAST_MODIFIED_FIELD)))
        self._events.emit(events.GET, sid)
        return session

    async def set(self, sid: str, session: dict[str, Any]) -> None:
        """
        Insert or replace a session.

        The expiry comes from the session cookie when it carries one and
        from the configured TTL otherwise. Serialization and encryption
        happen before the write, so a failure there writes nothing.
        """
        collection = await self.collection_ready()
        session = self._throttle.strip(session)

        fields: dict[str, Any] = {
            SESSION_FIELD: await self._encode(session),
            EXPIRES_FIELD: self._expiration.compute_expires(session),
        }
        if self._throttle.enabled:
            fields[LAST_MODIFIED_FIELD] = self._clock()

        result = await self._writable(collection).update_one(
            {ID_FIELD: self._storage_id(sid)},
            {"$set": fields},
            upsert=True,
            **self._write_kwargs,
        )
        if result.upserted_id is not None:
            self._events.emit(events.CREATE, sid)
        else:
            self._events.emit(events.UPDATE, sid)
        self._events.emit(events.SET, sid)

    async def touch(self, sid: str, session: dict[str, Any]) -> None:
        """
        Refresh a session's expiry.

        With touch throttling enabled, a touch arriving sooner than
        ``touch_after`` seconds after the session's ``lastModified`` is
        skipped without a write or an event.

        Raises:
            SessionNotFoundError: If no stored session matches the id.
        """
        collection = await self.collection_ready()
        now = self._clock()
        if not self._throttle.should_write(session, now):
            logger.debug("Touch skipped, session touched recently", extra={
                "extra_data": {"sid": sid}
            })
            return

        fields: dict[str, Any] = {EXPIRES_FIELD: self._expiration.compute_expires(session)}
        if self._throttle.enabled:
            fields[LAST_MODIFIED_FIELD] = now

        result = await self._writable(collection).update_one(
            {ID_FIELD: self._storage_id(sid)},
            {"$set": fields},
            **self._write_kwargs,
        )
        if result.matched_count == 0:
            raise session_not_found(details={"sid": sid})
        self._events.emit(events.TOUCH, sid, session)

    async def destroy(self, sid: str) -> None:
        """Delete a session; unknown ids succeed."""
        collection = await self.collection_ready()
        await self._writable(collection).delete_one(
            {ID_FIELD: self._storage_id(sid)},
            **self._write_kwargs,
        )
        self._events.emit(events.DESTROY, sid)

    async def all(self) -> list[dict[str, Any]]:
        """
        Return every non-expired session.

        Raises:
            TransformError / CryptoError: On the first record that cannot
                be decoded.
        """
        collection = await self.collection_ready()
        results = []
        async for document in collection.find(not_expired_filter(self._clock())):
            results.append(await self._decode(document.get(ID_FIELD), document.get(SESSION_FIELD)))
        self._events.emit(events.ALL, results)
        return results

    async def length(self) -> int:
        """
        Count stored session documents.

        This is a raw cardinality of the collection: records whose expiry
        has passed but which have not been evicted yet are included.
        """
        collection = await self.collection_ready()
        return await collection.count_documents({})

    async def clear(self) -> None:
        """
        Delete every stored session.

        Documents are deleted rather than the collection dropped, so the
        TTL index survives and clearing an empty or missing collection
        succeeds.
        """
        collection = await self.collection_ready()
        await self._writable(collection).delete_many({}, **self._write_kwargs)

    def __repr__(self) -> str:
        return (
            f"MongoStore(collection={self.options.collection_name!r}, "
            f"state={self.state.value}, auto_remove={self.options.auto_remove.value})"
        )
