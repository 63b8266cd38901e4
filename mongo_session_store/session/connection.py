"""
Connection strategies and the connection lifecycle state machine.

The store accepts exactly one connection source and turns it into a
collection handle asynchronously. Operations issued before the handle is
ready wait on one shared connection task; once the task fails, or the
store is closed, every pending and future operation fails with
NotConnectedError. There is no reconnection.

State machine:
- INIT -> CONNECTING: on the first operation or an explicit connect()
- CONNECTING -> CONNECTED: database resolved and eviction installed
- CONNECTING -> DISCONNECTED: any failure while connecting
- any -> DISCONNECTED: close()
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

from pymongo import AsyncMongoClient

from mongo_session_store.errors.exceptions import NotConnectedError, not_connected
from mongo_session_store.session.collection import SessionCollection
from mongo_session_store.session.events import EventEmitter

logger = logging.getLogger(__name__)

# Database used when neither db_name nor the URL names one
FALLBACK_DATABASE = "test"


class ConnectionState(str, Enum):
    """Connection lifecycle states."""
    INIT = "init"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


def select_database(client: Any, db_name: Optional[str]) -> Any:
    """Pick the named database, else the client's default, else FALLBACK_DATABASE."""
    if db_name:
        return client.get_database(db_name)
    return client.get_default_database(FALLBACK_DATABASE)


async def close_client(client: Any) -> None:
    """Close a client whose close() may or may not be a coroutine."""
    result = client.close()
    if inspect.isawaitable(result):
        await result


class ConnectionStrategy(ABC):
    """One way of obtaining the database that holds the session collection."""

    name: str = "abstract"

    @abstractmethod
    async def open(self) -> Any:
        """Resolve the database handle."""

    async def close(self) -> None:
        """Release whatever open() acquired."""


class UrlStrategy(ConnectionStrategy):
    """Create a new client from a connection URL and verify it with a ping."""

    name = "url"

    def __init__(
        self,
        url: str,
        client_options: Optional[Mapping[str, Any]] = None,
        db_name: Optional[str] = None
    ):
        self.url = url
        self.client_options = dict(client_options or {})
        self.db_name = db_name
        self.client: Optional[AsyncMongoClient] = None

    async def open(self) -> Any:
        self.client = AsyncMongoClient(self.url, **self.client_options)
        await self.client.admin.command("ping")
        return select_database(self.client, self.db_name)

    async def close(self) -> None:
        client, self.client = self.client, None
        if client is not None:
            await close_client(client)


class ClientStrategy(ConnectionStrategy):
    """Use a client built by the application; the store closes it on close()."""

    name = "client"

    def __init__(self, client: Any, db_name: Optional[str] = None):
        self.client = client
        self.db_name = db_name
        self._closed = False

    async def open(self) -> Any:
        return select_database(self.client, self.db_name)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await close_client(self.client)


class ClientPromiseStrategy(ConnectionStrategy):
    """Await a client that is still being created elsewhere."""

    name = "client_promise"

    def __init__(self, client_promise: Awaitable[Any], db_name: Optional[str] = None):
        self.client_promise = client_promise
        self.db_name = db_name
        self.client: Any = None

    async def open(self) -> Any:
        self.client = await self.client_promise
        return select_database(self.client, self.db_name)

    async def close(self) -> None:
        client, self.client = self.client, None
        if client is not None:
            await close_client(client)


class DatabaseStrategy(ConnectionStrategy):
    """Borrow an existing database handle; its client is not closed by the store."""

    name = "database"

    def __init__(self, database: Any):
        self.database = database

    async def open(self) -> Any:
        return self.database


def is_supplied(value: Any) -> bool:
    """True unless the value is None or a blank string."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class ConnectionLifecycle:
    """
    Owns the connection state and the shared connection task.

    Attributes:
        strategy: The connection strategy chosen at construction
        collection_name: Name of the session collection
    """

    def __init__(
        self,
        strategy: ConnectionStrategy,
        collection_name: str,
        emitter: EventEmitter,
        on_connected: Optional[Callable[[SessionCollection], Awaitable[None]]] = None,
        on_closing: Optional[Callable[[], Awaitable[None]]] = None
    ):
        self.strategy = strategy
        self.collection_name = collection_name
        self._emitter = emitter
        self._on_connected = on_connected
        self._on_closing = on_closing
        self._state = ConnectionState.INIT
        self._task: Optional[asyncio.Task] = None
        self._collection: Optional[SessionCollection] = None
        self._error: Optional[BaseException] = None
        self._closed = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        """The failure that moved the lifecycle to DISCONNECTED, if any."""
        return self._error

    def _change_state(self, new_state: ConnectionState) -> None:
        if new_state is self._state:
            return
        logger.debug(f"Switched to state: {new_state.value}", extra={
            "extra_data": {"previous": self._state.value, "state": new_state.value}
        })
        self._state = new_state
        if new_state in (ConnectionState.CONNECTED, ConnectionState.DISCONNECTED):
            self._emitter.emit(new_state.value)

    def start(self) -> None:
        """Begin connecting if no attempt has been made yet."""
        if self._state is not ConnectionState.INIT:
            return
        logger.debug(f"Use strategy: {self.strategy.name}", extra={
            "extra_data": {"strategy": self.strategy.name}
        })
        self._change_state(ConnectionState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(
            self._connect(), name="mongo-session-store-connect"
        )

    async def _connect(self) -> SessionCollection:
        try:
            database = await self.strategy.open()
            collection = database.get_collection(self.collection_name)
            if self._on_connected is not None:
                await self._on_connected(collection)
        except Exception as e:
            self._error = e
            logger.error(
                "Not able to connect to the database",
                extra={"extra_data": {"strategy": self.strategy.name, "error": str(e)}}
            )
            self._change_state(ConnectionState.DISCONNECTED)
            await self._release_strategy()
            raise not_connected(
                f"Not connected: {e}",
                details={"strategy": self.strategy.name},
            ) from e

        self._collection = collection
        self._change_state(ConnectionState.CONNECTED)
        return collection

    async def _release_strategy(self) -> None:
        try:
            await self.strategy.close()
        except Exception as e:
            logger.warning(
                "Unable to release client after failed connection",
                extra={"extra_data": {"strategy": self.strategy.name, "error": str(e)}}
            )

    def _disconnected_error(self) -> NotConnectedError:
        if self._closed:
            return not_connected("Not connected: store is closed")
        cause = str(self._error) if self._error is not None else "unknown"
        return not_connected(f"Not connected: {cause}", details={"strategy": self.strategy.name})

    async def collection_ready(self) -> SessionCollection:
        """
        Return the collection handle, waiting for the connection if needed.

        Concurrent callers share the same connection task; a caller that is
        cancelled while waiting does not cancel the connection itself.

        Raises:
            NotConnectedError: If the connection failed or the store is closed.
        """
        if self._state is ConnectionState.INIT:
            self.start()
        if self._state is ConnectionState.CONNECTED and self._collection is not None:
            return self._collection
        if self._state is ConnectionState.DISCONNECTED or self._task is None:
            raise self._disconnected_error() from self._error

        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._state is ConnectionState.DISCONNECTED:
                raise self._disconnected_error() from None
            raise

    async def close(self) -> None:
        """
        Move to DISCONNECTED and release the connection.

        A pending connection attempt is cancelled, then the ``on_closing``
        hook runs, then the strategy releases its client.
        """
        if self._closed:
            return
        self._closed = True
        task = self._task
        self._collection = None
        self._change_state(ConnectionState.DISCONNECTED)

        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, NotConnectedError):
                pass

        if self._on_closing is not None:
            await self._on_closing()
        await self.strategy.close()
        logger.debug("Session store connection released", extra={
            "extra_data": {"strategy": self.strategy.name}
        })
