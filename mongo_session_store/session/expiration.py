"""
Expiration policy for stored sessions.

Computes the absolute ``expires`` timestamp written with every session and
installs one of three eviction mechanisms once the collection is available:

- NATIVE: a TTL index on ``expires`` with a zero grace period; MongoDB's
  TTL monitor deletes expired records in the background.
- INTERVAL: a background task that periodically deletes expired records
  with an unacknowledged write.
- DISABLED: records stay until destroyed or cleared.

Eviction is eventually consistent in every mode, so reads additionally
filter out records whose ``expires`` is already in the past.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from pymongo import ASCENDING
from pymongo.write_concern import WriteConcern

from mongo_session_store.errors.codes import ErrorCode
from mongo_session_store.session.collection import (
    EXPIRES_FIELD,
    SessionCollection,
    parse_timestamp,
    utcnow,
)

logger = logging.getLogger(__name__)

# Fourteen days, the usual server-side session lifetime
DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 14
DEFAULT_INTERVAL_MINUTES = 10
# Largest period whose millisecond value fits a signed 32-bit timer
MAX_INTERVAL_MINUTES = (2 ** 31 - 1) // 60000


class AutoRemove(str, Enum):
    """Eviction mechanism for expired sessions."""
    NATIVE = "native"
    INTERVAL = "interval"
    DISABLED = "disabled"


def cookie_expiry(session: Optional[Mapping[str, Any]]) -> Optional[datetime]:
    """
    Read the explicit expiry carried by a session's cookie, if any.

    The cookie may be a mapping or an object exposing ``expires``.
    """
    if not session:
        return None
    cookie = session.get("cookie")
    if cookie is None:
        return None
    if isinstance(cookie, Mapping):
        expires = cookie.get("expires")
    else:
        expires = getattr(cookie, "expires", None)
    return parse_timestamp(expires)


class IntervalSweeper:
    """
    Background task deleting expired sessions every ``interval``.

    Each sweep is a fire-and-forget ``delete_many`` issued with ``w=0``.
    Failures are logged and the loop keeps running; nothing is ever
    raised to a caller.
    """

    def __init__(
        self,
        collection: SessionCollection,
        interval: timedelta,
        clock: Callable[[], datetime] = utcnow
    ):
        self._collection = collection.with_options(write_concern=WriteConcern(w=0))
        self.interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="mongo-session-store-sweeper"
        )

    async def sweep_once(self) -> None:
        """Delete expired sessions once, logging rather than raising on failure."""
        now = self._clock()
        try:
            await self._collection.delete_many({EXPIRES_FIELD: {"$lt": now}})
            logger.debug("Expired session sweep issued", extra={
                "extra_data": {"before": now.isoformat()}
            })
        except Exception as e:
            logger.error(
                "Expired session sweep failed",
                exc_info=True,
                extra={"extra_data": {
                    "error_code": ErrorCode.SWEEP_FAILED.value,
                    "error": str(e),
                }}
            )

    async def _run(self) -> None:
        seconds = self.interval.total_seconds()
        while True:
            await asyncio.sleep(seconds)
            await self.sweep_once()

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class ExpirationPolicy:
    """
    Computes expiry timestamps and owns the eviction mechanism.

    Attributes:
        ttl: Fallback lifetime used when a session has no cookie expiry
        auto_remove: The eviction mechanism to install
        interval: Sweep period for AutoRemove.INTERVAL
        write_concern: Write concern applied when creating the TTL index
        index_options: Extra keyword arguments for create_index, such as comment
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        auto_remove: AutoRemove = AutoRemove.NATIVE,
        interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
        clock: Callable[[], datetime] = utcnow,
        write_concern: Optional[WriteConcern] = None,
        index_options: Optional[Mapping[str, Any]] = None
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.auto_remove = AutoRemove(auto_remove)
        self.interval = timedelta(minutes=interval_minutes)
        self.write_concern = write_concern
        self.index_options = dict(index_options or {})
        self._clock = clock
        self._sweeper: Optional[IntervalSweeper] = None

    def now(self) -> datetime:
        return self._clock()

    def compute_expires(self, session: Optional[Mapping[str, Any]]) -> datetime:
        """
        Compute the absolute expiry for a session write.

        An explicit cookie expiry wins; otherwise the configured TTL is
        added to the current time.
        """
        explicit = cookie_expiry(session)
        if explicit is not None:
            return explicit
        return self.now() + self.ttl

    @property
    def sweeper(self) -> Optional[IntervalSweeper]:
        return self._sweeper

    async def install(self, collection: SessionCollection) -> None:
        """
        Install the eviction mechanism on a freshly acquired collection.

        Raises:
            PyMongoError: If the TTL index cannot be created.
        """
        if self.auto_remove is AutoRemove.NATIVE:
            if self.write_concern is not None:
                collection = collection.with_options(write_concern=self.write_concern)
            await collection.create_index(
                [(EXPIRES_FIELD, ASCENDING)],
                expireAfterSeconds=0,
                background=True,
                **self.index_options,
            )
            logger.info("TTL index ensured on sessions", extra={
                "extra_data": {"field": EXPIRES_FIELD}
            })
        elif self.auto_remove is AutoRemove.INTERVAL:
            self._sweeper = IntervalSweeper(collection, self.interval, self._clock)
            self._sweeper.start()
            logger.info("Interval session sweeper started", extra={
                "extra_data": {"interval_seconds": self.interval.total_seconds()}
            })
        else:
            logger.info("Session auto removal disabled")

    async def shutdown(self) -> None:
        """Stop the interval sweeper, if one is running."""
        if self._sweeper is not None:
            await self._sweeper.stop()
            self._sweeper = None
