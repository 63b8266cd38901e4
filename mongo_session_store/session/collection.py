"""
Narrow view of the MongoDB collection used by the session store.

The engine only ever talks to its backing collection through the methods
declared on SessionCollection, which pymongo's AsyncCollection satisfies.
Keeping the surface this small lets tests substitute an in-memory double
and keeps driver details (pooling, topology, retries) out of the engine.
"""

from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping, Optional, Protocol, TypedDict, Union

# Stored field names
ID_FIELD = "_id"
SESSION_FIELD = "session"
EXPIRES_FIELD = "expires"
LAST_MODIFIED_FIELD = "lastModified"


class SessionDocument(TypedDict, total=False):
    """Persisted shape of one session record."""

    _id: str
    session: Union[str, dict[str, Any]]
    expires: datetime
    lastModified: datetime


class SessionCollection(Protocol):
    """The subset of pymongo's AsyncCollection the engine relies on."""

    async def find_one(self, filter: Mapping[str, Any], *args: Any, **kwargs: Any) -> Optional[SessionDocument]:
        ...

    def find(self, filter: Mapping[str, Any], *args: Any, **kwargs: Any) -> AsyncIterator[SessionDocument]:
        ...

    async def update_one(self, filter: Mapping[str, Any], update: Mapping[str, Any], *args: Any, **kwargs: Any) -> Any:
        ...

    async def delete_one(self, filter: Mapping[str, Any], *args: Any, **kwargs: Any) -> Any:
        ...

    async def delete_many(self, filter: Mapping[str, Any], *args: Any, **kwargs: Any) -> Any:
        ...

    async def count_documents(self, filter: Mapping[str, Any], *args: Any, **kwargs: Any) -> int:
        ...

    async def create_index(self, keys: Any, **kwargs: Any) -> str:
        ...

    def with_options(self, **kwargs: Any) -> "SessionCollection":
        ...


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    pymongo returns naive datetimes unless the client was created with
    ``tz_aware=True``; BSON dates are always UTC, so naive values are
    tagged rather than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce a cookie or bookkeeping timestamp into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (with or without a trailing ``Z``)
    and epoch milliseconds. Anything else, including empty values and
    out-of-range epochs, yields None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, ValueError, OSError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def not_expired_filter(now: datetime) -> dict[str, Any]:
    """Query clause matching records that have no expiry or expire after now."""
    return {
        "$or": [
            {EXPIRES_FIELD: {"$exists": False}},
            {EXPIRES_FIELD: {"$gt": now}},
        ]
    }
