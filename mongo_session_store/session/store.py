"""
Session store abstraction.

This module defines the contract a session-management middleware relies
on: fetch, upsert, refresh and delete opaque session records by id, plus
bulk listing, counting and clearing. Implementations decide where and how
the records are persisted.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class SessionStore(ABC):
    """
    Abstract base class for session storage implementations.

    All methods are async to support non-blocking I/O operations with
    external storage systems. Errors are raised from the awaited call;
    no method retries on its own.
    """

    @abstractmethod
    async def get(self, sid: str) -> Optional[dict[str, Any]]:
        """
        Retrieve a session by id.

        Args:
            sid: Session identifier.

        Returns:
            The session if found and not expired, None otherwise.
        """

    @abstractmethod
    async def set(self, sid: str, session: dict[str, Any]) -> None:
        """
        Insert or replace a session.

        Args:
            sid: Session identifier.
            session: Session data; its cookie may carry an explicit expiry.
        """

    @abstractmethod
    async def touch(self, sid: str, session: dict[str, Any]) -> None:
        """
        Refresh a session's expiry without rewriting its data.

        Raises:
            SessionNotFoundError: If no stored session matches the id.
        """

    @abstractmethod
    async def destroy(self, sid: str) -> None:
        """
        Delete a session.

        This operation is idempotent: destroying an unknown session
        succeeds.
        """

    @abstractmethod
    async def all(self) -> list[dict[str, Any]]:
        """Return every stored session that has not expired."""

    @abstractmethod
    async def length(self) -> int:
        """Return the number of stored session records."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete every stored session."""

    async def close(self) -> None:
        """Release any resources held by the store."""

    async def __aenter__(self) -> "SessionStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
