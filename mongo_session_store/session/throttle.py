"""
Touch throttling.

With a positive ``touch_after`` interval the store records when a session
was last written (``lastModified``) and skips touches that arrive sooner
than the interval, trading expiry precision for fewer writes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from mongo_session_store.session.collection import LAST_MODIFIED_FIELD, parse_timestamp


@dataclass(frozen=True)
class TouchThrottle:
    """
    Decides whether a touch needs to write.

    Attributes:
        touch_after: Minimum interval between writes; zero disables throttling
    """
    touch_after: timedelta = timedelta(0)

    @classmethod
    def from_seconds(cls, seconds: int) -> "TouchThrottle":
        return cls(timedelta(seconds=seconds))

    @property
    def enabled(self) -> bool:
        return self.touch_after > timedelta(0)

    def last_touched(self, session: Optional[Mapping[str, Any]]) -> Optional[datetime]:
        """The ``lastModified`` bookkeeping value carried by a session, if any."""
        if not session:
            return None
        return parse_timestamp(session.get(LAST_MODIFIED_FIELD))

    def should_write(self, session: Optional[Mapping[str, Any]], now: datetime) -> bool:
        """
        Return False when the touch can be skipped.

        A session without a ``lastModified`` value is always written.
        """
        if not self.enabled:
            return True
        last = self.last_touched(session)
        if last is None:
            return True
        return now - last >= self.touch_after

    def strip(self, session: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
        """
        Return the session without its bookkeeping field.

        The caller's mapping is never mutated; a copy is returned only when
        there is something to remove.
        """
        if not self.enabled or not session or LAST_MODIFIED_FIELD not in session:
            return session
        return {k: v for k, v in session.items() if k != LAST_MODIFIED_FIELD}

    def merge(self, session: Any, last_modified: Optional[datetime]) -> Any:
        """Attach the stored ``lastModified`` value to an unserialized session."""
        if self.enabled and last_modified is not None and isinstance(session, dict):
            session[LAST_MODIFIED_FIELD] = last_modified
        return session
