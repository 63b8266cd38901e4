"""
Transform pipeline between application sessions and stored payloads.

Three modes are supported and chosen once, when the store is built:

- JSON (default): the session is stored as a JSON string.
- Raw (``stringify=False``): the session is stored as a sub-document,
  with the cookie flattened to plain data.
- Custom: caller-supplied serialize / unserialize callables, each falling
  back to the raw-mode function for the direction that is not supplied.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional

from mongo_session_store.errors.exceptions import (
    SessionStoreError,
    deserialization_failed,
    serialization_failed,
)

logger = logging.getLogger(__name__)

Serializer = Callable[[Any], Any]
Unserializer = Callable[[Any], Any]


def _plain_cookie(cookie: Any) -> Any:
    """Return the cookie's plain-data form if it knows how to produce one."""
    for method_name in ("to_json", "toJSON"):
        method = getattr(cookie, method_name, None)
        if callable(method):
            return method()
    return cookie


def _json_default(value: Any) -> Any:
    """Fallback encoder for values the json module does not handle."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    plain = _plain_cookie(value)
    if plain is not value:
        return plain
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def raw_serialize(session: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Shallow-copy a session, normalizing its cookie to plain data.

    Only the ``cookie`` entry is converted; all other values are copied
    by reference.
    """
    result: dict[str, Any] = {}
    for key, value in (session or {}).items():
        result[key] = _plain_cookie(value) if key == "cookie" else value
    return result


def raw_unserialize(payload: Any) -> Any:
    return payload


def json_serialize(session: Any) -> str:
    return json.dumps(session, default=_json_default)


def json_unserialize(payload: Any) -> Any:
    return json.loads(payload)


@dataclass(frozen=True)
class TransformPipeline:
    """
    A serialize / unserialize pair applied around every store call.

    Attributes:
        mode: "json", "raw" or "custom"
        serializer: Function turning a session into a stored payload
        unserializer: Function turning a stored payload into a session
    """
    mode: str
    serializer: Serializer
    unserializer: Unserializer

    def serialize(self, session: Any) -> Any:
        """
        Convert a session to its stored payload.

        Raises:
            TransformError: If the serializer fails.
        """
        try:
            return self.serializer(session)
        except SessionStoreError:
            raise
        except Exception as e:
            logger.debug("Unable to serialize session", extra={
                "extra_data": {"mode": self.mode, "error": str(e)}
            })
            raise serialization_failed(
                f"Unable to serialize session: {e}",
                details={"mode": self.mode},
            ) from e

    def unserialize(self, payload: Any) -> Any:
        """
        Convert a stored payload back to a session.

        Raises:
            TransformError: If the payload is malformed for this mode.
        """
        try:
            return self.unserializer(payload)
        except SessionStoreError:
            raise
        except Exception as e:
            raise deserialization_failed(
                f"Unable to unserialize stored session: {e}",
                details={"mode": self.mode},
            ) from e


def payload_to_text(payload: Any) -> str:
    """
    Encode a stored payload (text or sub-document) as the plaintext handed
    to a crypto adapter.

    Raises:
        TransformError: If the payload is not JSON-encodable.
    """
    try:
        return json_serialize(payload)
    except Exception as e:
        raise serialization_failed(f"Unable to encode session payload: {e}") from e


def text_to_payload(text: str) -> Any:
    """
    Inverse of payload_to_text, applied to decrypted plaintext.

    Raises:
        TransformError: If the plaintext is not valid JSON.
    """
    try:
        return json.loads(text)
    except Exception as e:
        raise deserialization_failed(f"Unable to decode session payload: {e}") from e


def build_transform(
    stringify: bool = True,
    serialize: Optional[Serializer] = None,
    unserialize: Optional[Unserializer] = None
) -> TransformPipeline:
    """
    Select the transform pipeline for a store.

    Custom functions take precedence over ``stringify``; a missing custom
    direction falls back to the raw-mode function for that direction.

    Args:
        stringify: Store sessions as JSON text (True) or sub-documents (False)
        serialize: Optional custom serializer
        unserialize: Optional custom unserializer

    Returns:
        The TransformPipeline to use
    """
    if serialize is not None or unserialize is not None:
        return TransformPipeline(
            mode="custom",
            serializer=serialize or raw_serialize,
            unserializer=unserialize or raw_unserialize,
        )

    if not stringify:
        return TransformPipeline(
            mode="raw",
            serializer=raw_serialize,
            unserializer=raw_unserialize,
        )

    return TransformPipeline(
        mode="json",
        serializer=json_serialize,
        unserializer=json_unserialize,
    )
