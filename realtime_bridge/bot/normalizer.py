"""
Normalization of inbound data channel messages into log events.

Every message, whatever its shape, becomes exactly one ``Event``. Messages that
are not JSON objects are wrapped as ``server.message`` events with the original
content under ``payload``.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Union

from pydantic import ValidationError

from realtime_bridge.config.constants import (
    CLIENT_EVENT_PREFIX,
    EVENT_TYPE_SERVER_EVENT,
    EVENT_TYPE_SERVER_MESSAGE,
    LOGGER_NAME,
    SERVER_EVENT_PREFIX,
)
from realtime_bridge.models.events import Event

logger = logging.getLogger(LOGGER_NAME)

RawMessage = Union[str, bytes, bytearray, Dict[str, Any]]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_event_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def make_client_event(event_type: str, **fields: Any) -> Event:
    """
    Build a locally originated diagnostic event.

    Args:
        event_type: Event type, e.g. ``dc.open`` or ``tool.executed``
        **fields: Extra fields carried on the event

    Returns:
        Event with a ``client_`` id and the current timestamp
    """
    fields.pop("event_id", None)
    fields.pop("type", None)
    fields.pop("timestamp", None)
    return Event(
        event_id=new_event_id(CLIENT_EVENT_PREFIX),
        type=event_type,
        timestamp=utc_now(),
        **fields,
    )


def _raw_event(payload: Any) -> Event:
    return Event(
        event_id=new_event_id(SERVER_EVENT_PREFIX),
        type=EVENT_TYPE_SERVER_MESSAGE,
        timestamp=utc_now(),
        payload=payload,
    )


def _text_field(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def normalize_event(raw: RawMessage) -> Event:
    """
    Convert an inbound message into a canonical event. Never raises.

    Args:
        raw: Text or binary data channel message, or an already decoded object

    Returns:
        Event carrying every field of the source object
    """
    data = raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            data = bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(f"Received undecodable binary message of {len(raw)} bytes")
            return _raw_event(raw)

    if isinstance(data, str):
        try:
            data = json.loads(data)
        except (json.JSONDecodeError, RecursionError):
            logger.warning(f"Received non-JSON message: {data[:100]}...")
            return _raw_event(raw)

    if not isinstance(data, dict):
        logger.warning(f"Received JSON message that is not an object: {type(data).__name__}")
        return _raw_event(raw)

    fields = dict(data)
    event_id = _text_field(fields.pop("event_id", None)) or new_event_id(SERVER_EVENT_PREFIX)
    event_type = _text_field(fields.pop("type", None)) or EVENT_TYPE_SERVER_EVENT
    timestamp = _text_field(fields.pop("timestamp", None)) or utc_now()
    extras = {key: value for key, value in fields.items() if isinstance(key, str)}

    try:
        return Event(event_id=event_id, type=event_type, timestamp=timestamp, **extras)
    except (ValidationError, TypeError) as e:
        logger.warning(f"Could not build event from message: {e}")
        return _raw_event(raw)
