"""
Pure views over the session event log.

``project_conversation`` turns the raw log into display turns. The ``select_*``
helpers return the latest tool output a panel would show. None of them keep
state: calling them twice on the same log gives the same answer.
"""

import json
from typing import Any, Dict, Iterable, List, Optional

from realtime_bridge.config.constants import (
    EVENT_TYPE_RESPONSE_DONE,
    EVENT_TYPE_TOOL_EXECUTED,
    EVENT_TYPE_TRANSCRIPTION_COMPLETED,
    ITEM_TYPE_MESSAGE,
)
from realtime_bridge.models.events import DisplayTurn, Event, SpeakerRole
from realtime_bridge.models.openai_schemas import MessageRole

# Content part types holding assistant text, by preference
_TEXT_PARTS = (("audio", "transcript"), ("output_text", "text"), ("text", "text"))


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _message_text(item: Dict[str, Any]) -> str:
    content = item.get("content")
    if not isinstance(content, list):
        return ""
    parts = [part for part in content if isinstance(part, dict)]
    for part_type, key in _TEXT_PARTS:
        for part in parts:
            if part.get("type") == part_type and _clean(part.get(key)):
                return _clean(part.get(key))
    return ""


def _assistant_text(event: Event) -> str:
    response = event.get("response")
    if not isinstance(response, dict) or not isinstance(response.get("output"), list):
        return ""
    texts = []
    for item in response["output"]:
        if not isinstance(item, dict) or item.get("type", ITEM_TYPE_MESSAGE) != ITEM_TYPE_MESSAGE:
            continue
        if item.get("role", MessageRole.ASSISTANT.value) != MessageRole.ASSISTANT.value:
            continue
        text = _message_text(item)
        if text:
            texts.append(text)
    return " ".join(texts)


def _tool_text(event: Event) -> str:
    name = _clean(event.get("name"))
    result = event.get("result")
    if result is None:
        rendered = ""
    else:
        rendered = (result if isinstance(result, str) else json.dumps(result, ensure_ascii=False)).strip()
    if name and rendered:
        return f"{name}: {rendered}"
    return name or rendered


def project_conversation(events: Iterable[Event]) -> List[DisplayTurn]:
    """
    Derive the display transcript from the event log.

    Args:
        events: The ordered event log

    Returns:
        Turns in log order; events without text produce no turn
    """
    turns = []
    for event in events:
        if event.type == EVENT_TYPE_TRANSCRIPTION_COMPLETED:
            role, text = SpeakerRole.USER, _clean(event.get("transcript"))
        elif event.type == EVENT_TYPE_RESPONSE_DONE:
            role, text = SpeakerRole.ASSISTANT, _assistant_text(event)
        elif event.type == EVENT_TYPE_TOOL_EXECUTED:
            role, text = SpeakerRole.TOOL, _tool_text(event)
        else:
            continue
        if text:
            turns.append(DisplayTurn(id=event.event_id, role=role, text=text, at=event.timestamp))
    return turns


def _as_object(value: Any) -> Optional[Any]:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None
    return value


def select_latest_tool_result(events: Iterable[Event], name: str) -> Optional[Any]:
    """Return the result of the most recent successful call of tool ``name``."""
    for event in reversed(list(events)):
        if event.type == EVENT_TYPE_TOOL_EXECUTED and event.get("name") == name:
            return _as_object(event.get("result"))
    return None


def select_latest_analysis(events: Iterable[Event]) -> Dict[str, Any]:
    """
    Return the latest data-analysis answer found in the log.

    Looks at each event and at its ``result``, ``output`` and ``data`` fields for
    an object carrying ``assistant_response`` and/or ``file_paths``/``file_path``.

    Returns:
        ``{"assistant_response": str, "file_paths": [str, ...]}``
    """
    for event in reversed(list(events)):
        candidates = [event.to_dict(), event.get("result"), event.get("output"), event.get("data")]
        for candidate in candidates:
            obj = _as_object(candidate)
            if not isinstance(obj, dict):
                continue
            has_answer = "assistant_response" in obj
            has_paths = "file_paths" in obj or "file_path" in obj
            if not (has_answer or has_paths):
                continue
            paths = obj.get("file_paths", obj.get("file_path")) or []
            if not isinstance(paths, list):
                paths = [paths]
            return {
                "assistant_response": str(obj.get("assistant_response") or ""),
                "file_paths": [str(path) for path in paths if path],
            }
    return {"assistant_response": "", "file_paths": []}
