"""
Detection and execution of model function calls.

``ToolDispatcher.scan`` walks the session log from a cursor so that each event
is inspected exactly once. Completed ``function_call`` items of a
``response.done`` event open pending calls; the ``conversation.item.created``
echo of the matching ``function_call_output`` closes them. Calls are matched by
``call_id`` only, never by position, so results may come back in any order.

``ToolDispatcher.execute`` runs one call and always answers the model, with the
result or with an error description, followed by ``response.create``.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Sequence, Tuple

from pydantic import ValidationError

from realtime_bridge.errors import ArgumentParseError, ToolError, ToolExecutionError
from realtime_bridge.bot.normalizer import make_client_event
from realtime_bridge.bot.tool_registry import ToolRegistry
from realtime_bridge.config.constants import (
    EVENT_TYPE_ITEM_CREATED,
    EVENT_TYPE_RESPONSE_DONE,
    EVENT_TYPE_TOOL_ARGS_PARSE_ERROR,
    EVENT_TYPE_TOOL_ERROR,
    EVENT_TYPE_TOOL_EXECUTED,
    ITEM_TYPE_FUNCTION_CALL,
    ITEM_TYPE_FUNCTION_CALL_OUTPUT,
    LOGGER_NAME,
)
from realtime_bridge.models.events import Event, PendingCall
from realtime_bridge.models.openai_schemas import (
    ConversationItemCreateMessage,
    FunctionCallItem,
    FunctionCallOutputItem,
    ResponseCreateMessage,
)

logger = logging.getLogger(LOGGER_NAME)

SendFunc = Callable[[Dict[str, Any]], bool]
RecordFunc = Callable[[Event], None]


def parse_arguments(call: PendingCall) -> Dict[str, Any]:
    """
    Parse the JSON arguments string supplied by the model.

    An empty string means no arguments.

    Raises:
        ArgumentParseError: If the arguments are not a JSON object
    """
    raw = call.arguments or ""
    if not raw.strip():
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ArgumentParseError(call.name, raw, str(e)) from e
    if not isinstance(args, dict):
        raise ArgumentParseError(call.name, raw, f"expected an object, got {type(args).__name__}")
    return args


def serialize_output(name: str, result: Any) -> str:
    try:
        return json.dumps(result)
    except (TypeError, ValueError) as e:
        raise ToolExecutionError(name, e) from e


class ToolDispatcher:
    """Tracks pending function calls of one connection and executes them."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry
        self._cursor = 0
        self._pending: Dict[str, PendingCall] = {}

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def pending_calls(self) -> Tuple[PendingCall, ...]:
        return tuple(self._pending.values())

    @property
    def awaiting_tool_completion(self) -> bool:
        return bool(self._pending)

    def clear(self) -> None:
        """Forget every pending call (used when the connection goes away)."""
        self._pending.clear()

    def scan(self, log: Sequence[Event]) -> List[PendingCall]:
        """
        Process the events appended to ``log`` since the previous scan.

        Args:
            log: The full, append-only event log

        Returns:
            Newly detected calls, in arrival order, that still need to be executed
        """
        if self._cursor > len(log):
            logger.warning(f"Event log shrank below cursor {self._cursor}; rescanning from the end")
            self._cursor = len(log)

        new_calls: List[PendingCall] = []
        for event in log[self._cursor:]:
            self._cursor += 1
            if event.type == EVENT_TYPE_RESPONSE_DONE:
                new_calls.extend(self._open_calls(event))
            elif event.type == EVENT_TYPE_ITEM_CREATED:
                self._close_call(event)
        return new_calls

    def _open_calls(self, event: Event) -> List[PendingCall]:
        response = event.get("response")
        if not isinstance(response, dict):
            return []
        output = response.get("output")
        if not isinstance(output, list):
            return []

        opened = []
        for item in output:
            if not isinstance(item, dict) or item.get("type") != ITEM_TYPE_FUNCTION_CALL:
                continue
            if item.get("status") not in (None, "completed"):
                logger.debug(f"Skipping function call with status {item.get('status')}")
                continue
            try:
                call_item = FunctionCallItem.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Ignoring malformed function call item: {e}")
                continue
            if call_item.call_id in self._pending:
                logger.debug(f"Function call {call_item.call_id} already pending")
                continue

            call = PendingCall(
                call_id=call_item.call_id,
                name=call_item.name,
                arguments=call_item.arguments,
            )
            self._pending[call.call_id] = call
            opened.append(call)
            logger.info(f"Function call detected: {call.name} ({call.call_id})")
        return opened

    def _close_call(self, event: Event) -> None:
        item = event.get("item")
        if not isinstance(item, dict) or item.get("type") != ITEM_TYPE_FUNCTION_CALL_OUTPUT:
            return
        call_id = item.get("call_id")
        call = self._pending.pop(call_id, None) if isinstance(call_id, str) else None
        if call is None:
            return
        logger.info(f"Function call output acknowledged: {call.name} ({call.call_id})")
        if not self._pending:
            logger.debug("No more pending tool calls")

    async def execute(self, call: PendingCall, send: SendFunc, record: RecordFunc) -> bool:
        """
        Run a detected call and resolve it back to the model.

        Args:
            call: The pending call to run
            send: Writes an outbound message to the data channel
            record: Appends a diagnostic event to the session log

        Returns:
            True if the tool produced a result, False if an error was sent instead
        """
        try:
            args = parse_arguments(call)
        except ArgumentParseError as e:
            logger.warning(str(e))
            record(make_client_event(
                EVENT_TYPE_TOOL_ARGS_PARSE_ERROR,
                name=call.name,
                call_id=call.call_id,
                raw=call.arguments,
                error=type(e).__name__,
                message=str(e),
            ))
            self._send_output(call, json.dumps({"error": str(e)}), send)
            return False

        try:
            result = await self.registry.dispatch(call.name, args)
            output = serialize_output(call.name, result)
        except ToolError as e:
            record(make_client_event(
                EVENT_TYPE_TOOL_ERROR,
                name=call.name,
                call_id=call.call_id,
                error=type(e).__name__,
                message=str(e),
            ))
            self._send_output(call, json.dumps({"error": str(e)}), send)
            return False

        self._send_output(call, output, send)
        record(make_client_event(
            EVENT_TYPE_TOOL_EXECUTED,
            name=call.name,
            call_id=call.call_id,
            args=args,
            result=result,
        ))
        return True

    def _send_output(self, call: PendingCall, output: str, send: SendFunc) -> None:
        item_message = ConversationItemCreateMessage(
            item=FunctionCallOutputItem(call_id=call.call_id, output=output)
        )
        send(item_message.model_dump())
        send(ResponseCreateMessage().model_dump())
