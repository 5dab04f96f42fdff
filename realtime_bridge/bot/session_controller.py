"""
Realtime session controller.

``RealtimeSession`` owns one conversation with the OpenAI Realtime API over
WebRTC: it fetches an ephemeral credential, negotiates the peer connection,
wires the microphone and the speaker, advertises the tools on the data channel,
keeps the event log and runs the tool calls the model asks for.

All reactions (user calls, data channel messages, transport state changes) run
on the asyncio loop that owns the session. Each connect/disconnect bumps a
generation counter; callbacks and tool tasks started under an older generation
are ignored, so a superseded connection can never touch the current one.
"""

import asyncio
import json
import logging
from typing import Callable, List, Optional, Set, Tuple

from aiortc import RTCPeerConnection, RTCSessionDescription

from realtime_bridge.bot.dispatcher import ToolDispatcher
from realtime_bridge.errors import SendDroppedWarning, SessionSetupError
from realtime_bridge.bot.normalizer import make_client_event, normalize_event
from realtime_bridge.bot.tool_registry import ToolRegistry
from realtime_bridge.config.constants import (
    DATA_CHANNEL_LABEL,
    EVENT_TYPE_CLIENT_SENT,
    EVENT_TYPE_DC_OPEN,
    EVENT_TYPE_DC_SEND_ERROR,
    EVENT_TYPE_MIC_MUTED,
    EVENT_TYPE_MIC_UNMUTED,
    EVENT_TYPE_PC_STATE,
    EVENT_TYPE_RESPONSE_DONE,
    EVENT_TYPE_RESPONSE_SUMMARY,
    EVENT_TYPE_SESSION_CREATED,
    EVENT_TYPE_SESSION_DISCONNECTED,
    EVENT_TYPE_SESSION_ERROR,
    EVENT_TYPE_TOOLS_ADVERTISED,
    LOGGER_NAME,
    TERMINAL_PC_STATES,
)
from realtime_bridge.config.settings import Settings
from realtime_bridge.models.events import ConnectionState, Event, PendingCall
from realtime_bridge.models.openai_schemas import SessionToolConfig, SessionUpdateMessage
from realtime_bridge.services.audio import SpeakerSink, open_microphone
from realtime_bridge.services.realtime_http import exchange_sdp, fetch_ephemeral_key

logger = logging.getLogger(LOGGER_NAME)

EventListener = Callable[[Event], None]


class RealtimeSession:
    """
    Client side of a realtime voice conversation with tool calling.

    Public contract for user interfaces: ``state``, ``muted``, ``events``,
    ``awaiting_tool_completion`` and the ``connect``, ``disconnect``,
    ``toggle_mute`` and ``restart`` methods. ``add_listener`` delivers every new
    log event as it is appended.
    """

    def __init__(self, settings: Settings, registry: ToolRegistry,
                 language: Optional[str] = None):
        self.settings = settings
        self.registry = registry
        self.language = language or settings.default_language

        self.state = ConnectionState.IDLE
        self.muted = False

        self._events: List[Event] = []
        self._dispatcher = ToolDispatcher(registry)
        self._listeners: List[EventListener] = []
        self._generation = 0

        self._pc: Optional[RTCPeerConnection] = None
        self._dc = None
        self._mic = None
        self._speaker: Optional[SpeakerSink] = None
        self._tool_tasks: Set[asyncio.Task] = set()
        self._restart_lock = asyncio.Lock()

        logger.info(f"RealtimeSession initialized with model: {settings.model}")

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def events(self) -> Tuple[Event, ...]:
        return tuple(self._events)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_calls(self) -> Tuple[PendingCall, ...]:
        return self._dispatcher.pending_calls

    @property
    def awaiting_tool_completion(self) -> bool:
        return self._dispatcher.awaiting_tool_completion

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    def _record(self, event: Event) -> None:
        self._events.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in event listener: {e}", exc_info=True)

    def _record_for(self, generation: int) -> Callable[[Event], None]:
        def record(event: Event) -> None:
            if generation != self._generation:
                logger.debug(f"Dropping event {event.type} from stale session {generation}")
                return
            self._record(event)
        return record

    def _send_for(self, generation: int) -> Callable[[dict], bool]:
        def send(payload: dict) -> bool:
            if generation != self._generation:
                logger.debug(f"Dropping outbound {payload.get('type')} from stale session {generation}")
                return False
            return self.send(payload)
        return send

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _set_state(self, state: ConnectionState) -> None:
        if self.state != state:
            logger.info(f"Session state: {self.state.value} -> {state.value}")
        self.state = state

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send(self, payload: dict) -> bool:
        """
        Serialize ``payload`` and write it to the data channel.

        Dropped sends are recorded as ``dc.send.error`` events instead of raising.

        Returns:
            True if the message was written to an open channel
        """
        dc = self._dc
        if dc is None or getattr(dc, "readyState", None) != "open":
            logger.warning(f"Dropping outbound {payload.get('type')}: datachannel not open")
            self._record(make_client_event(
                EVENT_TYPE_DC_SEND_ERROR,
                reason="datachannel not open",
                error=SendDroppedWarning.__name__,
                payload=payload,
            ))
            return False

        try:
            dc.send(json.dumps(payload))
        except Exception as e:
            logger.warning(f"Dropping outbound {payload.get('type')}: {e}")
            self._record(make_client_event(
                EVENT_TYPE_DC_SEND_ERROR,
                reason=str(e),
                error=SendDroppedWarning.__name__,
                payload=payload,
            ))
            return False

        logger.debug(f"Sent message: {payload.get('type')}")
        self._record(make_client_event(EVENT_TYPE_CLIENT_SENT, payload=payload))
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> bool:
        """
        Open a realtime session.

        Returns:
            True if negotiation completed; False if the call was a no-op, was
            superseded by a disconnect, or failed (state becomes ``error``)
        """
        if self.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            logger.warning(f"Connect ignored - session is {self.state.value}")
            return False

        self._generation += 1
        generation = self._generation
        self._events = []
        self._dispatcher = ToolDispatcher(self.registry)
        self.muted = False
        self._set_state(ConnectionState.CONNECTING)

        try:
            # 1) Short-lived credential
            ephemeral_key = await fetch_ephemeral_key(self.settings.token_url, self.language)
            if not self._is_current(generation):
                logger.info("Connect superseded while fetching credential")
                return False

            # 2) Peer connection, remote audio and local microphone
            pc = RTCPeerConnection()
            self._pc = pc
            speaker = SpeakerSink()
            self._speaker = speaker

            @pc.on("track")
            def on_track(track):
                if not self._is_current(generation):
                    return
                logger.info(f"Received remote {track.kind} track")
                if track.kind == "audio":
                    speaker.start(track)

            @pc.on("connectionstatechange")
            async def on_connectionstatechange():
                await self._on_connection_state_change(generation, pc)

            self._mic = open_microphone()
            pc.addTrack(self._mic)

            # 3) Data channel for events
            dc = pc.createDataChannel(DATA_CHANNEL_LABEL)
            self._dc = dc

            @dc.on("open")
            def on_open():
                self._on_channel_open(generation)

            @dc.on("message")
            def on_message(message):
                self._on_channel_message(generation, message)

            # 4) Offer/answer with the Realtime API
            offer = await pc.createOffer()
            await pc.setLocalDescription(offer)
            answer_sdp = await exchange_sdp(
                self.settings.realtime_base_url,
                self.settings.model,
                ephemeral_key,
                pc.localDescription.sdp,
            )
            if not self._is_current(generation):
                logger.info("Connect superseded during SDP exchange")
                return False

            await pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
            if not self._is_current(generation):
                logger.info("Connect superseded while applying the SDP answer")
                await pc.close()
                return False
        except SessionSetupError as e:
            await self._fail_connect(generation, e)
            return False
        except Exception as e:
            logger.debug("Unexpected connect failure", exc_info=True)
            await self._fail_connect(generation, e)
            return False

        self._record(make_client_event(EVENT_TYPE_SESSION_CREATED, note="waiting for events..."))
        logger.info("Realtime session negotiated")
        return True

    async def _fail_connect(self, generation: int, error: Exception) -> None:
        if not self._is_current(generation):
            logger.info(f"Ignoring failure of superseded connect: {error}")
            return
        logger.error(f"Failed to connect realtime session: {error}")
        self._record(make_client_event(
            EVENT_TYPE_SESSION_ERROR,
            error=type(error).__name__,
            message=str(error) or type(error).__name__,
        ))
        await self._release_resources()
        self._set_state(ConnectionState.ERROR)

    async def disconnect(self) -> None:
        """Tear down the session. Safe in any state; never raises."""
        logger.info("Disconnecting realtime session")
        self._generation += 1
        await self._cancel_tool_tasks()
        await self._release_resources()
        self._dispatcher.clear()
        self.muted = False
        self._set_state(ConnectionState.IDLE)
        self._record(make_client_event(EVENT_TYPE_SESSION_DISCONNECTED))

    async def restart(self, language: Optional[str] = None) -> bool:
        """
        Disconnect, wait for teardown, then connect again with new parameters.

        Concurrent restarts run one after the other.
        """
        async with self._restart_lock:
            if language:
                self.language = language
            logger.info(f"Restarting session with language: {self.language}")
            await self.disconnect()
            return await self.connect()

    def toggle_mute(self) -> bool:
        """
        Flip the microphone's enabled flag.

        Returns:
            The resulting muted flag (unchanged when there is no microphone)
        """
        track = self._mic
        if track is None:
            logger.debug("Toggle mute ignored - no microphone track")
            return self.muted
        track.enabled = not track.enabled
        self.muted = not track.enabled
        self._record(make_client_event(EVENT_TYPE_MIC_UNMUTED if track.enabled else EVENT_TYPE_MIC_MUTED))
        logger.info(f"Microphone {'muted' if self.muted else 'unmuted'}")
        return self.muted

    async def wait_for_tools(self) -> None:
        """Wait until every tool call started so far has been resolved."""
        while self._tool_tasks:
            await asyncio.gather(*list(self._tool_tasks), return_exceptions=True)

    async def _cancel_tool_tasks(self) -> None:
        tasks = list(self._tool_tasks)
        self._tool_tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _release_resources(self) -> None:
        dc, self._dc = self._dc, None
        pc, self._pc = self._pc, None
        mic, self._mic = self._mic, None
        speaker, self._speaker = self._speaker, None

        if dc is not None:
            try:
                dc.close()
            except Exception as e:
                logger.debug(f"Error closing data channel: {e}")
        if mic is not None:
            try:
                mic.stop()
            except Exception as e:
                logger.debug(f"Error stopping microphone: {e}")
        if speaker is not None:
            try:
                await speaker.stop()
            except Exception as e:
                logger.debug(f"Error stopping speaker: {e}")
        if pc is not None:
            try:
                await pc.close()
            except Exception as e:
                logger.debug(f"Error closing peer connection: {e}")

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _on_channel_open(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        logger.info("Data channel open")
        self._record(make_client_event(EVENT_TYPE_DC_OPEN))
        update = SessionUpdateMessage(
            session=SessionToolConfig(
                tools=self.registry.tool_payload(),
                tool_choice=self.settings.tool_choice,
            )
        )
        self.send(update.model_dump())
        self._record(make_client_event(EVENT_TYPE_TOOLS_ADVERTISED, tools=list(self.registry.names)))

    def _on_channel_message(self, generation: int, message) -> None:
        if not self._is_current(generation):
            logger.debug("Ignoring message from stale session")
            return

        event = normalize_event(message)
        self._record(event)

        for call in self._dispatcher.scan(self._events):
            self._start_tool_call(generation, call)

        if event.type == EVENT_TYPE_RESPONSE_DONE:
            response = event.get("response")
            output = response.get("output") if isinstance(response, dict) else None
            summary = output[0] if isinstance(output, list) and output else response
            self._record(make_client_event(EVENT_TYPE_RESPONSE_SUMMARY, summary=json.dumps(summary)))

    def _start_tool_call(self, generation: int, call: PendingCall) -> None:
        task = asyncio.ensure_future(self._dispatcher.execute(
            call,
            send=self._send_for(generation),
            record=self._record_for(generation),
        ))
        self._tool_tasks.add(task)
        task.add_done_callback(self._tool_task_done)

    def _tool_task_done(self, task: asyncio.Task) -> None:
        self._tool_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Tool task failed: {task.exception()}")

    async def _on_connection_state_change(self, generation: int, pc: RTCPeerConnection) -> None:
        if not self._is_current(generation):
            return
        state = pc.connectionState
        logger.info(f"Peer connection state changed to: {state}")
        self._record(make_client_event(EVENT_TYPE_PC_STATE, state=state))

        if state == "connected":
            self._set_state(ConnectionState.CONNECTED)
        elif state in TERMINAL_PC_STATES:
            self._generation += 1
            await self._cancel_tool_tasks()
            await self._release_resources()
            self._dispatcher.clear()
            self.muted = False
            self._set_state(ConnectionState.IDLE)
            self._record(make_client_event(EVENT_TYPE_SESSION_DISCONNECTED, reason=state))
