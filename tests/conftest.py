import asyncio
import json
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from realtime_bridge.bot.session_controller import RealtimeSession
from realtime_bridge.config.settings import Settings
from realtime_bridge.tools import build_default_registry


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class _Emitter:
    """Minimal stand-in for the pyee ``on`` decorator used by aiortc objects."""

    def __init__(self):
        self.handlers = {}

    def on(self, event, f=None):
        def register(func):
            self.handlers.setdefault(event, []).append(func)
            return func
        return register(f) if f is not None else register

    async def emit_async(self, event, *args):
        for handler in list(self.handlers.get(event, [])):
            result = handler(*args)
            if asyncio.iscoroutine(result):
                await result

    def emit(self, event, *args):
        for handler in list(self.handlers.get(event, [])):
            handler(*args)


class FakeDataChannel(_Emitter):
    def __init__(self, label):
        super().__init__()
        self.label = label
        self.readyState = "connecting"
        self.sent = []
        self.closed = False

    def send(self, data):
        if self.readyState != "open":
            raise RuntimeError("channel not open")
        self.sent.append(data)

    def close(self):
        self.closed = True
        self.readyState = "closed"

    def open(self):
        self.readyState = "open"
        self.emit("open")

    def receive(self, payload):
        self.emit("message", payload if isinstance(payload, (str, bytes)) else json.dumps(payload))

    @property
    def sent_messages(self):
        return [json.loads(data) for data in self.sent]


class FakePeerConnection(_Emitter):
    instances = []

    def __init__(self):
        super().__init__()
        self.connectionState = "new"
        self.tracks = []
        self.channels = []
        self.localDescription = None
        self.remoteDescription = None
        self.closed = False
        FakePeerConnection.instances.append(self)

    def addTrack(self, track):
        self.tracks.append(track)

    def createDataChannel(self, label):
        channel = FakeDataChannel(label)
        self.channels.append(channel)
        return channel

    async def createOffer(self):
        return SimpleNamespace(sdp="v=0 offer", type="offer")

    async def setLocalDescription(self, description):
        self.localDescription = description

    async def setRemoteDescription(self, description):
        self.remoteDescription = description

    async def close(self):
        self.closed = True

    async def set_state(self, state):
        self.connectionState = state
        await self.emit_async("connectionstatechange")

    @property
    def channel(self):
        return self.channels[-1]


@pytest.fixture
def settings():
    return Settings(openai_api_key="sk-test", server_url="http://bridge.test")


@pytest.fixture
def registry(settings):
    return build_default_registry(settings)


def make_microphone():
    mic = MagicMock()
    mic.enabled = True
    return mic


@pytest.fixture
def fake_transport():
    """Patch aiortc, the HTTP calls and local audio used by RealtimeSession.connect()."""
    FakePeerConnection.instances = []
    module = "realtime_bridge.bot.session_controller"
    speaker = MagicMock()
    speaker.stop = AsyncMock()
    with patch(f"{module}.RTCPeerConnection", FakePeerConnection), \
            patch(f"{module}.fetch_ephemeral_key", new_callable=AsyncMock, return_value="ek_test") as fetch, \
            patch(f"{module}.exchange_sdp", new_callable=AsyncMock, return_value="v=0 answer") as exchange, \
            patch(f"{module}.open_microphone", side_effect=lambda *a, **k: make_microphone()) as open_mic, \
            patch(f"{module}.SpeakerSink", return_value=speaker):
        yield SimpleNamespace(
            fetch=fetch,
            exchange=exchange,
            open_microphone=open_mic,
            speaker=speaker,
            peer_connections=FakePeerConnection.instances,
        )


@pytest.fixture
def session(settings, registry, fake_transport):
    return RealtimeSession(settings, registry, language="es")


def function_call_done(*calls, response_id="resp_1"):
    """Build a ``response.done`` payload with completed function_call items."""
    output = [
        {
            "type": "function_call",
            "status": "completed",
            "call_id": call_id,
            "name": name,
            "arguments": arguments,
        }
        for call_id, name, arguments in calls
    ]
    return {
        "type": "response.done",
        "event_id": f"event_{response_id}",
        "response": {"id": response_id, "status": "completed", "output": output},
    }


def output_echo(call_id, output="{}"):
    """Build the ``conversation.item.created`` echo of a function_call_output."""
    return {
        "type": "conversation.item.created",
        "event_id": f"event_echo_{call_id}",
        "item": {"type": "function_call_output", "call_id": call_id, "output": output},
    }
