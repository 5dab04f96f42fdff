"""
Unit tests for the realtime session controller.

aiortc, the HTTP calls and local audio are replaced by the fakes in conftest,
so these tests drive the connection lifecycle, the data channel and the
transport state changes by hand.
"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from conftest import FakePeerConnection, function_call_done, output_echo
from realtime_bridge.bot.session_controller import RealtimeSession
from realtime_bridge.bot.tool_registry import ToolRegistry
from realtime_bridge.errors import CredentialError, MediaError, NegotiationError
from realtime_bridge.models.events import ConnectionState, ToolSpec


def _types(session):
    return [event.type for event in session.events]


async def _connected(session, fake_transport):
    assert await session.connect() is True
    pc = fake_transport.peer_connections[-1]
    await pc.set_state("connected")
    pc.channel.open()
    return pc


@pytest.mark.asyncio
async def test_connect_negotiates_in_order(session, fake_transport, settings):
    """Credential, media, data channel, then the SDP exchange."""
    assert session.state == ConnectionState.IDLE

    assert await session.connect() is True

    pc = fake_transport.peer_connections[0]
    fake_transport.fetch.assert_awaited_once_with("http://bridge.test/session", "es")
    fake_transport.exchange.assert_awaited_once_with(
        settings.realtime_base_url, settings.model, "ek_test", "v=0 offer"
    )
    assert len(pc.tracks) == 1
    assert pc.channel.label == "oai-events"
    assert pc.remoteDescription.sdp == "v=0 answer"
    assert pc.remoteDescription.type == "answer"
    assert _types(session) == ["session.created"]
    # Only the transport decides when the session is live
    assert session.state == ConnectionState.CONNECTING

    await pc.set_state("connected")
    assert session.state == ConnectionState.CONNECTED
    assert _types(session)[-1] == "pc.state"


@pytest.mark.asyncio
async def test_channel_open_advertises_every_tool(session, fake_transport, registry):
    pc = await _connected(session, fake_transport)

    update = pc.channel.sent_messages[0]
    assert update["type"] == "session.update"
    assert update["session"]["tool_choice"] == "auto"
    assert {tool["name"] for tool in update["session"]["tools"]} == set(registry.names)

    types = _types(session)
    assert types.index("dc.open") < types.index("client.event.sent") < types.index("session.tools.advertised")
    advertised = [e for e in session.events if e.type == "session.tools.advertised"][0]
    assert advertised.get("tools") == list(registry.names)


@pytest.mark.asyncio
async def test_double_connect_creates_one_peer_connection(session, fake_transport):
    """A second connect() while the first is still connecting is a no-op."""
    async def slow_fetch(*args, **kwargs):
        await asyncio.sleep(0)
        return "ek_test"

    fake_transport.fetch.side_effect = slow_fetch

    results = await asyncio.gather(session.connect(), session.connect())

    assert sorted(results) == [False, True]
    assert len(fake_transport.peer_connections) == 1
    fake_transport.fetch.assert_awaited_once()


@pytest.mark.asyncio
async def test_connect_while_connected_is_noop(session, fake_transport):
    await _connected(session, fake_transport)

    assert await session.connect() is False
    assert len(fake_transport.peer_connections) == 1
    assert session.state == ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_credential_failure_ends_in_error(session, fake_transport):
    fake_transport.fetch.side_effect = CredentialError("No ephemeral key in response")

    assert await session.connect() is False

    assert session.state == ConnectionState.ERROR
    assert fake_transport.peer_connections == []
    error = session.events[-1]
    assert error.type == "session.error"
    assert error.get("error") == "CredentialError"
    assert error.get("message") == "No ephemeral key in response"


@pytest.mark.asyncio
async def test_media_failure_ends_in_error_and_closes_transport(session, fake_transport):
    fake_transport.open_microphone.side_effect = MediaError("no input device")

    assert await session.connect() is False

    assert session.state == ConnectionState.ERROR
    assert fake_transport.peer_connections[0].closed is True
    assert session.events[-1].get("error") == "MediaError"


@pytest.mark.asyncio
async def test_negotiation_failure_releases_microphone(session, fake_transport):
    fake_transport.exchange.side_effect = NegotiationError("SDP exchange failed: 401")

    assert await session.connect() is False

    pc = fake_transport.peer_connections[0]
    assert session.state == ConnectionState.ERROR
    assert pc.closed is True
    assert pc.channel.closed is True
    pc.tracks[0].stop.assert_called_once()
    assert session.events[-1].get("error") == "NegotiationError"


@pytest.mark.asyncio
async def test_connect_can_retry_after_error(session, fake_transport):
    fake_transport.fetch.side_effect = CredentialError("down")
    await session.connect()
    assert session.state == ConnectionState.ERROR

    fake_transport.fetch.side_effect = None
    assert await session.connect() is True

    assert session.state == ConnectionState.CONNECTING
    assert _types(session) == ["session.created"]


@pytest.mark.asyncio
async def test_transport_drop_goes_idle_and_releases_media(session, fake_transport):
    pc = await _connected(session, fake_transport)
    mic = pc.tracks[0]

    await pc.set_state("failed")

    assert session.state == ConnectionState.IDLE
    assert _types(session)[-2:] == ["pc.state", "session.disconnected"]
    assert session.events[-1].get("reason") == "failed"
    assert pc.closed is True
    mic.stop.assert_called_once()
    fake_transport.speaker.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_messages_from_superseded_connection_are_ignored(session, fake_transport):
    pc = await _connected(session, fake_transport)
    await session.disconnect()
    count = len(session.events)

    pc.channel.receive({"type": "response.done", "response": {"output": []}})
    await pc.set_state("connected")

    assert len(session.events) == count
    assert session.state == ConnectionState.IDLE


@pytest.mark.asyncio
async def test_disconnect_during_credential_fetch_abandons_connect(session, fake_transport):
    release = asyncio.Event()

    async def blocked_fetch(*args, **kwargs):
        await release.wait()
        return "ek_test"

    fake_transport.fetch.side_effect = blocked_fetch
    connect_task = asyncio.ensure_future(session.connect())
    await asyncio.sleep(0)
    assert session.state == ConnectionState.CONNECTING

    await session.disconnect()
    release.set()

    assert await connect_task is False
    assert fake_transport.peer_connections == []
    assert session.state == ConnectionState.IDLE


@pytest.mark.asyncio
async def test_superseded_connect_does_not_touch_new_session(session, fake_transport, monkeypatch):
    release = asyncio.Event()
    apply_answer = FakePeerConnection.setRemoteDescription

    async def held_for_first(self, description):
        if self is fake_transport.peer_connections[0]:
            await release.wait()
        await apply_answer(self, description)

    monkeypatch.setattr(FakePeerConnection, "setRemoteDescription", held_for_first)
    stale_connect = asyncio.ensure_future(session.connect())
    while not fake_transport.exchange.await_count:
        await asyncio.sleep(0)
    await asyncio.sleep(0)

    await session.disconnect()
    assert await session.connect() is True
    release.set()

    assert await stale_connect is False
    first, second = fake_transport.peer_connections
    assert first.closed is True
    assert second.closed is False
    assert _types(session) == ["session.created"]
    assert session.state == ConnectionState.CONNECTING


@pytest.mark.asyncio
async def test_disconnect_when_idle_records_one_event(session):
    await session.disconnect()

    assert _types(session) == ["session.disconnected"]
    assert session.state == ConnectionState.IDLE


@pytest.mark.asyncio
async def test_disconnect_swallows_teardown_errors(session, fake_transport):
    pc = await _connected(session, fake_transport)
    pc.tracks[0].stop.side_effect = OSError("device busy")
    fake_transport.speaker.stop.side_effect = RuntimeError("already closed")

    await session.disconnect()

    assert session.state == ConnectionState.IDLE
    assert pc.closed is True
    assert _types(session).count("session.disconnected") == 1


@pytest.mark.asyncio
async def test_toggle_mute_before_connect_is_noop(session):
    assert session.toggle_mute() is False
    assert session.muted is False
    assert session.events == ()


@pytest.mark.asyncio
async def test_toggle_mute_flips_microphone(session, fake_transport):
    pc = await _connected(session, fake_transport)
    mic = pc.tracks[0]

    assert session.toggle_mute() is True
    assert mic.enabled is False
    assert _types(session)[-1] == "mic.muted"

    assert session.toggle_mute() is False
    assert mic.enabled is True
    assert _types(session)[-1] == "mic.unmuted"


@pytest.mark.asyncio
async def test_send_without_open_channel_is_recorded(session):
    assert session.send({"type": "response.create"}) is False

    event = session.events[-1]
    assert event.type == "dc.send.error"
    assert event.get("error") == "SendDroppedWarning"
    assert event.get("payload") == {"type": "response.create"}


@pytest.mark.asyncio
async def test_horoscope_call_round_trip(session, fake_transport):
    pc = await _connected(session, fake_transport)

    pc.channel.receive(function_call_done(("call_leo", "generate_horoscope", '{"sign": "Leo"}')))
    assert session.awaiting_tool_completion is True
    await session.wait_for_tools()

    sent = pc.channel.sent_messages
    outputs = [m for m in sent if m["type"] == "conversation.item.create"]
    assert len(outputs) == 1
    assert outputs[0]["item"]["call_id"] == "call_leo"
    assert isinstance(json.loads(outputs[0]["item"]["output"])["horoscope"], str)
    assert sent[-1]["type"] == "response.create"
    assert "tool.executed" in _types(session)
    assert "response.done.summary" in _types(session)

    pc.channel.receive(output_echo("call_leo"))
    assert session.awaiting_tool_completion is False


@pytest.mark.asyncio
async def test_two_calls_in_one_turn(session, fake_transport):
    pc = await _connected(session, fake_transport)

    pc.channel.receive(function_call_done(
        ("call_a", "generate_horoscope", '{"sign": "Aries"}'),
        ("call_b", "generate_horoscope", '{"sign": "Pisces"}'),
    ))
    await session.wait_for_tools()

    call_ids = {m["item"]["call_id"] for m in pc.channel.sent_messages if m["type"] == "conversation.item.create"}
    assert call_ids == {"call_a", "call_b"}

    pc.channel.receive(output_echo("call_a"))
    assert session.awaiting_tool_completion is True
    pc.channel.receive(output_echo("call_b"))
    assert session.awaiting_tool_completion is False


@pytest.mark.asyncio
async def test_malformed_messages_do_not_break_session(session, fake_transport):
    pc = await _connected(session, fake_transport)

    pc.channel.receive("not json at all")
    pc.channel.receive(function_call_done(("call_1", "generate_horoscope", "{broken")))
    await session.wait_for_tools()

    types = _types(session)
    assert "server.message" in types
    assert "tool.args.parse_error" in types
    assert session.state == ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_disconnect_cancels_running_tools(settings, fake_transport):
    started = asyncio.Event()

    async def never_returns(args):
        started.set()
        await asyncio.Event().wait()

    registry = ToolRegistry([ToolSpec(name="hang", description="never returns")], {"hang": never_returns})
    session = RealtimeSession(settings, registry)
    pc = await _connected(session, fake_transport)

    pc.channel.receive(function_call_done(("call_h", "hang", "{}")))
    await started.wait()
    await session.disconnect()
    await session.wait_for_tools()

    assert [m["type"] for m in pc.channel.sent_messages] == ["session.update"]
    assert session.awaiting_tool_completion is False


@pytest.mark.asyncio
async def test_restart_tears_down_before_reconnecting(session, fake_transport):
    first = await _connected(session, fake_transport)

    assert await session.restart("fr") is True

    assert len(fake_transport.peer_connections) == 2
    assert first.closed is True
    assert fake_transport.peer_connections[1].closed is False
    assert session.language == "fr"
    fake_transport.fetch.assert_awaited_with("http://bridge.test/session", "fr")
    assert _types(session) == ["session.created"]


@pytest.mark.asyncio
async def test_concurrent_restarts_run_one_after_another(session, fake_transport):
    await _connected(session, fake_transport)

    await asyncio.gather(session.restart(), session.restart())

    pcs = fake_transport.peer_connections
    assert len(pcs) == 3
    assert [pc.closed for pc in pcs] == [True, True, False]


@pytest.mark.asyncio
async def test_remote_audio_track_is_played(session, fake_transport):
    await session.connect()
    pc = fake_transport.peer_connections[0]
    track = MagicMock(kind="audio")

    pc.emit("track", track)

    fake_transport.speaker.start.assert_called_once_with(track)


@pytest.mark.asyncio
async def test_listeners_receive_events_and_errors_are_contained(session, fake_transport):
    seen = []

    def broken(event):
        raise RuntimeError("listener bug")

    session.add_listener(broken)
    session.add_listener(seen.append)

    await session.connect()

    assert [e.type for e in seen] == ["session.created"]
    session.remove_listener(seen.append)
    await session.disconnect()
    assert len(seen) == 1
