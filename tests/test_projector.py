"""
Unit tests for the transcript projection and the latest-result selectors.
"""

import json

from realtime_bridge.bot.normalizer import make_client_event, normalize_event
from realtime_bridge.bot.projector import (
    project_conversation,
    select_latest_analysis,
    select_latest_tool_result,
)
from realtime_bridge.models.events import SpeakerRole


def _server(payload):
    return normalize_event(json.dumps(payload))


def _assistant_turn(*content, role="assistant"):
    return _server({
        "type": "response.done",
        "response": {"output": [{"type": "message", "role": role, "content": list(content)}]},
    })


def _sample_log():
    return [
        _server({"type": "session.created"}),
        _server({
            "type": "conversation.item.input_audio_transcription.completed",
            "transcript": "  What's my horoscope? I'm a Leo. ",
        }),
        make_client_event(
            "tool.executed",
            name="generate_horoscope",
            args={"sign": "Leo"},
            result={"horoscope": "Spotlight moment—share your work."},
        ),
        _assistant_turn({"type": "audio", "transcript": "Share your work today!"}),
        _server({"type": "conversation.item.input_audio_transcription.completed", "transcript": "   "}),
        _assistant_turn({"type": "audio", "transcript": ""}),
    ]


def test_turns_follow_log_order():
    turns = project_conversation(_sample_log())

    assert [t.role for t in turns] == [SpeakerRole.USER, SpeakerRole.TOOL, SpeakerRole.ASSISTANT]
    assert turns[0].text == "What's my horoscope? I'm a Leo."
    assert turns[1].text.startswith("generate_horoscope: ")
    assert "Spotlight" in turns[1].text
    assert turns[2].text == "Share your work today!"


def test_projection_is_idempotent():
    log = _sample_log()

    assert project_conversation(log) == project_conversation(log)


def test_empty_text_is_never_emitted():
    turns = project_conversation(_sample_log())

    assert all(turn.text for turn in turns)


def test_assistant_text_part_preference():
    turn = project_conversation([_assistant_turn(
        {"type": "text", "text": "plain"},
        {"type": "output_text", "text": "output"},
        {"type": "audio", "transcript": "spoken"},
    )])[0]
    assert turn.text == "spoken"

    turn = project_conversation([_assistant_turn({"type": "output_text", "text": "output"})])[0]
    assert turn.text == "output"


def test_function_call_turns_and_other_roles_are_not_assistant_text():
    log = [
        _server({
            "type": "response.done",
            "response": {"output": [{"type": "function_call", "name": "web_search", "arguments": "{}"}]},
        }),
        _assistant_turn({"type": "text", "text": "from user"}, role="user"),
    ]

    assert project_conversation(log) == []


def test_turn_ids_come_from_events():
    log = _sample_log()

    turns = project_conversation(log)

    assert turns[0].id == log[1].event_id
    assert turns[0].at == log[1].timestamp


def test_select_latest_tool_result_parses_string_results():
    log = [
        make_client_event("tool.executed", name="checa_precios", result={"item": "leche", "stores": []}),
        make_client_event("tool.executed", name="web_search", result="ignored"),
        make_client_event(
            "tool.executed",
            name="checa_precios",
            result=json.dumps({"item": "pan", "stores": [{"name": "A", "price": 10}]}),
        ),
    ]

    result = select_latest_tool_result(log, "checa_precios")

    assert result["item"] == "pan"
    assert result["stores"][0]["price"] == 10
    assert select_latest_tool_result(log, "data_analyzer") is None


def test_select_latest_analysis():
    log = [
        make_client_event(
            "tool.executed",
            name="data_analyzer",
            result={"assistant_response": "Sales grew 10%", "file_paths": ["/tmp/downloads/chart.png"]},
        ),
        make_client_event("tool.executed", name="generate_horoscope", result={"horoscope": "x"}),
    ]

    assert select_latest_analysis(log) == {
        "assistant_response": "Sales grew 10%",
        "file_paths": ["/tmp/downloads/chart.png"],
    }


def test_select_latest_analysis_accepts_single_path_and_empty_log():
    log = [make_client_event("tool.executed", name="data_analyzer", result={"file_path": "/tmp/a.png"})]

    assert select_latest_analysis(log) == {"assistant_response": "", "file_paths": ["/tmp/a.png"]}
    assert select_latest_analysis([]) == {"assistant_response": "", "file_paths": []}
