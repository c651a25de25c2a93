# pylint: disable=missing-module-docstring,missing-function-docstring

import base64
import json

import pytest

from audio.framer import PcmFramer
from protocol.live_messages import (
    MalformedMessage,
    build_setup_message,
    decode_server_message,
    encode_realtime_audio,
    encode_tool_responses,
)
from tool_calls.declarations import FUNCTION_DECLARATIONS, ToolCallResponse


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ---------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------

def test_setup_complete():
    assert decode_server_message('{"setupComplete": {}}').setup_complete is True


def test_combined_server_content():
    raw = json.dumps({
        "serverContent": {
            "inputTranscription": {"text": "turn it red"},
            "outputTranscription": {"text": "Done."},
            "modelTurn": {"parts": [
                {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": _b64(b"\x01\x00")}},
                {"text": "not audio"},
                {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": _b64(b"\x02\x00")}},
            ]},
            "turnComplete": True,
        }
    })

    msg = decode_server_message(raw)

    assert msg.input_transcript == "turn it red"
    assert msg.output_transcript == "Done."
    assert msg.turn_complete is True
    assert msg.interrupted is False
    assert [p.data for p in msg.audio_payloads] == [b"\x01\x00", b"\x02\x00"]


def test_binary_frame_and_tool_calls():
    raw = json.dumps({
        "toolCall": {"functionCalls": [
            {"id": "a", "name": "setSystemTheme", "args": {"color": "amber"}},
            {"id": "b", "name": "unlockSystem"},
        ]}
    }).encode("utf-8")

    msg = decode_server_message(raw)

    assert [(c.id, c.name) for c in msg.tool_calls] == [("a", "setSystemTheme"), ("b", "unlockSystem")]
    assert msg.tool_calls[0].arguments == {"color": "amber"}
    assert msg.tool_calls[1].arguments == {}


def test_interrupted_and_go_away():
    msg = decode_server_message(json.dumps({
        "serverContent": {"interrupted": True},
        "goAway": {"timeLeft": "10s"},
    }))

    assert msg.interrupted is True
    assert msg.go_away_time_left == "10s"


def test_unrelated_message_is_empty():
    assert decode_server_message('{"usageMetadata": {"totalTokenCount": 3}}').is_empty


@pytest.mark.parametrize("raw", [
    "not json",
    "[1, 2]",
    b"\xff\xfe",
])
def test_malformed_payloads(raw):
    with pytest.raises(MalformedMessage):
        decode_server_message(raw)


@pytest.mark.parametrize("content", [
    "x",
    {"modelTurn": {"parts": [{"inlineData": {"data": "@@@"}}]}},
    {"modelTurn": {"parts": "nope"}},
])
def test_bad_server_content_keeps_tool_calls(content):
    msg = decode_server_message(json.dumps({
        "serverContent": content,
        "toolCall": {"functionCalls": [{"id": "c1", "name": "lockSystem", "args": {}}]},
    }))

    assert msg.audio_payloads == ()
    assert len(msg.section_errors) == 1
    assert [(c.id, c.name) for c in msg.tool_calls] == [("c1", "lockSystem")]


def test_bad_transcript_drops_only_that_channel():
    msg = decode_server_message(json.dumps({"serverContent": {
        "inputTranscription": {"text": 5},
        "outputTranscription": {"text": "fine"},
        "turnComplete": True,
    }}))

    assert msg.input_transcript is None
    assert msg.output_transcript == "fine"
    assert msg.turn_complete is True
    assert msg.section_errors == ("inputTranscription.text must be a string",)


def test_bad_tool_call_section_keeps_content():
    msg = decode_server_message(json.dumps({
        "serverContent": {"outputTranscription": {"text": "ok"}},
        "toolCall": {"functionCalls": "nope"},
    }))

    assert msg.output_transcript == "ok"
    assert msg.tool_calls == ()
    assert msg.section_errors == ("toolCall.functionCalls must be a list",)


# ---------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------

def test_setup_message_shape():
    msg = build_setup_message(
        model="models/test",
        system_directive="Be concise.",
        function_declarations=FUNCTION_DECLARATIONS,
        enable_google_search=True,
    )["setup"]

    assert msg["model"] == "models/test"
    assert msg["generationConfig"]["responseModalities"] == ["AUDIO"]
    assert msg["systemInstruction"]["parts"][0]["text"] == "Be concise."
    assert msg["inputAudioTranscription"] == {}
    assert msg["outputAudioTranscription"] == {}

    names = [d["name"] for d in msg["tools"][0]["functionDeclarations"]]
    assert names == ["setSystemTheme", "runSystemDiagnostics", "lockSystem", "unlockSystem"]
    assert msg["tools"][1] == {"googleSearch": {}}


def test_setup_without_search_declares_functions_only():
    msg = build_setup_message(
        model="m",
        system_directive="d",
        function_declarations=FUNCTION_DECLARATIONS,
    )["setup"]

    assert len(msg["tools"]) == 1


def test_realtime_audio_frame():
    blob = PcmFramer().frame([0.5])

    msg = encode_realtime_audio(blob)

    audio = msg["realtimeInput"]["audio"]
    assert audio["mimeType"] == "audio/pcm;rate=16000"
    assert base64.b64decode(audio["data"]) == b"\x00\x40"
    json.dumps(msg)


def test_tool_response_frame():
    msg = encode_tool_responses([ToolCallResponse(id="a", name="lockSystem", result="success")])

    assert msg == {
        "toolResponse": {
            "functionResponses": [
                {"id": "a", "name": "lockSystem", "response": {"result": "success"}},
            ]
        }
    }
