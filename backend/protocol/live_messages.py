# backend/protocol/live_messages.py
"""
JSON message codec for the live duplex endpoint.

Client → Peer:
    {"setup": {...}}                          once, first message
    {"realtimeInput": {"audio": {data, mimeType}}}
    {"toolResponse": {"functionResponses": [...]}}

Peer → Client (any combination of keys in one message):
    {"setupComplete": {}}
    {"serverContent": {
        "inputTranscription":  {"text": ...},
        "outputTranscription": {"text": ...},
        "modelTurn": {"parts": [{"inlineData": {"mimeType", "data"}}]},
        "interrupted": true,
        "turnComplete": true}}
    {"toolCall": {"functionCalls": [{"id", "name", "args"}]}}
    {"goAway": {"timeLeft": "..."}}

Binary payloads travel as base64 strings.

Usage example:

    msg = decode_server_message(raw)
    if msg.turn_complete:
        ...
    await channel.send(encode_tool_responses([response]))
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from audio.framer import MediaBlob
from spec import LIVE_RESPONSE_MODALITY
from tool_calls.declarations import ToolCallRequest, ToolCallResponse


# -------------------------
# Exceptions
# -------------------------

class LiveProtocolError(Exception):
    """Base class for live protocol errors."""


class MalformedMessage(LiveProtocolError):
    """
    Raised when an inbound payload (or one section of it) is not a valid
    peer message.

    A whole-message failure drops the message; a section failure drops
    only that section. The session continues either way.
    """


# -------------------------
# Inbound
# -------------------------

@dataclass(frozen=True)
class AudioPayload:
    """One inline audio part, still PCM16LE encoded."""
    mime_type: str
    data: bytes


@dataclass(frozen=True)
class ServerMessage:
    """
    Decoded peer message.

    Every field is optional because one message may carry several
    payload kinds at once.
    """
    setup_complete: bool = False
    input_transcript: str | None = None
    output_transcript: str | None = None
    turn_complete: bool = False
    interrupted: bool = False
    audio_payloads: tuple[AudioPayload, ...] = ()
    tool_calls: tuple[ToolCallRequest, ...] = ()
    go_away_time_left: str | None = None
    # One entry per section that failed to decode and was dropped
    section_errors: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self == _EMPTY


_EMPTY = ServerMessage()


def _as_mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MalformedMessage(f"{where} must be an object")
    return value


def _transcript_text(value: Any, where: str) -> str | None:
    node = _as_mapping(value, where)
    text = node.get("text")
    if text is None:
        return None
    if not isinstance(text, str):
        raise MalformedMessage(f"{where}.text must be a string")
    return text


def _decode_audio_parts(model_turn: Mapping[str, Any]) -> tuple[AudioPayload, ...]:
    parts = model_turn.get("parts") or []
    if not isinstance(parts, Sequence) or isinstance(parts, (str, bytes)):
        raise MalformedMessage("modelTurn.parts must be a list")

    out: list[AudioPayload] = []
    for part in parts:
        inline = _as_mapping(_as_mapping(part, "part").get("inlineData"), "inlineData")
        data = inline.get("data")
        if not data:
            continue
        mime_type = inline.get("mimeType", "")
        if mime_type and not str(mime_type).startswith("audio/"):
            continue
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, TypeError, ValueError) as exc:
            raise MalformedMessage(f"inlineData.data is not base64: {exc}") from exc
        out.append(AudioPayload(mime_type=str(mime_type), data=raw))
    return tuple(out)


def _decode_tool_calls(tool_call: Mapping[str, Any]) -> tuple[ToolCallRequest, ...]:
    calls = tool_call.get("functionCalls") or []
    if not isinstance(calls, Sequence) or isinstance(calls, (str, bytes)):
        raise MalformedMessage("toolCall.functionCalls must be a list")

    out: list[ToolCallRequest] = []
    for call in calls:
        node = _as_mapping(call, "functionCall")
        args = node.get("args")
        out.append(
            ToolCallRequest(
                id=str(node.get("id") or ""),
                name=str(node.get("name") or ""),
                # Kept raw; the dispatcher validates shape per tool
                arguments=args if args is not None else {},
            )
        )
    return tuple(out)


def decode_server_message(raw: str | bytes) -> ServerMessage:
    """
    Decode one inbound frame (text or binary JSON).

    A section that does not fit its expected shape is left out and its
    error listed in section_errors.

    Raises:
        MalformedMessage if the payload is not a JSON object.
    """
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedMessage(f"not JSON: {exc}") from exc

    root = _as_mapping(data, "message")

    # Sections decode independently: a bad section is dropped and
    # reported, the rest of the message still counts.
    errors: list[str] = []
    fields: dict[str, Any] = {"setup_complete": "setupComplete" in root}

    try:
        content = _as_mapping(root.get("serverContent"), "serverContent")
    except MalformedMessage as exc:
        errors.append(str(exc))
        content = {}

    for field_name, key in (
        ("input_transcript", "inputTranscription"),
        ("output_transcript", "outputTranscription"),
    ):
        try:
            fields[field_name] = _transcript_text(content.get(key), key)
        except MalformedMessage as exc:
            errors.append(str(exc))

    fields["turn_complete"] = bool(content.get("turnComplete", False))
    fields["interrupted"] = bool(content.get("interrupted", False))

    try:
        fields["audio_payloads"] = _decode_audio_parts(
            _as_mapping(content.get("modelTurn"), "modelTurn")
        )
    except MalformedMessage as exc:
        errors.append(str(exc))

    try:
        fields["tool_calls"] = _decode_tool_calls(_as_mapping(root.get("toolCall"), "toolCall"))
    except MalformedMessage as exc:
        errors.append(str(exc))

    go_away = root.get("goAway")
    if go_away is not None:
        try:
            fields["go_away_time_left"] = str(_as_mapping(go_away, "goAway").get("timeLeft", ""))
        except MalformedMessage as exc:
            errors.append(str(exc))

    return ServerMessage(section_errors=tuple(errors), **fields)


# -------------------------
# Outbound
# -------------------------

def build_setup_message(
    *,
    model: str,
    system_directive: str,
    function_declarations: Iterable[Mapping[str, Any]],
    enable_google_search: bool = False,
) -> dict[str, Any]:
    """
    Handshake message: audio responses, transcription both ways,
    system directive, tool surface.
    """
    tools: list[dict[str, Any]] = [
        {"functionDeclarations": [dict(d) for d in function_declarations]},
    ]
    if enable_google_search:
        tools.append({"googleSearch": {}})

    return {
        "setup": {
            "model": model,
            "generationConfig": {
                "responseModalities": [LIVE_RESPONSE_MODALITY],
            },
            "systemInstruction": {
                "parts": [{"text": system_directive}],
            },
            "tools": tools,
            "inputAudioTranscription": {},
            "outputAudioTranscription": {},
        }
    }


def encode_realtime_audio(blob: MediaBlob) -> dict[str, Any]:
    """Outbound framed microphone audio."""
    return {
        "realtimeInput": {
            "audio": {
                "mimeType": blob.mime_type,
                "data": base64.b64encode(blob.data).decode("ascii"),
            }
        }
    }


def encode_tool_responses(responses: Iterable[ToolCallResponse]) -> dict[str, Any]:
    """Outbound tool results, correlated by id."""
    return {
        "toolResponse": {
            "functionResponses": [
                {
                    "id": r.id,
                    "name": r.name,
                    "response": {"result": r.result},
                }
                for r in responses
            ]
        }
    }
