"""
JSON framing for the realtime protocol.

One event per WebSocket text frame: {"type": <tag>, ...fields}.

Usage example:

    try:
        event = decode_server_event(raw)
    except ProtocolError as e:
        log_event({"event_type": "FRAME_DROPPED", "error": str(e)})
    else:
        dispatch(event)

    await ws.send(encode_client_event(AudioAppend(audio=pcm_bytes)))

Decoding is total over tags: an unknown tag yields Unhandled(tag), never an
error. Only frames that are not JSON objects with a string "type", or whose
audio payload is not base64, raise ProtocolError.
"""

from __future__ import annotations

import json
from typing import Any, Callable

from audio.pcm import base64_to_bytes, bytes_to_base64
from errors import InvalidPayload, MalformedFrame
from protocol.events import (
    ApiErrorEvent,
    AudioAppend,
    AudioCommit,
    AudioDelta,
    ClientEvent,
    ContentItemAdded,
    ConversationItemCreate,
    ResponseCreate,
    ResponseDone,
    ServerEvent,
    ServerEventType,
    SessionCreated,
    SessionUpdate,
    SessionUpdated,
    TranscriptDelta,
    TranscriptDone,
    Unhandled,
)
from session.transcript import Speaker


# -------------------------
# Outbound
# -------------------------

def encode_client_event(event: ClientEvent) -> str:
    """Serialize an outbound event to one JSON text frame."""
    payload: dict[str, Any] = {"type": event.TYPE.value}

    if isinstance(event, SessionUpdate):
        payload["session"] = event.session.to_wire()
    elif isinstance(event, AudioAppend):
        payload["audio"] = bytes_to_base64(event.audio)
    elif isinstance(event, ConversationItemCreate):
        payload["item"] = {
            "type": "message",
            "role": event.role,
            "content": [{"type": "input_text", "text": event.text}],
        }
    elif isinstance(event, (AudioCommit, ResponseCreate)):
        pass
    else:
        raise TypeError(f"Unsupported client event: {type(event).__name__}")

    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


# -------------------------
# Inbound
# -------------------------

def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _decode_error(tag: str, data: dict[str, Any]) -> ServerEvent:
    error = data.get("error")
    if not isinstance(error, dict):
        error = {}
    return ApiErrorEvent(
        event_type=tag,
        error_type=_str_or_none(error.get("type")),
        code=_str_or_none(error.get("code")),
        message=_str_or_none(error.get("message")),
        raw_error=error or None,
    )


def _session_id(data: dict[str, Any]) -> str | None:
    session = data.get("session")
    if isinstance(session, dict):
        return _str_or_none(session.get("id"))
    return None


def _decode_audio_delta(tag: str, data: dict[str, Any]) -> ServerEvent:
    delta = data.get("delta")
    if delta is None:
        delta = ""
    if not isinstance(delta, str):
        raise InvalidPayload(f"{tag}: delta must be a base64 string")
    try:
        audio = base64_to_bytes(delta)
    except ValueError as e:
        raise InvalidPayload(f"{tag}: {e}") from e
    return AudioDelta(
        event_type=tag,
        audio=audio,
        response_id=_str_or_none(data.get("response_id")),
    )


def _decode_output_item(tag: str, data: dict[str, Any]) -> ServerEvent:
    item = data.get("item")
    text = ""
    if isinstance(item, dict) and item.get("type") == "message":
        content = item.get("content")
        if isinstance(content, list):
            for part in content:
                if isinstance(part, dict) and part.get("type") == "text":
                    text = _text(part, "text")
                    if text:
                        break
    return ContentItemAdded(event_type=tag, text=text)


def _decode_content_part(tag: str, data: dict[str, Any]) -> ServerEvent:
    part = data.get("part")
    text = ""
    if isinstance(part, dict) and part.get("type") == "text":
        text = _text(part, "text")
    return ContentItemAdded(event_type=tag, text=text)


def _decode_response_done(tag: str, data: dict[str, Any]) -> ServerEvent:
    response = data.get("response")
    status = response.get("status") if isinstance(response, dict) else None
    return ResponseDone(event_type=tag, status=_str_or_none(status))


_DECODERS: dict[str, Callable[[str, dict[str, Any]], ServerEvent]] = {
    ServerEventType.ERROR.value: _decode_error,
    ServerEventType.SESSION_CREATED.value:
        lambda tag, d: SessionCreated(event_type=tag, session_id=_session_id(d)),
    ServerEventType.SESSION_UPDATED.value:
        lambda tag, d: SessionUpdated(event_type=tag, session_id=_session_id(d)),
    ServerEventType.RESPONSE_AUDIO_DELTA.value: _decode_audio_delta,
    ServerEventType.RESPONSE_AUDIO_TRANSCRIPT_DELTA.value:
        lambda tag, d: TranscriptDelta(event_type=tag, text=_text(d, "delta"), speaker=Speaker.AI),
    ServerEventType.RESPONSE_TEXT_DELTA.value:
        lambda tag, d: TranscriptDelta(event_type=tag, text=_text(d, "delta"), speaker=Speaker.AI),
    ServerEventType.RESPONSE_AUDIO_TRANSCRIPT_DONE.value:
        lambda tag, d: TranscriptDone(event_type=tag, text=_text(d, "transcript"), speaker=Speaker.AI),
    ServerEventType.RESPONSE_TEXT_DONE.value:
        lambda tag, d: TranscriptDone(event_type=tag, text=_text(d, "text"), speaker=Speaker.AI),
    ServerEventType.INPUT_AUDIO_TRANSCRIPTION_COMPLETED.value:
        lambda tag, d: TranscriptDone(event_type=tag, text=_text(d, "transcript"), speaker=Speaker.USER),
    ServerEventType.RESPONSE_OUTPUT_ITEM_ADDED.value: _decode_output_item,
    ServerEventType.RESPONSE_CONTENT_PART_ADDED.value: _decode_content_part,
    ServerEventType.RESPONSE_DONE.value: _decode_response_done,
}


def decode_server_event(raw: str | bytes) -> ServerEvent:
    """
    Decode one inbound frame.

    Raises:
        MalformedFrame if the frame is not a JSON object with a string "type".
        InvalidPayload if a known event carries an undecodable field.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        raise MalformedFrame(f"frame is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedFrame(f"frame is a JSON {type(data).__name__}, expected object")

    tag = data.get("type")
    if not isinstance(tag, str) or not tag:
        raise MalformedFrame("frame has no string 'type' field")

    decoder = _DECODERS.get(tag)
    if decoder is None:
        return Unhandled(event_type=tag)
    return decoder(tag, data)
