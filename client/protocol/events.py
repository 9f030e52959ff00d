"""
Realtime protocol event definitions.

Rules:
- Events carry data only (no behavior, no I/O).
- Inbound (server) events record the wire tag they were decoded from.
- Outbound (client) events carry their wire tag as a class variable.
- Encoding/decoding lives in protocol/codec.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from session.session_config import SessionConfig
from session.transcript import Speaker


# =============================================================================
# Wire tags
# =============================================================================

class ServerEventType(str, Enum):
    """Inbound tags the client understands. Anything else is Unhandled."""

    ERROR = "error"
    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"

    RESPONSE_AUDIO_DELTA = "response.audio.delta"
    RESPONSE_AUDIO_TRANSCRIPT_DELTA = "response.audio_transcript.delta"
    RESPONSE_AUDIO_TRANSCRIPT_DONE = "response.audio_transcript.done"
    RESPONSE_TEXT_DELTA = "response.text.delta"
    RESPONSE_TEXT_DONE = "response.text.done"
    RESPONSE_OUTPUT_ITEM_ADDED = "response.output_item.added"
    RESPONSE_CONTENT_PART_ADDED = "response.content_part.added"
    RESPONSE_DONE = "response.done"

    INPUT_AUDIO_TRANSCRIPTION_COMPLETED = (
        "conversation.item.input_audio_transcription.completed"
    )


class ClientEventType(str, Enum):
    SESSION_UPDATE = "session.update"
    INPUT_AUDIO_BUFFER_APPEND = "input_audio_buffer.append"
    INPUT_AUDIO_BUFFER_COMMIT = "input_audio_buffer.commit"
    RESPONSE_CREATE = "response.create"
    CONVERSATION_ITEM_CREATE = "conversation.item.create"


# =============================================================================
# Inbound (server -> client)
# =============================================================================

@dataclass(frozen=True)
class ServerEvent:
    """
    Base inbound event.

    event_type: the wire tag exactly as received.
    """
    event_type: str


@dataclass(frozen=True)
class ApiErrorEvent(ServerEvent):
    error_type: str | None
    code: str | None
    message: str | None
    raw_error: dict[str, Any] | None = None


@dataclass(frozen=True)
class SessionCreated(ServerEvent):
    session_id: str | None = None


@dataclass(frozen=True)
class SessionUpdated(ServerEvent):
    session_id: str | None = None


@dataclass(frozen=True)
class AudioDelta(ServerEvent):
    """Decoded PCM16 bytes of AI speech."""
    audio: bytes
    response_id: str | None = None


@dataclass(frozen=True)
class TranscriptDelta(ServerEvent):
    text: str
    speaker: Speaker


@dataclass(frozen=True)
class TranscriptDone(ServerEvent):
    text: str
    speaker: Speaker


@dataclass(frozen=True)
class ContentItemAdded(ServerEvent):
    """AI-authored text attached to a newly added item ("" when none)."""
    text: str


@dataclass(frozen=True)
class ResponseDone(ServerEvent):
    status: str | None = None


@dataclass(frozen=True)
class Unhandled(ServerEvent):
    """Any tag this client does not know. Logged and ignored."""


# =============================================================================
# Outbound (client -> server)
# =============================================================================

@dataclass(frozen=True)
class ClientEvent:
    """Base outbound event."""
    TYPE: ClassVar[ClientEventType]


@dataclass(frozen=True)
class SessionUpdate(ClientEvent):
    TYPE: ClassVar[ClientEventType] = ClientEventType.SESSION_UPDATE
    session: SessionConfig


@dataclass(frozen=True)
class AudioAppend(ClientEvent):
    """Raw PCM16 bytes; base64-encoded on the wire."""
    TYPE: ClassVar[ClientEventType] = ClientEventType.INPUT_AUDIO_BUFFER_APPEND
    audio: bytes


@dataclass(frozen=True)
class AudioCommit(ClientEvent):
    TYPE: ClassVar[ClientEventType] = ClientEventType.INPUT_AUDIO_BUFFER_COMMIT


@dataclass(frozen=True)
class ResponseCreate(ClientEvent):
    TYPE: ClassVar[ClientEventType] = ClientEventType.RESPONSE_CREATE


@dataclass(frozen=True)
class ConversationItemCreate(ClientEvent):
    """A text message item, used to kick off or steer the conversation."""
    TYPE: ClassVar[ClientEventType] = ClientEventType.CONVERSATION_ITEM_CREATE
    text: str
    role: str = "user"
