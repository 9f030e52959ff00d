"""
Per-conversation session configuration.

Constructed once per conversation and never mutated after a connection
attempt begins. The same object feeds the token request and the
session.update frame, so both sides always agree on voice and formats.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from constants import (
    DEFAULT_AUDIO_FORMAT,
    DEFAULT_MODALITIES,
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_VOICE,
    VAD_PREFIX_PADDING_MS,
    VAD_SILENCE_DURATION_MS,
    VAD_THRESHOLD,
    VAD_TYPE,
)


@dataclass(frozen=True)
class TurnDetection:
    """Server-side VAD policy deciding when a user utterance is complete."""

    threshold: float = VAD_THRESHOLD
    prefix_padding_ms: int = VAD_PREFIX_PADDING_MS
    silence_duration_ms: int = VAD_SILENCE_DURATION_MS

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": VAD_TYPE,
            "threshold": self.threshold,
            "prefix_padding_ms": self.prefix_padding_ms,
            "silence_duration_ms": self.silence_duration_ms,
        }


@dataclass(frozen=True)
class SessionConfig:
    """
    Immutable conversation settings.

    turn_detection=None disables server VAD (push-to-talk only).
    transcription_model=None disables transcription of the user's speech.
    opening_message, when set, is sent as a user message right after the
    session is configured so the model opens the conversation.
    """

    instructions: str
    voice: str = DEFAULT_VOICE
    input_audio_format: str = DEFAULT_AUDIO_FORMAT
    output_audio_format: str = DEFAULT_AUDIO_FORMAT
    turn_detection: TurnDetection | None = field(default_factory=TurnDetection)
    transcription_model: str | None = DEFAULT_TRANSCRIPTION_MODEL
    modalities: tuple[str, ...] = DEFAULT_MODALITIES
    opening_message: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """The "session" object of a session.update frame."""
        return {
            "modalities": list(self.modalities),
            "instructions": self.instructions,
            "voice": self.voice,
            "input_audio_format": self.input_audio_format,
            "output_audio_format": self.output_audio_format,
            "turn_detection": (
                self.turn_detection.to_wire() if self.turn_detection is not None else None
            ),
            "input_audio_transcription": (
                {"model": self.transcription_model}
                if self.transcription_model is not None
                else None
            ),
        }

    def to_token_request(self) -> dict[str, Any]:
        """Session parameters sent to the token-issuing endpoint."""
        wire = self.to_wire()
        del wire["modalities"]
        return wire
