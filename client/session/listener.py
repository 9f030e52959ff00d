"""
Listener contract for a realtime conversation.

This module defines the *interface only*. The connection invokes these
methods on the event-loop thread; implementations must not block.

Ordering guarantees:
- on_error fires exactly once per terminal failure, before on_disconnected.
- on_disconnected fires at most once per successful on_connected.
- Nothing fires after disconnect() has returned.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from errors import RealtimeClientError
    from session.connection_status import ConnectionState
    from session.transcript import TranscriptEntry


class SessionListener(ABC):
    """
    Observer for one RealtimeConnection.

    Non-responsibilities:
    - Must not mutate connection state (call connect/disconnect instead)
    - Must not assume audio chunks arrive aligned to any frame size
    """

    @abstractmethod
    def on_connected(self) -> None:
        """Transport open and session.update sent."""
        raise NotImplementedError

    @abstractmethod
    def on_disconnected(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_error(self, error: "RealtimeClientError") -> None:
        """
        Report an error. str(error) is a human-readable, actionable message.
        """
        raise NotImplementedError

    @abstractmethod
    def on_audio_received(self, pcm_bytes: bytes) -> None:
        """One decoded PCM16 24 kHz mono chunk of AI speech."""
        raise NotImplementedError

    @abstractmethod
    def on_transcription_received(self, entry: "TranscriptEntry") -> None:
        raise NotImplementedError

    def on_state_changed(self, state: "ConnectionState") -> None:
        """Optional hook; default ignores state changes."""
        return None
