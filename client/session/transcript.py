"""
Transcript entries emitted by the connection.

The connection never stores history; the listener owns the append-only
transcript.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class Speaker(str, Enum):
    USER = "user"
    AI = "ai"


@dataclass(frozen=True)
class TranscriptEntry:
    """
    One piece of transcript text.

    is_final:
        False for streaming deltas (the listener may merge them),
        True for completed utterances and content items.
    """
    speaker: Speaker
    text: str
    is_final: bool = True
    received_at: float = field(default_factory=time.time)

    @property
    def is_user(self) -> bool:
        return self.speaker is Speaker.USER
