"""
Audio frame primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class CapturedFrame:
    """
    One microphone frame on its way to the realtime service.

    sequence_num:
        Monotonic per capture session, starting at 1.
        Used for ordering checks and debugging only.

    pcm_bytes:
        PCM16 little-endian mono bytes at 24 kHz.
        A full frame is constants.CAPTURE_FRAME_SAMPLES samples; only the final
        frame of a capture session may be shorter.

    ts_ms:
        Wall-clock timestamp (milliseconds) when the device delivered the
        samples. Used for observability only.
    """
    sequence_num: int
    pcm_bytes: bytes
    ts_ms: int
