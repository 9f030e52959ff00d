"""
PCM conversion utilities.

Pure, stateless transforms between float samples, PCM16 little-endian bytes
and the base64 text used inside realtime JSON frames. No I/O.
"""
from __future__ import annotations

import base64
import binascii
from typing import Sequence, Union

import numpy as np

from constants import PCM16_SCALE

Samples = Union[np.ndarray, Sequence[float]]


def float_to_pcm16(samples: Samples) -> bytes:
    """
    Convert float samples to PCM16 little-endian mono bytes.

    Each sample is clamped to [-1.0, 1.0], scaled by 32767 and truncated
    toward zero (no rounding), matching a typed-array store. Scaling runs in
    float64 so the round trip stays within one quantization step.
    """
    audio_f64 = np.asarray(samples, dtype=np.float64)
    clipped = np.clip(audio_f64, -1.0, 1.0)
    audio_i16 = np.trunc(clipped * PCM16_SCALE).astype("<i2")
    return audio_i16.tobytes()


def pcm16_to_float(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float64 in [-1.0, 1.0].

    Inverse of float_to_pcm16 within one quantization step (1/32767).
    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; drop the dangling byte.
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f64 = audio_i16.astype(np.float64) / float(PCM16_SCALE)
    # -32768 is never produced by float_to_pcm16 but may arrive from the wire
    return np.clip(audio_f64, -1.0, 1.0)


def bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def base64_to_bytes(text: str) -> bytes:
    """
    Decode base64 text from a wire frame.

    Raises:
        ValueError if text is not valid base64.
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64 payload: {e}") from e
