"""
Capture frame slicing utilities.

Purpose:
- Cut the microphone sample stream into fixed-size frames, one
  input_audio_buffer.append per frame, regardless of the buffer sizes the
  audio device happens to deliver.

Design:
- split_samples_into_frames is pure (no queues, no timing, no IO).
- FrameSlicer keeps the incomplete trailing frame between device callbacks
  and hands it out on flush() when capture stops, so no audio is lost.
- Only one thread may use a FrameSlicer at a time.
"""

from __future__ import annotations

import numpy as np

from constants import CAPTURE_FRAME_SAMPLES


def split_samples_into_frames(
    samples: np.ndarray,
    *,
    frame_samples: int = CAPTURE_FRAME_SAMPLES,
) -> tuple[list[np.ndarray], np.ndarray]:
    """
    Split a 1-D sample array into whole frames plus the remainder.

    Returns:
        (frames, remainder). Every frame has exactly frame_samples samples;
        remainder has fewer than frame_samples (possibly zero).

    Raises:
        ValueError if frame_samples is not positive.
    """
    if frame_samples <= 0:
        raise ValueError("frame_samples must be > 0")

    whole_frames = len(samples) // frame_samples
    end = whole_frames * frame_samples

    frames = [
        samples[offset : offset + frame_samples]
        for offset in range(0, end, frame_samples)
    ]
    return frames, samples[end:]


class FrameSlicer:
    """
    Stateful wrapper around split_samples_into_frames.

    push() returns the frames completed by the new samples; the remainder is
    carried into the next push().
    """

    def __init__(self, *, frame_samples: int = CAPTURE_FRAME_SAMPLES) -> None:
        if frame_samples <= 0:
            raise ValueError("frame_samples must be > 0")
        self._frame_samples = frame_samples
        self._carry = np.zeros(0, dtype=np.float32)

    def push(self, samples: np.ndarray) -> list[np.ndarray]:
        if len(self._carry):
            samples = np.concatenate((self._carry, samples))
        frames, self._carry = split_samples_into_frames(
            samples, frame_samples=self._frame_samples
        )
        return frames

    def flush(self) -> np.ndarray | None:
        """Return the carried partial frame (if any) and reset."""
        if not len(self._carry):
            return None
        tail = self._carry
        self._carry = np.zeros(0, dtype=np.float32)
        return tail

    def pending_samples(self) -> int:
        return len(self._carry)
