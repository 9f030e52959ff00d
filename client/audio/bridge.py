"""
Microphone capture and speaker playback for a realtime conversation.

Threading model (IMPORTANT):
- PortAudio invokes _on_input/_on_output on its own threads.
- Captured frames cross into the event loop only via call_soon_threadsafe
  onto an unbounded asyncio.Queue; a pump task sends them in receipt order.
  Capture therefore never waits on the network.
- Playback crosses the other way through a lock-guarded byte buffer that
  the output callback drains (silence when empty).

Lifecycle:
- start_capture(): open the input stream, start the pump
- stop_capture(): stop the stream, flush every captured sample, then send
  input_audio_buffer.commit followed by response.create
- release(): stop capture without sending anything (used by disconnect)
- close(): release, stop playback and terminate PyAudio
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Callable, TYPE_CHECKING

import numpy as np

try:
    import pyaudio

    HAS_PYAUDIO = True
except ImportError:
    HAS_PYAUDIO = False
    pyaudio = None  # type: ignore

from audio.frame_generator import FrameSlicer
from audio.frames import CapturedFrame
from audio.pcm import float_to_pcm16, pcm16_to_float
from constants import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    CAPTURE_AUTO_GAIN_CONTROL,
    CAPTURE_ECHO_CANCELLATION,
    CAPTURE_FRAME_SAMPLES,
    CAPTURE_NOISE_SUPPRESSION,
    PLAYBACK_FRAMES_PER_BUFFER,
)
from errors import AudioDeviceError, DeviceDenied, DeviceNotFound, NotConnected
from observability.logger import log_event
from protocol.events import AudioAppend, AudioCommit, ResponseCreate

if TYPE_CHECKING:
    from session.connection import RealtimeConnection


_FLOAT32_BYTES = 4


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _default_audio_factory() -> Any:
    if not HAS_PYAUDIO:
        raise AudioDeviceError(
            "PyAudio is not installed, so no audio device can be opened. "
            "Install with: pip install pyaudio"
        )
    return pyaudio.PyAudio()


def _portaudio_error_code(error: BaseException) -> int | None:
    # PyAudio raises IOError(message, code)
    for arg in error.args:
        if isinstance(arg, int) and not isinstance(arg, bool):
            return arg
    return None


def _device_error(error: OSError) -> AudioDeviceError:
    if isinstance(error, PermissionError):
        return DeviceDenied(str(error))
    code = _portaudio_error_code(error)
    if code == pyaudio.paDeviceUnavailable:
        return DeviceDenied(str(error))
    if code == pyaudio.paInvalidDevice:
        return DeviceNotFound(str(error))
    return AudioDeviceError(f"Could not open the microphone ({error}). Please try again.")


class AudioBridge:
    """
    Bridges PortAudio devices and a RealtimeConnection.

    Responsibilities:
    - Capture: float32 mic samples -> fixed-size PCM16 frames -> AudioAppend
    - Playback: PCM16 chunks from the listener -> float32 output stream

    Non-responsibilities:
    - Connection lifecycle (only reads connection.is_open)
    - Echo cancellation / noise suppression / gain control (unavailable in
      PortAudio; requested settings are logged)
    """

    def __init__(
        self,
        *,
        connection: "RealtimeConnection",
        audio_factory: Callable[[], Any] = _default_audio_factory,
        input_device_index: int | None = None,
        output_device_index: int | None = None,
        frame_samples: int = CAPTURE_FRAME_SAMPLES,
    ) -> None:
        self._connection = connection
        self._audio_factory = audio_factory
        self._input_device_index = input_device_index
        self._output_device_index = output_device_index
        self._frame_samples = frame_samples

        self._pa: Any | None = None

        # Capture
        self._input_stream: Any | None = None
        self._slicer = FrameSlicer(frame_samples=frame_samples)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[CapturedFrame | None] | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._capturing = False
        self._sequence_num = 0
        self._frames_sent = 0

        # Playback
        self._output_stream: Any | None = None
        self._playback_buffer = bytearray()
        self._playback_lock = threading.Lock()

        connection.attach_audio_bridge(self)

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    @property
    def frames_sent(self) -> int:
        """AudioAppend frames sent during the current or last capture."""
        return self._frames_sent

    def pending_playback_bytes(self) -> int:
        with self._playback_lock:
            return len(self._playback_buffer)

    # -------------------------------------------------------------------------
    # Capture
    # -------------------------------------------------------------------------

    async def start_capture(self) -> bool:
        """
        Start streaming the microphone to the connection.

        Returns:
            True if capture started, False if already capturing or the device
            could not be opened (the error is reported via the listener).

        Raises:
            NotConnected if the connection is not open.
        """
        if not self._connection.is_open:
            raise NotConnected("start capture")
        if self._capturing:
            return False

        self._loop = asyncio.get_running_loop()
        try:
            stream = self._open_input_stream()
        except AudioDeviceError as e:
            self._report_device_error(e)
            return False

        self._queue = asyncio.Queue()
        self._slicer = FrameSlicer(frame_samples=self._frame_samples)
        self._sequence_num = 0
        self._frames_sent = 0
        self._input_stream = stream
        self._capturing = True

        try:
            stream.start_stream()
        except OSError as e:
            # Nothing was sent yet; undo and leave the session untouched.
            self._capturing = False
            self._input_stream = None
            self._queue = None
            try:
                stream.close()
            except OSError as close_error:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "CAPTURE_STREAM_CLOSE_FAILED",
                    "error": repr(close_error),
                })
            self._report_device_error(_device_error(e))
            return False

        self._pump_task = asyncio.create_task(self._pump(self._queue))
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CAPTURE_STARTED",
            "sample_rate_hz": AUDIO_SAMPLE_RATE_HZ,
            "frame_samples": self._frame_samples,
            "device_index": self._input_device_index,
            # Requested, but PortAudio has no such processing.
            "echo_cancellation": {"requested": CAPTURE_ECHO_CANCELLATION, "supported": False},
            "noise_suppression": {"requested": CAPTURE_NOISE_SUPPRESSION, "supported": False},
            "auto_gain_control": {"requested": CAPTURE_AUTO_GAIN_CONTROL, "supported": False},
        })
        return True

    async def stop_capture(self) -> None:
        """
        Stop capture and ask the model to respond.

        Every captured sample is sent before input_audio_buffer.commit, and
        commit is always followed by response.create, even when no audio was
        captured.

        Raises:
            NotConnected if the connection closed meanwhile (the device is
            still released).
        """
        if self._capturing:
            await self._stop_input(flush=True)

        if not self._connection.is_open:
            raise NotConnected("stop capture")

        await self._connection.send(AudioCommit())
        await self._connection.send(ResponseCreate())
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CAPTURE_COMMITTED",
            "frames_sent": self._frames_sent,
        })

    async def release(self) -> None:
        """Stop capture without sending anything. Safe to call repeatedly."""
        if self._capturing or self._pump_task is not None:
            await self._stop_input(flush=False)

    def _report_device_error(self, error: AudioDeviceError) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CAPTURE_DEVICE_ERROR",
            "error_type": type(error).__name__,
            "error": str(error),
        })
        self._connection.report_error(error)

    def _ensure_pa(self) -> Any:
        if self._pa is None:
            self._pa = self._audio_factory()
        return self._pa

    def _open_input_stream(self) -> Any:
        pa = self._ensure_pa()

        if self._input_device_index is None:
            try:
                pa.get_default_input_device_info()
            except OSError as e:
                raise DeviceNotFound(str(e)) from e

        try:
            return pa.open(
                format=pyaudio.paFloat32,
                channels=AUDIO_CHANNELS,
                rate=AUDIO_SAMPLE_RATE_HZ,
                input=True,
                frames_per_buffer=self._frame_samples,
                input_device_index=self._input_device_index,
                stream_callback=self._on_input,
                start=False,
            )
        except OSError as e:
            raise _device_error(e) from e

    async def _stop_input(self, *, flush: bool) -> None:
        stream = self._input_stream
        self._input_stream = None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "CAPTURE_STREAM_CLOSE_FAILED",
                    "error": repr(e),
                })
        # No callback runs past stop_stream(); the slicer is ours again.
        self._capturing = False

        queue = self._queue
        task = self._pump_task
        self._pump_task = None

        if task is not None and queue is not None:
            if flush:
                tail = self._slicer.flush()
                if tail is not None:
                    self._hand_off(tail)
                # call_soon runs after every pending call_soon_threadsafe put.
                asyncio.get_running_loop().call_soon(queue.put_nowait, None)
            else:
                task.cancel()
            await asyncio.wait({task})

        self._queue = None
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CAPTURE_STOPPED",
            "flushed": flush,
            "frames_captured": self._sequence_num,
            "frames_sent": self._frames_sent,
        })

    def _on_input(
            self,
            in_data: bytes | None,
            frame_count: int,  # pylint: disable=unused-argument
            time_info: Any,  # pylint: disable=unused-argument
            status_flags: int) -> tuple[None, int]:  # pylint: disable=unused-argument
        """PortAudio input callback (PortAudio thread)."""
        try:
            if in_data and self._capturing:
                samples = np.frombuffer(in_data, dtype=np.float32)
                for frame in self._slicer.push(samples):
                    self._hand_off(frame)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CAPTURE_CALLBACK_FAILED",
                "error": repr(e),
            })
        return (None, pyaudio.paContinue)

    def _hand_off(self, samples: np.ndarray) -> None:
        loop = self._loop
        queue = self._queue
        if loop is None or queue is None:
            return

        self._sequence_num += 1
        frame = CapturedFrame(
            sequence_num=self._sequence_num,
            pcm_bytes=float_to_pcm16(samples),
            ts_ms=_now_ms(),
        )
        try:
            loop.call_soon_threadsafe(queue.put_nowait, frame)
        except RuntimeError:
            # Event loop already closed; the frame has nowhere to go.
            pass

    async def _pump(self, queue: "asyncio.Queue[CapturedFrame | None]") -> None:
        while True:
            frame = await queue.get()
            if frame is None:
                return
            try:
                await self._connection.send(AudioAppend(audio=frame.pcm_bytes))
            except NotConnected:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "CAPTURE_FRAME_DROPPED",
                    "sequence_num": frame.sequence_num,
                })
                return
            self._frames_sent += 1

    # -------------------------------------------------------------------------
    # Playback
    # -------------------------------------------------------------------------

    def playback(self, pcm_bytes: bytes) -> None:
        """
        Queue one PCM16 chunk for playback. Never raises; failures are logged.
        """
        try:
            samples = pcm16_to_float(pcm_bytes)
            if not len(samples):
                return
            self._ensure_output_stream()
            # The output stream is float32.
            with self._playback_lock:
                self._playback_buffer.extend(samples.astype(np.float32).tobytes())
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "PLAYBACK_FAILED",
                "error_type": type(e).__name__,
                "error": str(e),
            })

    def clear_playback(self) -> None:
        with self._playback_lock:
            self._playback_buffer.clear()

    def _ensure_output_stream(self) -> None:
        if self._output_stream is not None:
            return
        pa = self._ensure_pa()
        self._output_stream = pa.open(
            format=pyaudio.paFloat32,
            channels=AUDIO_CHANNELS,
            rate=AUDIO_SAMPLE_RATE_HZ,
            output=True,
            frames_per_buffer=PLAYBACK_FRAMES_PER_BUFFER,
            output_device_index=self._output_device_index,
            stream_callback=self._on_output,
        )
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "PLAYBACK_STARTED",
            "device_index": self._output_device_index,
        })

    def _on_output(
            self,
            in_data: bytes | None,  # pylint: disable=unused-argument
            frame_count: int,
            time_info: Any,  # pylint: disable=unused-argument
            status_flags: int) -> tuple[bytes, int]:  # pylint: disable=unused-argument
        """PortAudio output callback (PortAudio thread)."""
        needed = frame_count * _FLOAT32_BYTES
        with self._playback_lock:
            chunk = bytes(self._playback_buffer[:needed])
            del self._playback_buffer[:needed]
        if len(chunk) < needed:
            chunk += b"\x00" * (needed - len(chunk))
        return (chunk, pyaudio.paContinue)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        await self.release()

        stream = self._output_stream
        self._output_stream = None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "PLAYBACK_STREAM_CLOSE_FAILED",
                    "error": repr(e),
                })
        self.clear_playback()

        pa = self._pa
        self._pa = None
        if pa is not None:
            pa.terminate()
