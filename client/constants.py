"""
Behavioral constants for the realtime client.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (URLs, model names) live in config.py instead.
"""

from __future__ import annotations

from typing import Final, Mapping

# =============================================================================
# Audio Format (PCM16 mono @ 24kHz on the wire)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 24_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed)

# Full-scale value used for float <-> PCM16 conversion (symmetric, no -32768).
PCM16_SCALE: Final[int] = 32_767

# Microphone frames forwarded as one input_audio_buffer.append each.
CAPTURE_FRAME_SAMPLES: Final[int] = 4_096

PLAYBACK_FRAMES_PER_BUFFER: Final[int] = 1_024

# Browser-style capture processing. PortAudio exposes none of these, so the
# bridge only records that they were requested.
CAPTURE_ECHO_CANCELLATION: Final[bool] = True
CAPTURE_NOISE_SUPPRESSION: Final[bool] = True
CAPTURE_AUTO_GAIN_CONTROL: Final[bool] = True

# =============================================================================
# Timeouts
# =============================================================================

CREDENTIAL_TIMEOUT_S: Final[float] = 30.0
CONNECT_TIMEOUT_S: Final[float] = 15.0

# =============================================================================
# Reconnect backoff
# =============================================================================

RETRY_MAX_ATTEMPTS: Final[int] = 5
RETRY_BASE_DELAY_MS: Final[int] = 1_000
RETRY_MAX_DELAY_MS: Final[int] = 30_000
RETRY_JITTER_MS: Final[int] = 300

# =============================================================================
# Realtime wire protocol
# =============================================================================

SUBPROTOCOL_REALTIME_BETA: Final[str] = "openai-beta.realtime=v1"
SUBPROTOCOL_TOKEN_PREFIX: Final[str] = "openai-insecure-api-key."

WS_MAX_MESSAGE_BYTES: Final[int] = 2**22
WS_PING_INTERVAL_S: Final[float] = 20.0

INVALID_API_KEY_CODE: Final[str] = "invalid_api_key"

# =============================================================================
# Session defaults
# =============================================================================

DEFAULT_VOICE: Final[str] = "alloy"
DEFAULT_AUDIO_FORMAT: Final[str] = "pcm16"
DEFAULT_TRANSCRIPTION_MODEL: Final[str] = "whisper-1"
DEFAULT_MODALITIES: Final[tuple[str, ...]] = ("text", "audio")

VAD_TYPE: Final[str] = "server_vad"
VAD_THRESHOLD: Final[float] = 0.5
VAD_PREFIX_PADDING_MS: Final[int] = 300
VAD_SILENCE_DURATION_MS: Final[int] = 500

DEFAULT_OPENING_MESSAGE: Final[str] = (
    "Hello! Please start our conversation practice session."
)

# =============================================================================
# WebSocket close codes (RFC 6455)
# =============================================================================

CLOSE_NORMAL: Final[int] = 1000
CLOSE_PROTOCOL_ERROR: Final[int] = 1002
CLOSE_ABNORMAL: Final[int] = 1006
CLOSE_POLICY_VIOLATION: Final[int] = 1008
CLOSE_TLS_HANDSHAKE: Final[int] = 1015

CLOSE_CODE_MEANINGS: Final[Mapping[int, str]] = {
    1000: "Normal closure",
    1001: "Going away",
    1002: "Protocol error",
    1003: "Unsupported data",
    1006: "Abnormal closure",
    1007: "Invalid frame payload data",
    1008: "Policy violation",
    1009: "Message too big",
    1010: "Mandatory extension missing",
    1011: "Internal server error",
    1015: "TLS handshake failure",
}
