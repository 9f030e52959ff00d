"""
Error taxonomy for the realtime client.

Every error carries a human-readable, actionable message: str(error) is what
the listener shows to the user. Structured fields (codes, classifications)
are kept alongside for logging and tests.

Propagation:
- ProtocolError: per-frame, logged and dropped by the connection.
- CredentialError / ConnectionTimeout / TransportError: end a connect attempt.
- AudioDeviceError: aborts start_capture only.
- ApiError: reported as-is; the invalid_api_key case ends the session.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from constants import (
    CLOSE_ABNORMAL,
    CLOSE_CODE_MEANINGS,
    CLOSE_POLICY_VIOLATION,
    CLOSE_PROTOCOL_ERROR,
    CLOSE_TLS_HANDSHAKE,
    INVALID_API_KEY_CODE,
)


class RealtimeClientError(Exception):
    """Base class for all client errors."""


# -------------------------
# Credentials
# -------------------------

class CredentialFailure(str, Enum):
    """Why a credential could not be obtained."""
    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    MISSING_TOKEN = "missing_token"


class CredentialError(RealtimeClientError):
    """
    Raised when the token-issuing endpoint does not yield a usable token.

    status is the HTTP status for HTTP_STATUS failures, otherwise None.
    """

    def __init__(
        self,
        reason: CredentialFailure,
        message: str,
        *,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.status = status


# -------------------------
# Transport
# -------------------------

class ConnectionTimeout(RealtimeClientError):
    """The transport did not open within the connection-establishment window."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(
            "WebSocket connection timeout: unable to establish connection "
            f"within {timeout_s:g} seconds. Please check your network and try again."
        )
        self.timeout_s = timeout_s


class CloseClassification(str, Enum):
    """Actionable classification of a transport failure."""
    NETWORK_OR_HANDSHAKE = "network_or_handshake"
    PROTOCOL_VIOLATION = "protocol_violation"
    AUTH_OR_POLICY = "auth_or_policy"
    TLS_FAILURE = "tls_failure"
    UNKNOWN = "unknown"


_CLASSIFICATION_BY_CODE: dict[int, CloseClassification] = {
    CLOSE_ABNORMAL: CloseClassification.NETWORK_OR_HANDSHAKE,
    CLOSE_PROTOCOL_ERROR: CloseClassification.PROTOCOL_VIOLATION,
    CLOSE_POLICY_VIOLATION: CloseClassification.AUTH_OR_POLICY,
    CLOSE_TLS_HANDSHAKE: CloseClassification.TLS_FAILURE,
}

_HINTS: dict[CloseClassification, str] = {
    CloseClassification.NETWORK_OR_HANDSHAKE:
        "Network or handshake problem. Check your connectivity and the model URL.",
    CloseClassification.PROTOCOL_VIOLATION:
        "Protocol error. Make sure the openai-beta.realtime=v1 subprotocol is offered.",
    CloseClassification.AUTH_OR_POLICY:
        "Authentication or policy problem. The session token may be invalid or expired.",
    CloseClassification.TLS_FAILURE:
        "TLS/SSL problem. Check your system certificates and proxy settings.",
    CloseClassification.UNKNOWN:
        "Unexpected disconnect. Please try again.",
}


def classify_close_code(code: int | None) -> CloseClassification:
    """Map a WebSocket close code to an actionable classification."""
    if code is None:
        return CloseClassification.NETWORK_OR_HANDSHAKE
    return _CLASSIFICATION_BY_CODE.get(code, CloseClassification.UNKNOWN)


def close_code_meaning(code: int | None) -> str:
    if code is None:
        return "No close code"
    return CLOSE_CODE_MEANINGS.get(code, "Unknown close code")


class TransportError(RealtimeClientError):
    """
    The streaming transport failed or closed for cause.

    code/reason are the WebSocket close code and reason when known.
    """

    def __init__(
        self,
        classification: CloseClassification,
        message: str,
        *,
        code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.classification = classification
        self.code = code
        self.reason = reason

    @classmethod
    def from_close(cls, code: int | None, reason: str | None = None) -> "TransportError":
        classification = classify_close_code(code)
        message = (
            f"WebSocket closed ({code} - {close_code_meaning(code)}). "
            f"{_HINTS[classification]}"
        )
        if reason:
            message = f"{message} Server said: {reason}"
        return cls(classification, message, code=code, reason=reason)

    @classmethod
    def from_open_failure(
        cls,
        classification: CloseClassification,
        detail: str,
    ) -> "TransportError":
        return cls(
            classification,
            f"Could not open the realtime connection ({detail}). {_HINTS[classification]}",
        )


# -------------------------
# Protocol
# -------------------------

class ProtocolError(RealtimeClientError):
    """Base class for inbound frame errors. Recoverable: drop the frame."""


class MalformedFrame(ProtocolError):
    """The frame is not a JSON object with a string "type" field."""


class InvalidPayload(ProtocolError):
    """The frame has a known type but a field could not be decoded."""


# -------------------------
# Audio devices
# -------------------------

class AudioDeviceError(RealtimeClientError):
    """The microphone could not be opened."""


class DeviceDenied(AudioDeviceError):
    def __init__(self, detail: str = "") -> None:
        message = "Microphone access denied. Please allow microphone access and try again."
        super().__init__(f"{message} ({detail})" if detail else message)


class DeviceNotFound(AudioDeviceError):
    def __init__(self, detail: str = "") -> None:
        message = "No microphone found. Please connect a microphone and try again."
        super().__init__(f"{message} ({detail})" if detail else message)


# -------------------------
# Server-reported errors
# -------------------------

class ApiError(RealtimeClientError):
    """An "error" frame sent by the realtime service."""

    def __init__(
        self,
        message: str,
        *,
        error_type: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.code = code

    @property
    def is_invalid_api_key(self) -> bool:
        return self.code == INVALID_API_KEY_CODE

    @classmethod
    def from_payload(cls, error: Mapping[str, Any] | None) -> "ApiError":
        error = error or {}
        error_type = error.get("type")
        code = error.get("code")
        if code == INVALID_API_KEY_CODE:
            return cls(
                "Invalid API key. Please check your OpenAI API key.",
                error_type=error_type,
                code=code,
            )
        detail = error.get("message") or "Unknown API error occurred"
        return cls(f"Realtime API error: {detail}", error_type=error_type, code=code)


# -------------------------
# Lifecycle
# -------------------------

class NotConnected(RealtimeClientError):
    def __init__(self, action: str = "send") -> None:
        super().__init__(f"Cannot {action}: the conversation is not connected.")
        self.action = action


class ConnectionRetriesExhausted(RealtimeClientError):
    """Every connect attempt failed; carries the last underlying error."""

    def __init__(self, attempts: int, last_error: RealtimeClientError | None) -> None:
        detail = f" Last error: {last_error}" if last_error is not None else ""
        super().__init__(f"Unable to connect after {attempts} attempts.{detail}")
        self.attempts = attempts
        self.last_error = last_error
