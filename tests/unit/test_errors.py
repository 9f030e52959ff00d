# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from errors import (
    ApiError,
    CloseClassification,
    ConnectionRetriesExhausted,
    ConnectionTimeout,
    NotConnected,
    TransportError,
    classify_close_code,
    close_code_meaning,
)


@pytest.mark.parametrize(
    "code, expected",
    [
        (1006, CloseClassification.NETWORK_OR_HANDSHAKE),
        (None, CloseClassification.NETWORK_OR_HANDSHAKE),
        (1002, CloseClassification.PROTOCOL_VIOLATION),
        (1008, CloseClassification.AUTH_OR_POLICY),
        (1015, CloseClassification.TLS_FAILURE),
        (1011, CloseClassification.UNKNOWN),
        (4000, CloseClassification.UNKNOWN),
    ],
)
def test_close_code_classification(code, expected) -> None:
    assert classify_close_code(code) is expected


def test_close_message_includes_code_meaning_and_hint() -> None:
    error = TransportError.from_close(1002)

    message = str(error)
    assert "1002" in message
    assert close_code_meaning(1002) in message
    assert "openai-beta.realtime=v1" in message
    assert error.code == 1002
    assert error.reason is None


def test_unknown_close_code_meaning() -> None:
    assert close_code_meaning(4321) == "Unknown close code"
    assert close_code_meaning(None) == "No close code"


def test_api_error_messages() -> None:
    fatal = ApiError.from_payload({"type": "invalid_request_error", "code": "invalid_api_key"})
    other = ApiError.from_payload({"message": "Rate limited"})
    empty = ApiError.from_payload(None)

    assert fatal.is_invalid_api_key
    assert str(fatal) == "Invalid API key. Please check your OpenAI API key."
    assert not other.is_invalid_api_key
    assert str(other) == "Realtime API error: Rate limited"
    assert str(empty) == "Realtime API error: Unknown API error occurred"


def test_lifecycle_messages() -> None:
    assert "15 seconds" in str(ConnectionTimeout(15.0))
    assert "not connected" in str(NotConnected("start capture"))

    exhausted = ConnectionRetriesExhausted(5, ConnectionTimeout(15.0))
    assert "after 5 attempts" in str(exhausted)
    assert "timeout" in str(exhausted).lower()
