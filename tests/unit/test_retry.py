# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

from errors import (
    ConnectionRetriesExhausted,
    ConnectionTimeout,
    CredentialError,
    CredentialFailure,
    NotConnected,
    RealtimeClientError,
)
from orchestrator.reconnect import connect_with_retry
from orchestrator.retry import (
    RetryAttempt,
    draw_jitter_ms,
    get_retry_delay_ms,
    next_attempt,
    reset_attempt,
    should_retry,
)
from session.session_config import SessionConfig


# -------------------------
# Pure policy
# -------------------------

def test_attempt_counter_is_immutable() -> None:
    first = reset_attempt()
    second = next_attempt(first)

    assert first.attempt == 0
    assert second.attempt == 1


def test_exponential_backoff_with_cap() -> None:
    delays = [get_retry_delay_ms(RetryAttempt(n)) for n in range(7)]

    assert delays == [1000, 2000, 4000, 8000, 16000, 30000, 30000]


def test_delay_adds_jitter() -> None:
    assert get_retry_delay_ms(RetryAttempt(1), 299) == 2299


def test_jitter_stays_below_window() -> None:
    assert draw_jitter_ms(lambda: 0.0) == 0
    assert draw_jitter_ms(lambda: 0.5) == 150
    assert draw_jitter_ms(lambda: 0.999999) == 299
    assert draw_jitter_ms(lambda: 1.0) == 299


def test_should_retry_counts_initial_attempt() -> None:
    allowed = [should_retry(RetryAttempt(n), 5) for n in range(6)]

    assert allowed == [True, True, True, True, False, False]
    assert should_retry(RetryAttempt(0), 1) is False


# -------------------------
# Reconnect loop
# -------------------------

class FakeConnection:
    def __init__(self, outcomes: list[Any]) -> None:
        self._outcomes = list(outcomes)
        self.establish_calls = 0
        self.reported: list[RealtimeClientError] = []

    async def establish(self, config: SessionConfig) -> None:
        self.establish_calls += 1
        outcome = self._outcomes.pop(0) if self._outcomes else None
        if outcome is not None:
            raise outcome

    def report_error(self, error: RealtimeClientError) -> None:
        self.reported.append(error)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays_s: list[float] = []

    async def __call__(self, delay_s: float) -> None:
        self.delays_s.append(delay_s)


def _credential_error() -> CredentialError:
    return CredentialError(CredentialFailure.HTTP_STATUS, "HTTP 401 token", status=401)


def test_five_attempts_with_backoff_windows_then_one_error() -> None:
    conn = FakeConnection([_credential_error() for _ in range(10)])
    sleep = SleepRecorder()

    ok = asyncio.run(
        connect_with_retry(conn, SessionConfig(instructions="x"), sleep=sleep, rng=lambda: 0.999)
    )

    assert ok is False
    assert conn.establish_calls == 5
    # No sleep after the final attempt
    assert len(sleep.delays_s) == 4
    windows = [(1000, 1300), (2000, 2300), (4000, 4300), (8000, 8300)]
    for delay_s, (low, high) in zip(sleep.delays_s, windows):
        assert low <= delay_s * 1000 < high

    assert len(conn.reported) == 1
    error = conn.reported[0]
    assert isinstance(error, ConnectionRetriesExhausted)
    assert error.attempts == 5
    assert isinstance(error.last_error, CredentialError)
    assert "5 attempts" in str(error)


def test_success_after_transient_failures_reports_nothing() -> None:
    conn = FakeConnection([ConnectionTimeout(15.0), _credential_error(), None])
    sleep = SleepRecorder()

    ok = asyncio.run(
        connect_with_retry(conn, SessionConfig(instructions="x"), sleep=sleep, rng=lambda: 0.0)
    )

    assert ok is True
    assert conn.establish_calls == 3
    assert sleep.delays_s == [1.0, 2.0]
    assert conn.reported == []


def test_disconnect_during_attempt_stops_without_error() -> None:
    conn = FakeConnection([_credential_error(), NotConnected("connect")])
    sleep = SleepRecorder()

    ok = asyncio.run(connect_with_retry(conn, SessionConfig(instructions="x"), sleep=sleep))

    assert ok is False
    assert conn.establish_calls == 2
    assert conn.reported == []


def test_single_attempt_budget() -> None:
    conn = FakeConnection([_credential_error()])
    sleep = SleepRecorder()

    ok = asyncio.run(
        connect_with_retry(conn, SessionConfig(instructions="x"), 1, sleep=sleep)
    )

    assert ok is False
    assert conn.establish_calls == 1
    assert sleep.delays_s == []
    assert len(conn.reported) == 1


def test_rejects_empty_budget() -> None:
    conn = FakeConnection([])
    with pytest.raises(ValueError):
        asyncio.run(connect_with_retry(conn, SessionConfig(instructions="x"), 0))
