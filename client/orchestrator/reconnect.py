"""
Bounded reconnect loop.

Runs RealtimeConnection.establish() up to max_attempts times, sleeping with
exponential backoff and jitter between attempts. Each attempt fetches a
fresh credential (establish() always does).

Outcome:
- success: returns True (listener saw on_connected)
- exhaustion: exactly one ConnectionRetriesExhausted via on_error, returns False
- caller disconnected mid-attempt: returns False, no error callback
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Awaitable, Callable, TYPE_CHECKING

from constants import RETRY_MAX_ATTEMPTS
from errors import ConnectionRetriesExhausted, NotConnected, RealtimeClientError
from observability.logger import log_event
from orchestrator.retry import (
    RetryAttempt,
    draw_jitter_ms,
    get_retry_delay_ms,
    next_attempt,
    reset_attempt,
    should_retry,
)
from session.session_config import SessionConfig

if TYPE_CHECKING:
    from session.connection import RealtimeConnection


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


async def connect_with_retry(
    connection: "RealtimeConnection",
    config: SessionConfig,
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> bool:
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt: RetryAttempt = reset_attempt()
    last_error: RealtimeClientError | None = None

    while True:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONNECT_ATTEMPT",
            "attempt": attempt.attempt + 1,
            "max_attempts": max_attempts,
        })
        try:
            await connection.establish(config)
        except NotConnected:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CONNECT_RETRY_ABANDONED",
                "attempt": attempt.attempt + 1,
            })
            return False
        except RealtimeClientError as e:
            last_error = e
        else:
            return True

        if not should_retry(attempt, max_attempts):
            break

        delay_ms = get_retry_delay_ms(attempt, draw_jitter_ms(rng))
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONNECT_RETRY_SCHEDULED",
            "attempt": attempt.attempt + 1,
            "delay_ms": delay_ms,
            "error_type": type(last_error).__name__,
            "error": str(last_error),
        })
        await sleep(delay_ms / 1000)
        attempt = next_attempt(attempt)

    log_event({
        "ts_ms": _now_ms(),
        "event_type": "CONNECT_RETRIES_EXHAUSTED",
        "attempts": max_attempts,
    })
    connection.report_error(ConnectionRetriesExhausted(max_attempts, last_error))
    return False
