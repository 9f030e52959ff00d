"""
Reconnect backoff policy.

Purpose:
- Centralize the connect retry rules (attempt cap, exponential backoff, jitter)
- Let the async reconnect loop make deterministic decisions

This module contains NO timers, NO async, NO side effects.
Randomness is injected (draw_jitter_ms takes the random source).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from constants import (
    RETRY_BASE_DELAY_MS,
    RETRY_JITTER_MS,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_DELAY_MS,
)


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RetryAttempt:
    """
    Immutable retry attempt counter.

    Semantics:
    - attempt == 0 represents the initial attempt (no retry yet).
    - attempt >= 1 represents the Nth retry attempt.
    """
    attempt: int


def next_attempt(current: RetryAttempt) -> RetryAttempt:
    """Return a new RetryAttempt with attempt incremented by 1."""
    return RetryAttempt(attempt=current.attempt + 1)


def reset_attempt() -> RetryAttempt:
    """Returns a fresh retry attempt counter."""
    return RetryAttempt(attempt=0)


# =============================================================================
# Policy
# =============================================================================

def should_retry(attempt: RetryAttempt, max_attempts: int = RETRY_MAX_ATTEMPTS) -> bool:
    """
    Returns True if another attempt is allowed after `attempt` failed.

    max_attempts counts the initial attempt: 5 means 1 try + 4 retries.
    """
    return attempt.attempt + 1 < max_attempts


# =============================================================================
# Delay Calculation
# =============================================================================

def draw_jitter_ms(rng: Callable[[], float]) -> int:
    """Jitter in [0, RETRY_JITTER_MS) from a [0, 1) random source."""
    value = min(max(rng(), 0.0), 1.0)
    return min(int(value * RETRY_JITTER_MS), RETRY_JITTER_MS - 1)


def get_retry_delay_ms(attempt: RetryAttempt, jitter_ms: int = 0) -> int:
    """
    Delay before the retry that follows `attempt`.

    base * 2**attempt, capped at RETRY_MAX_DELAY_MS, plus jitter:
    1000, 2000, 4000, 8000, ... 30000 ms.
    """
    # Clamp the exponent so huge attempt counts stay cheap
    exponent = min(attempt.attempt, 32)
    backoff = min(RETRY_MAX_DELAY_MS, RETRY_BASE_DELAY_MS * (2 ** exponent))
    return backoff + jitter_ms
