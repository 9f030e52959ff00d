"""
Connection lifecycle state for a realtime connection.

Owned and mutated exclusively by RealtimeConnection. Observers see changes
through SessionListener.on_state_changed and never set it themselves.

Transitions:
    IDLE --connect--> CONNECTING --open--> OPEN --close--> CLOSING --> CLOSED
    CONNECTING --error/timeout--> FAILED
    OPEN --transport error--> FAILED --> CLOSED
"""
from enum import Enum


class ConnectionState(Enum):
    """Connection lifecycle status."""
    IDLE = "IDLE"               # Never connected
    CONNECTING = "CONNECTING"   # Fetching credential / opening transport
    OPEN = "OPEN"               # Transport open, session configured
    CLOSING = "CLOSING"         # Teardown in progress
    CLOSED = "CLOSED"           # Torn down; connect() may be called again
    FAILED = "FAILED"           # Last attempt or session ended in error


# States from which a new connect attempt may start without teardown.
RESTARTABLE_STATES = frozenset({
    ConnectionState.IDLE,
    ConnectionState.CLOSED,
    ConnectionState.FAILED,
})
